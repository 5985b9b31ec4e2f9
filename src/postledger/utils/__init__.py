"""Utility module for postledger

Definitions/declaractions in this module should be independent of other modules,
to the maximum extent possible.
"""

import importlib.metadata
import logging
from datetime import UTC, datetime

logger = logging.getLogger(__name__)


def utcnow_func() -> datetime:
    """Return the current time in UTC with timezone information"""
    return datetime.now(UTC)


def unix_timestamp() -> int:
    """Return the current time as whole seconds since the epoch.

    This is the default clock of the account store. Records keep
    timestamps at second resolution, like the ledger clock they model.
    """
    return int(utcnow_func().timestamp())


def get_version() -> str:
    return importlib.metadata.version("postledger")


__all__ = [
    "get_version",
    "unix_timestamp",
    "utcnow_func",
]
