"""Logging configuration for postledger.

Every module logs through ``logging.getLogger(__name__)``; applications call
``configure_logging`` once at startup to decide what is shown.
"""

import logging
import os
import sys

DETAILED_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
TERSE_FORMAT = "%(asctime)s %(levelname)s: %(message)s"

# Store operations stay visible, storage internals only on trouble
QUIET_LOGGERS = {
    "postledger.store": logging.INFO,
    "postledger.adapters": logging.WARNING,
    "postledger.unit_of_work": logging.WARNING,
}


def configure_logging(level=None, format_string=None):
    """Configure logging for postledger.

    Args:
        level: Logging level name. Defaults to ``POSTLEDGER_LOG_LEVEL``,
            then INFO. Unknown names fall back to INFO.
        format_string: Custom format string for log messages
    """
    level_name = str(level or os.environ.get("POSTLEDGER_LOG_LEVEL", "INFO"))
    numeric_level = logging.getLevelName(level_name.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    debugging = numeric_level == logging.DEBUG

    logging.basicConfig(
        level=numeric_level,
        format=format_string or (DETAILED_FORMAT if debugging else TERSE_FORMAT),
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )

    if debugging:
        logging.getLogger("postledger").setLevel(logging.DEBUG)
        return

    for name, logger_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(logger_level)
