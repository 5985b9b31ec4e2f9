"""
Custom postledger exception classes
"""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


class PostLedgerException(Exception):
    """Base class for all Exceptions raised within postledger"""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args)

        self.extra_info = kwargs.get("extra_info", None)

    def __reduce__(self) -> tuple[Any, tuple[Any]]:
        return (self.__class__, (self.args[0],))


class PostLedgerExceptionWithMessage(PostLedgerException):
    def __init__(
        self, messages: dict[str, Any], traceback: Optional[str] = None, **kwargs: Any
    ) -> None:
        logger.debug(f"Exception:: {messages}")

        self.messages = messages
        self.traceback = traceback

        super().__init__(**kwargs)

    def __str__(self) -> str:
        return f"{dict(self.messages)}"

    def __reduce__(self) -> tuple[Any, tuple[Any]]:
        return (self.__class__, (self.messages,))


class ConfigurationError(PostLedgerException):
    """Improper Configuration encountered like:
    * A record size that leaves no room for content
    * A missing environment variable referenced in a config file
    * No configuration file found where one was expected
    """


class AlreadyExistsError(PostLedgerException):
    """A live record already occupies the derived address"""


class NotFoundError(PostLedgerException):
    """No live record at the address, or the parent post is missing"""


class AuthorizationError(PostLedgerException):
    """Actor is not the record owner, or the supplied address does not
    match the address re-derived from the record"""


class RecordOverflowError(PostLedgerException, OverflowError):
    """Payload does not fit in the record's byte budget"""


class CorruptRecordError(PostLedgerException):
    """Stored bytes cannot be decoded into a well-formed record"""


class InvariantViolation(PostLedgerException):
    """A consistency rule between records would be broken.

    Signals a bug upstream. It is never expected in correct use."""


class AddressDerivationError(PostLedgerException):
    """Seeds are invalid or no usable address exists for them"""


class InvalidDataError(PostLedgerExceptionWithMessage):
    """Data (type, value) is invalid"""


class InvalidOperationError(PostLedgerException):
    """Operation being performed is not permitted"""


class TransactionError(PostLedgerException):
    """Raised when a Unit of Work fails to commit"""


class WriteConflictError(TransactionError):
    """Another writer committed a change to a touched account first"""
