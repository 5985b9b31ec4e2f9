"""Base classes for host storage backends"""

from abc import ABCMeta, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional

from postledger.identity import Address


@dataclass(frozen=True)
class Account:
    """Bytes held at an address.

    ``capacity`` is the storage reserved when the account was allocated and
    never changes. ``version`` identifies the committed write that produced
    this state, and is ``None`` for writes still pending in a session.
    """

    data: bytes
    capacity: int
    version: Optional[int] = None


class BaseSession(metaclass=ABCMeta):
    """A transactional view over a storage backend.

    Reads see committed state plus this session's own pending writes.
    Nothing is visible to other sessions until ``commit``.
    """

    @abstractmethod
    def get(self, address: Address) -> Optional[Account]:
        """Return the account at ``address``, or ``None`` if there is none"""

    @abstractmethod
    def put(self, address: Address, data: bytes, capacity: int) -> None:
        """Stage a write of ``data`` into an account of ``capacity`` bytes"""

    @abstractmethod
    def delete(self, address: Address) -> None:
        """Stage removal of the account at ``address``"""

    @abstractmethod
    def scan(self) -> Iterator[tuple[Address, Account]]:
        """Iterate over all accounts visible to this session"""

    @abstractmethod
    def savepoint(self):
        """Return a marker that ``restore`` can roll pending writes back to"""

    @abstractmethod
    def restore(self, savepoint) -> None:
        """Discard pending writes staged after ``savepoint`` was taken"""

    @abstractmethod
    def commit(self) -> None:
        """Apply all staged writes at once, or none of them"""

    @abstractmethod
    def rollback(self) -> None:
        """Discard all staged writes"""

    @abstractmethod
    def close(self) -> None:
        """Release resources held by the session"""


class BaseStorage(metaclass=ABCMeta):
    """Storage backend that owns the bytes of every account.

    In postledger's case, the session scope and the transaction scope match.
    A new session is created when a Unit of Work first touches the storage
    and is discarded after the Unit of Work commits or rolls back.
    """

    def __init__(self, name: str = "default"):
        self.name = name

    @abstractmethod
    def get_session(self) -> BaseSession:
        """Return a new session against the storage"""

    @abstractmethod
    def is_alive(self) -> bool:
        """Check if the storage is reachable"""

    @abstractmethod
    def _data_reset(self) -> None:
        """Remove all accounts. Meant for tests."""
