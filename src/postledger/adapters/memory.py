"""Implementation of a dictionary based account storage"""

import logging
from itertools import count
from threading import Lock
from typing import Iterator, Optional

from postledger.exceptions import WriteConflictError
from postledger.identity import Address
from postledger.port.storage import Account, BaseSession, BaseStorage

logger = logging.getLogger(__name__)

_ABSENT = None


class MemorySession(BaseSession):
    """Session over a ``MemoryStorage``.

    Writes are staged locally. Every account the session looks at has its
    committed version remembered, and commit is refused if any of those
    accounts changed in the meantime.
    """

    def __init__(self, storage: "MemoryStorage"):
        self._storage = storage
        self.is_active = True

        self._seen: dict[Address, Optional[int]] = {}
        self._writes: dict[Address, Optional[Account]] = {}

    def _observe(self, address: Address) -> Optional[Account]:
        account = self._storage._read(address)
        if address not in self._seen:
            self._seen[address] = account.version if account else _ABSENT
        return account

    def get(self, address):
        if address in self._writes:
            return self._writes[address]
        return self._observe(address)

    def put(self, address, data, capacity):
        self._observe(address)
        self._writes[address] = Account(data=bytes(data), capacity=capacity)

    def delete(self, address):
        self._observe(address)
        self._writes[address] = None

    def scan(self) -> Iterator[tuple[Address, Account]]:
        accounts = self._storage._snapshot()
        accounts.update(self._writes)
        for address, account in accounts.items():
            if account is not None:
                yield address, account

    def savepoint(self):
        return dict(self._writes)

    def restore(self, savepoint):
        self._writes = dict(savepoint)

    def commit(self):
        if self._writes:
            self._storage._apply(self._seen, self._writes)
        self._reset()

    def rollback(self):
        self._reset()

    def close(self):
        self.is_active = False

    def _reset(self):
        self._seen = {}
        self._writes = {}


class MemoryStorage(BaseStorage):
    """Storage class for in-memory accounts"""

    def __init__(self, name="default"):
        super().__init__(name)

        # Global in-memory store of account data
        self._accounts: dict[Address, Account] = {}
        self._lock = Lock()
        self._versions = count(1)

    def get_session(self):
        """Return a session object

        For the memory storage, a session stages writes in a dictionary of
        its own. Changes land in the shared accounts only on commit.
        """
        return MemorySession(self)

    def is_alive(self) -> bool:
        return True

    def _data_reset(self):
        """Reset data"""
        with self._lock:
            self._accounts = {}
            self._versions = count(1)

    def _read(self, address: Address) -> Optional[Account]:
        with self._lock:
            return self._accounts.get(address)

    def _snapshot(self) -> dict[Address, Account]:
        with self._lock:
            return dict(self._accounts)

    def _apply(self, seen, writes):
        with self._lock:
            conflicts = [
                address
                for address, version in seen.items()
                if self._version_of(address) != version
            ]
            if conflicts:
                logger.warning(
                    f"Refusing commit, {len(conflicts)} account(s) changed underneath"
                )
                raise WriteConflictError(
                    "Accounts were modified by a concurrent writer",
                    extra_info={"addresses": [str(address) for address in conflicts]},
                )

            for address, account in writes.items():
                if account is None:
                    self._accounts.pop(address, None)
                else:
                    self._accounts[address] = Account(
                        data=account.data,
                        capacity=account.capacity,
                        version=next(self._versions),
                    )

            logger.debug(f"Committed {len(writes)} account write(s)")

    def _version_of(self, address: Address) -> Optional[int]:
        account = self._accounts.get(address)
        return account.version if account else _ABSENT
