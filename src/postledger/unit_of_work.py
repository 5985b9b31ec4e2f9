import logging
from contextlib import contextmanager
from typing import Iterator

from postledger.exceptions import (
    InvalidOperationError,
    TransactionError,
    WriteConflictError,
)
from postledger.port.storage import BaseSession, BaseStorage
from postledger.utils.globals import _uow_context_stack

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Groups account changes so they are committed together or not at all.

    Sessions are opened lazily, one per storage, the first time an operation
    inside the Unit of Work touches that storage. While a Unit of Work is in
    progress it is reachable as ``current_uow`` and store operations join it
    instead of committing on their own.
    """

    def __init__(self):
        self._in_progress = False
        self._sessions: dict[str, BaseSession] = {}

    @property
    def in_progress(self):
        return self._in_progress

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commit()
            return None

        self.rollback()
        return False

    def start(self):
        """Begin the Unit of Work explicitly, for use without ``with``"""
        if self._in_progress:
            raise InvalidOperationError("UnitOfWork is already in progress")

        self._in_progress = True
        _uow_context_stack.push(self)

    def commit(self):
        self._ensure_in_progress()
        logger.debug(f"Committing {len(self._sessions)} session(s)")

        # Later operations on this thread must not join a Unit of Work
        # that is already on its way out
        self._leave_context()

        try:
            for session in self._sessions.values():
                session.commit()
        except WriteConflictError:
            # Conflicts reach the caller unwrapped
            self._rollback_sessions()
            raise
        except Exception as exc:
            logger.error(f"Commit failed, rolling back: {exc}")
            self._rollback_sessions()
            raise TransactionError(
                f"Unit of Work commit failed: {exc}",
                extra_info={
                    "original_exception": type(exc).__name__,
                    "original_message": str(exc),
                    "sessions": list(self._sessions),
                },
            ) from exc
        else:
            logger.debug("Commit successful")
        finally:
            self._close()

    def rollback(self):
        self._ensure_in_progress()

        self._leave_context()
        self._rollback_sessions()
        self._close()
        logger.debug("Unit of Work rolled back")

    def get_session(self, storage: BaseStorage) -> BaseSession:
        """Session of this Unit of Work on ``storage``, opened on first use"""
        session = self._sessions.get(storage.name)
        if session is None:
            session = self._sessions[storage.name] = storage.get_session()
        return session

    @contextmanager
    def nested(self, storage: BaseStorage) -> Iterator[BaseSession]:
        """Run one operation inside this Unit of Work.

        Writes the operation staged are discarded if it raises, while
        earlier operations in the Unit of Work keep theirs.
        """
        session = self.get_session(storage)
        savepoint = session.savepoint()
        try:
            yield session
        except Exception:
            session.restore(savepoint)
            raise

    def _ensure_in_progress(self):
        if not self._in_progress:
            raise InvalidOperationError("UnitOfWork is not in progress")

    def _leave_context(self):
        if _uow_context_stack.top is self:
            _uow_context_stack.pop()

    def _rollback_sessions(self):
        for name, session in self._sessions.items():
            try:
                session.rollback()
            except Exception as exc:
                logger.error(f"Rollback of session {name} failed: {exc}")

    def _close(self):
        for session in self._sessions.values():
            session.close()

        self._sessions = {}
        self._in_progress = False
