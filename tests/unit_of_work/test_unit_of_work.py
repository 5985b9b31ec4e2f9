import dataclasses

import pytest
from mock import Mock

from postledger import UnitOfWork, current_uow
from postledger.exceptions import (
    AlreadyExistsError,
    InvalidOperationError,
    TransactionError,
    WriteConflictError,
)
from postledger.identity import Address


class TestLifecycle:
    def test_context_is_pushed_and_popped(self):
        assert not current_uow

        with UnitOfWork() as uow:
            assert current_uow.in_progress
            assert current_uow._get_current_object() is uow

        assert not current_uow
        assert uow.in_progress is False

    def test_starting_twice(self):
        uow = UnitOfWork()
        uow.start()

        with pytest.raises(InvalidOperationError):
            uow.start()

        uow.rollback()

    def test_commit_without_start(self):
        with pytest.raises(InvalidOperationError):
            UnitOfWork().commit()

    def test_rollback_without_start(self):
        with pytest.raises(InvalidOperationError):
            UnitOfWork().rollback()

    def test_one_session_per_storage(self, storage):
        with UnitOfWork() as uow:
            assert uow.get_session(storage) is uow.get_session(storage)

    def test_nested_operation_restores_only_its_own_writes(self, storage):
        first, second = Address(b"\x01" * 32), Address(b"\x02" * 32)
        with UnitOfWork() as uow:
            uow.get_session(storage).put(first, b"kept", 10)

            with pytest.raises(RuntimeError):
                with uow.nested(storage) as session:
                    session.put(second, b"discarded", 10)
                    raise RuntimeError("Abort")

        assert storage._read(first).data == b"kept"
        assert storage._read(second) is None


class TestAtomicity:
    def test_changes_land_on_commit(self, store, storage, author):
        with UnitOfWork():
            address = store.create_post(author, "Title", "Content", 1)

            assert storage._read(address) is None

        assert store.read_post(address).title == "Title"

    def test_exceptions_roll_everything_back(self, store, author):
        with pytest.raises(RuntimeError):
            with UnitOfWork():
                post_address = store.create_post(author, "Title", "Content", 1)
                store.add_comment(post_address, author, "First!", 1)
                raise RuntimeError("Abort")

        assert store.list_posts() == []
        assert store.list_comments(post_address) == []

    def test_explicit_rollback(self, store, author):
        uow = UnitOfWork()
        uow.start()
        store.create_post(author, "Title", "Content", 1)
        uow.rollback()

        assert store.list_posts() == []

    def test_failed_operation_does_not_spoil_the_rest(self, store, author):
        with UnitOfWork():
            address = store.create_post(author, "Title", "Content", 1)

            with pytest.raises(AlreadyExistsError):
                store.create_post(author, "Duplicate", "Content", 1)

        assert store.read_post(address).title == "Title"

    def test_operations_see_earlier_staged_writes(self, store, author):
        with UnitOfWork():
            post_address = store.create_post(author, "Title", "Content", 1)
            store.add_comment(post_address, author, "First!", 1)
            store.add_comment(post_address, author, "Second!", 2)

        assert store.read_post(post_address).comment_count == 2


class TestCommitFailures:
    def test_write_conflict_is_raised_as_is(self, store, storage, author):
        address = store.create_post(author, "Title", "Content", 1)
        original = store.read_post(address)

        with pytest.raises(WriteConflictError):
            with UnitOfWork():
                store.update_post(address, author, "Mine", "Content")

                # Someone else commits first
                concurrent = storage.get_session()
                concurrent.put(
                    address,
                    store.codec.encode(dataclasses.replace(original, title="Theirs")),
                    1000,
                )
                concurrent.commit()

        assert store.read_post(address).title == "Theirs"

    def test_other_errors_are_wrapped(self, store, author):
        with pytest.raises(TransactionError) as exc:
            with UnitOfWork() as uow:
                store.create_post(author, "Title", "Content", 1)
                for session in uow._sessions.values():
                    session.commit = Mock(side_effect=RuntimeError("Disk full"))

        assert "Unit of Work commit failed" in str(exc.value)
        assert exc.value.extra_info["original_exception"] == "RuntimeError"
        assert exc.value.extra_info["original_message"] == "Disk full"
        assert exc.value.extra_info["sessions"] == ["default"]
        assert not current_uow
