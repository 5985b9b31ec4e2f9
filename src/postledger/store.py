"""The account store: lifecycle of Post and Comment records.

Every operation runs inside a Unit of Work. When the caller already has one
in progress the operation joins it, otherwise it opens and commits its own.
Either way an operation that fails leaves no trace: validation happens
before anything is staged, and staged writes of a failed operation are
rolled back to where they were when it started.
"""

from __future__ import annotations

import dataclasses
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Union

from postledger.adapters.memory import MemoryStorage
from postledger.address import Namespace, derive_address
from postledger.codec import RecordCodec
from postledger.config import Config
from postledger.exceptions import (
    AlreadyExistsError,
    ConfigurationError,
    InvalidDataError,
    NotFoundError,
    RecordOverflowError,
)
from postledger.guard import authorize, authorize_parent
from postledger.identity import Address, Identity, RecordId
from postledger.port.storage import BaseSession, BaseStorage
from postledger.records import Comment, Post, Record
from postledger.relations import RelationMaintainer
from postledger.serializers import (
    CommentPayloadSchema,
    CommentUpdateSchema,
    PostPayloadSchema,
    load_payload,
)
from postledger.unit_of_work import UnitOfWork
from postledger.utils import unix_timestamp
from postledger.utils.globals import current_uow

logger = logging.getLogger(__name__)

RecordIdLike = Union[RecordId, int, bytes, str, None]


class AccountStore:
    """Creates, reads, updates and deletes posts and comments.

    :param storage: the host storage that owns the accounts' bytes.
    :param config: a ``Config``; defaults are used when omitted.
    :param clock: callable returning the current unix time in seconds.
    """

    def __init__(
        self,
        storage: Optional[BaseStorage] = None,
        config: Optional[Config] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.config = config if config is not None else Config.load_from_dict()
        self.storage = storage if storage is not None else MemoryStorage()
        self.clock = clock or unix_timestamp

        self.codec = RecordCodec.from_config(self.config)
        try:
            self.program_id = Identity(self.config["program_id"])
        except InvalidDataError:
            raise ConfigurationError(
                f"program_id {self.config['program_id']!r} is not a 32 byte hex key"
            ) from None
        self.relations = RelationMaintainer(self.codec)

    @classmethod
    def from_path(cls, path: str, **kwargs) -> AccountStore:
        """Build a store configured from the config file nearest to ``path``"""
        return cls(config=Config.load_from_path(path), **kwargs)

    ##################
    # Generic access #
    ##################

    def create(
        self,
        namespace: Union[Namespace, str],
        owner: Identity,
        record_id: RecordIdLike = None,
        payload: Optional[dict] = None,
    ) -> Address:
        try:
            namespace = Namespace(namespace)
        except ValueError:
            raise InvalidDataError(
                {"namespace": [f"Unknown namespace {namespace!r}"]}
            ) from None

        if namespace == Namespace.POST:
            data = load_payload(PostPayloadSchema, payload or {})
            return self.create_post(owner, data["title"], data["content"], record_id)

        data = load_payload(CommentPayloadSchema, payload or {})
        return self.add_comment(data["post"], owner, data["content"], record_id)

    def read(self, address: Address) -> Record:
        address = Address(address)
        with self._unit_of_work() as session:
            return self._load(session, address)

    def update(self, address: Address, actor: Identity, payload: dict) -> None:
        record = self.read(address)
        if isinstance(record, Post):
            data = load_payload(PostPayloadSchema, payload)
            self.update_post(address, actor, data["title"], data["content"])
        else:
            data = load_payload(CommentUpdateSchema, payload)
            self.update_comment(address, record.parent, actor, data["content"])

    def delete(self, address: Address, actor: Identity) -> None:
        record = self.read(address)
        if isinstance(record, Post):
            self.delete_post(address, actor)
        else:
            self.delete_comment(address, record.parent, actor)

    def derive(
        self, namespace: Union[Namespace, str], scope, record_id: RecordIdLike
    ) -> tuple[Address, int]:
        return derive_address(namespace, scope, self._record_id(record_id), self.program_id)

    #########
    # Posts #
    #########

    def create_post(
        self,
        owner: Identity,
        title: str,
        content: str,
        post_id: RecordIdLike = None,
    ) -> Address:
        owner = self._identity(owner)
        post_id = self._record_id(post_id)
        self._check_texts(Namespace.POST, title=title, content=content)

        address, _ = self.derive(Namespace.POST, owner, post_id)
        with self._unit_of_work() as session:
            self._ensure_vacant(session, address, Namespace.POST)

            now = self.clock()
            post = Post(
                owner=owner,
                id=post_id,
                title=title,
                content=content,
                comment_count=0,
                created_at=now,
                updated_at=now,
            )
            self._allocate(session, address, post)

        logger.info(f"Created post {address} for {owner}")
        return address

    def read_post(self, address: Address) -> Post:
        address = Address(address)
        with self._unit_of_work() as session:
            return self._load(session, address, Namespace.POST)

    def update_post(
        self, address: Address, actor: Identity, title: str, content: str
    ) -> None:
        address, actor = Address(address), self._identity(actor)

        with self._unit_of_work() as session:
            post = self._load(session, address, Namespace.POST)
            authorize(post, actor, address, self.program_id)
            self._check_texts(Namespace.POST, title=title, content=content)

            self._rewrite(
                session,
                address,
                dataclasses.replace(
                    post,
                    title=title,
                    content=content,
                    updated_at=max(self.clock(), post.updated_at),
                ),
            )

        logger.debug(f"Updated post {address}")

    def delete_post(self, address: Address, actor: Identity) -> None:
        """Delete a post along with all of its comments"""
        address, actor = Address(address), self._identity(actor)

        with self._unit_of_work() as session:
            post = self._load(session, address, Namespace.POST)
            authorize(post, actor, address, self.program_id)

            removed = 0
            for comment_address, _ in self._comments_of(session, address):
                session.delete(comment_address)
                removed += 1
            session.delete(address)

        logger.info(f"Deleted post {address} and {removed} comment(s)")

    def list_posts(self, owner: Optional[Identity] = None) -> list[tuple[Address, Post]]:
        owner = self._identity(owner) if owner is not None else None
        with self._unit_of_work() as session:
            posts = [
                (address, record)
                for address, record in self._scan(session, Namespace.POST)
                if owner is None or record.owner == owner
            ]
        return sorted(posts, key=lambda item: (item[1].created_at, str(item[0])))

    ############
    # Comments #
    ############

    def add_comment(
        self,
        post_address: Address,
        owner: Identity,
        content: str,
        comment_id: RecordIdLike = None,
    ) -> Address:
        post_address, owner = Address(post_address), self._identity(owner)
        comment_id = self._record_id(comment_id)
        self._check_texts(Namespace.COMMENT, content=content)

        address, _ = self.derive(Namespace.COMMENT, post_address, comment_id)
        with self._unit_of_work() as session:
            # The parent has to exist before anything is written
            self.relations.load_parent(session, post_address)
            self._ensure_vacant(session, address, Namespace.COMMENT)

            now = self.clock()
            comment = Comment(
                owner=owner,
                id=comment_id,
                parent=post_address,
                content=content,
                created_at=now,
                updated_at=now,
            )
            self._allocate(session, address, comment)
            post = self.relations.comment_added(session, post_address)

        logger.info(
            f"Added comment {address} to post {post_address} "
            f"({post.comment_count} comment(s))"
        )
        return address

    def read_comment(self, address: Address) -> Comment:
        address = Address(address)
        with self._unit_of_work() as session:
            return self._load(session, address, Namespace.COMMENT)

    def update_comment(
        self,
        address: Address,
        post_address: Address,
        actor: Identity,
        content: str,
    ) -> None:
        address, post_address = Address(address), Address(post_address)
        actor = self._identity(actor)

        with self._unit_of_work() as session:
            comment = self._load(session, address, Namespace.COMMENT)
            authorize_parent(comment, post_address)
            authorize(comment, actor, address, self.program_id)
            self._check_texts(Namespace.COMMENT, content=content)

            self._rewrite(
                session,
                address,
                dataclasses.replace(
                    comment,
                    content=content,
                    updated_at=max(self.clock(), comment.updated_at),
                ),
            )

        logger.debug(f"Updated comment {address}")

    def delete_comment(
        self, address: Address, post_address: Address, actor: Identity
    ) -> None:
        address, post_address = Address(address), Address(post_address)
        actor = self._identity(actor)

        with self._unit_of_work() as session:
            comment = self._load(session, address, Namespace.COMMENT)
            authorize_parent(comment, post_address)
            authorize(comment, actor, address, self.program_id)

            session.delete(address)
            post = self.relations.comment_removed(session, post_address)

        logger.info(
            f"Deleted comment {address} from post {post_address} "
            f"({post.comment_count} comment(s) left)"
        )

    def list_comments(self, post_address: Address) -> list[tuple[Address, Comment]]:
        post_address = Address(post_address)
        with self._unit_of_work() as session:
            comments = list(self._comments_of(session, post_address))
        return sorted(comments, key=lambda item: (item[1].created_at, str(item[0])))

    def check_consistency(self, post_address: Address) -> int:
        """Verify a post's counter against its live comments"""
        with self._unit_of_work() as session:
            return self.relations.check_consistency(session, Address(post_address))

    ############
    # Internal #
    ############

    @contextmanager
    def _unit_of_work(self) -> Iterator[BaseSession]:
        if current_uow and current_uow.in_progress:
            with current_uow.nested(self.storage) as session:
                yield session
        else:
            with UnitOfWork() as uow:
                yield uow.get_session(self.storage)

    def _load(
        self,
        session: BaseSession,
        address: Address,
        namespace: Optional[Namespace] = None,
    ) -> Record:
        account = session.get(address)
        if account is None or (
            namespace is not None and self.codec.namespace_of(account.data) != namespace
        ):
            kind = namespace.value.capitalize() if namespace else "Record"
            raise NotFoundError(
                f"{kind} {address} does not exist",
                extra_info={"address": str(address)},
            )
        return self.codec.decode(account.data, address)

    def _ensure_vacant(self, session, address, namespace) -> None:
        if session.get(address) is not None:
            logger.warning(f"Refused to create {namespace.value} at occupied {address}")
            raise AlreadyExistsError(
                f"A record already exists at {address}",
                extra_info={"address": str(address)},
            )

    def _allocate(self, session, address, record) -> None:
        # Capacity is the worst case size, updates never resize
        capacity = self.codec.layout_for(record).total_size
        session.put(address, self.codec.encode(record), capacity)

    def _rewrite(self, session, address, record) -> None:
        account = session.get(address)
        data = self.codec.encode(record)
        if len(data) > account.capacity:
            raise RecordOverflowError(
                f"Updated {record.namespace.value} is {len(data)} bytes, "
                f"{account.capacity} bytes are allocated at {address}"
            )
        session.put(address, data, account.capacity)

    def _scan(self, session, namespace) -> Iterator[tuple[Address, Record]]:
        for address, account in session.scan():
            if self.codec.namespace_of(account.data) == namespace:
                yield address, self.codec.decode(account.data, address)

    def _comments_of(self, session, post_address) -> Iterator[tuple[Address, Comment]]:
        for address, comment in list(self._scan(session, Namespace.COMMENT)):
            if comment.parent == post_address:
                yield address, comment

    def _check_texts(self, namespace: Namespace, **texts) -> None:
        errors = {
            name: ["Not a valid string."]
            for name, value in texts.items()
            if not isinstance(value, str)
        }
        if errors:
            raise InvalidDataError(errors)
        self.codec.check_budgets(namespace, **texts)

    @staticmethod
    def _identity(value) -> Identity:
        return value if isinstance(value, Identity) else Identity(value)

    @staticmethod
    def _record_id(value: RecordIdLike) -> RecordId:
        if value is None:
            return RecordId.generate()
        return value if isinstance(value, RecordId) else RecordId(value)
