"""Post and Comment records as held in the account store"""

from dataclasses import dataclass
from typing import ClassVar, Union

from postledger.address import Namespace
from postledger.identity import Address, Identity, Key, RecordId


@dataclass(frozen=True)
class Post:
    owner: Identity
    id: RecordId
    title: str
    content: str
    comment_count: int = 0
    created_at: int = 0
    updated_at: int = 0

    namespace: ClassVar[Namespace] = Namespace.POST

    @property
    def scope(self) -> Key:
        """Key that, with the id, addresses this post"""
        return self.owner


@dataclass(frozen=True)
class Comment:
    owner: Identity
    id: RecordId
    parent: Address
    content: str
    created_at: int = 0
    updated_at: int = 0

    namespace: ClassVar[Namespace] = Namespace.COMMENT

    @property
    def scope(self) -> Key:
        """Comments are addressed under their parent post"""
        return self.parent


Record = Union[Post, Comment]
