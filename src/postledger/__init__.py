__version__ = "0.1.0"

from .address import Namespace, derive_address
from .codec import RecordCodec
from .config import Config
from .identity import Address, Identity, RecordId
from .records import Comment, Post
from .store import AccountStore
from .unit_of_work import UnitOfWork
from .utils import get_version
from .utils.globals import current_uow

__all__ = [
    "AccountStore",
    "Address",
    "Comment",
    "Config",
    "current_uow",
    "derive_address",
    "get_version",
    "Identity",
    "Namespace",
    "Post",
    "RecordCodec",
    "RecordId",
    "UnitOfWork",
]
