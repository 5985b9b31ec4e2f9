"""Authorization checks run before any record is mutated or deleted"""

import logging

from postledger.address import derive_address
from postledger.exceptions import AuthorizationError
from postledger.identity import Address, Identity, Key
from postledger.records import Comment, Record

logger = logging.getLogger(__name__)


def authorize(record: Record, actor: Identity, address: Address, program_id: Key) -> None:
    """Allow ``actor`` to change ``record`` only if it owns the record and
    ``address`` is the address the record itself derives to.

    Owner equality alone is not enough: a caller could point at one record's
    address while presenting another's contents, so the address is always
    re-derived from the stored record.
    """
    if actor != record.owner:
        logger.warning(
            f"Rejected {record.namespace.value} change at {address}: "
            f"{actor} is not the owner"
        )
        raise AuthorizationError(
            f"Actor is not the owner of the {record.namespace.value}",
            extra_info={"address": str(address), "actor": str(actor)},
        )

    expected, _ = derive_address(record.namespace, record.scope, record.id, program_id)
    if expected != address:
        logger.warning(
            f"Rejected {record.namespace.value} change at {address}: "
            f"record derives to {expected}"
        )
        raise AuthorizationError(
            f"Address does not match the {record.namespace.value} stored there",
            extra_info={"address": str(address), "expected": str(expected)},
        )


def authorize_parent(comment: Comment, post_address: Address) -> None:
    """A comment can only be changed through the post it belongs to"""
    if comment.parent != post_address:
        logger.warning(
            f"Rejected comment change: {post_address} is not its parent post"
        )
        raise AuthorizationError(
            "Comment does not belong to the given post",
            extra_info={"parent": str(comment.parent), "post": str(post_address)},
        )
