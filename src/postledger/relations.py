"""Keeps each post's comment counter in step with its live comments"""

import dataclasses
import logging

from postledger.address import Namespace
from postledger.codec import U32_MAX, RecordCodec
from postledger.exceptions import InvariantViolation, NotFoundError
from postledger.identity import Address
from postledger.port.storage import BaseSession
from postledger.records import Comment, Post

logger = logging.getLogger(__name__)


class RelationMaintainer:
    """Adjusts a post's ``comment_count`` from inside comment create/delete.

    The new counter is staged on the same session as the comment change, so
    both land in one commit. Nothing here runs on its own.
    """

    def __init__(self, codec: RecordCodec) -> None:
        self.codec = codec

    def load_parent(self, session: BaseSession, post_address: Address) -> Post:
        account = session.get(post_address)
        if account is None or self.codec.namespace_of(account.data) != Namespace.POST:
            raise NotFoundError(
                f"Post {post_address} does not exist",
                extra_info={"address": str(post_address)},
            )
        return self.codec.decode(account.data, post_address)

    def comment_added(self, session: BaseSession, post_address: Address) -> Post:
        post = self.load_parent(session, post_address)
        if post.comment_count >= U32_MAX:
            raise InvariantViolation(
                f"Comment count of post {post_address} would overflow"
            )
        return self._write(session, post_address, post, post.comment_count + 1)

    def comment_removed(self, session: BaseSession, post_address: Address) -> Post:
        post = self.load_parent(session, post_address)
        if post.comment_count == 0:
            logger.error(
                f"Post {post_address} has no comments on record, cannot remove one"
            )
            raise InvariantViolation(
                f"Comment count of post {post_address} would go negative",
                extra_info={"address": str(post_address)},
            )
        return self._write(session, post_address, post, post.comment_count - 1)

    def check_consistency(self, session: BaseSession, post_address: Address) -> int:
        """Count the live comments of a post and compare with its counter.

        Returns the count, or raises ``InvariantViolation`` on a mismatch.
        """
        post = self.load_parent(session, post_address)
        live = 0
        for address, account in session.scan():
            if self.codec.namespace_of(account.data) != Namespace.COMMENT:
                continue
            comment = self.codec.decode(account.data, address)
            if isinstance(comment, Comment) and comment.parent == post_address:
                live += 1

        if live != post.comment_count:
            raise InvariantViolation(
                f"Post {post_address} counts {post.comment_count} comments, "
                f"{live} exist",
                extra_info={"recorded": post.comment_count, "live": live},
            )
        return live

    def _write(self, session, post_address, post, comment_count) -> Post:
        account = session.get(post_address)
        updated = dataclasses.replace(post, comment_count=comment_count)
        session.put(post_address, self.codec.encode(updated), account.capacity)
        logger.debug(f"Post {post_address} now counts {comment_count} comment(s)")
        return updated
