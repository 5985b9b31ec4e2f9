import pytest

from postledger.exceptions import InvalidDataError, NotFoundError
from postledger.records import Comment, Post


class TestCreate:
    def test_create_post(self, store, author):
        address = store.create(
            "post", author, 1, {"title": "Title", "content": "Content"}
        )

        post = store.read(address)
        assert isinstance(post, Post)
        assert post.title == "Title"

    def test_create_comment(self, store, post_address, other_user):
        address = store.create(
            "comment", other_user, 1, {"content": "Hi", "post": str(post_address)}
        )

        comment = store.read(address)
        assert isinstance(comment, Comment)
        assert comment.parent == post_address
        assert store.read(post_address).comment_count == 1

    def test_missing_fields(self, store, author):
        with pytest.raises(InvalidDataError) as exc:
            store.create("post", author, 1, {"title": "Title"})

        assert exc.value.messages == {"content": ["Missing data for required field."]}

    def test_unknown_fields(self, store, author):
        with pytest.raises(InvalidDataError) as exc:
            store.create(
                "post", author, 1, {"title": "T", "content": "C", "rating": 5}
            )

        assert "rating" in exc.value.messages

    def test_malformed_parent_address(self, store, author):
        with pytest.raises(InvalidDataError) as exc:
            store.create("comment", author, 1, {"content": "Hi", "post": "nope"})

        assert exc.value.messages == {"post": ["Not a valid address."]}

    def test_unknown_namespace(self, store, author):
        with pytest.raises(InvalidDataError) as exc:
            store.create("draft", author, 1, {})

        assert "namespace" in exc.value.messages


class TestUpdateAndDelete:
    def test_update_post(self, store, post_address, author):
        store.update(post_address, author, {"title": "New", "content": "Body"})

        assert store.read(post_address).title == "New"

    def test_update_comment(self, store, post_address, author):
        address = store.add_comment(post_address, author, "Old", 1)

        store.update(address, author, {"content": "New"})

        assert store.read(address).content == "New"

    def test_delete_comment(self, store, post_address, author):
        address = store.add_comment(post_address, author, "Bye", 1)

        store.delete(address, author)

        with pytest.raises(NotFoundError):
            store.read(address)
        assert store.read(post_address).comment_count == 0

    def test_delete_post(self, store, post_address, author):
        store.delete(post_address, author)

        with pytest.raises(NotFoundError):
            store.read(post_address)
