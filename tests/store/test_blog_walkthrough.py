"""End to end lifecycle of a post and its comments"""

import pytest

from postledger.exceptions import NotFoundError


def test_post_and_comment_lifecycle(store, author, clock):
    post_address = store.create_post(
        author, "My First Post", "This is the content of my first post.", 1
    )
    post = store.read_post(post_address)
    assert post.comment_count == 0
    assert post.title == "My First Post"

    clock.advance(30)
    store.update_post(
        post_address, author, "My Updated Post", "This is the content of my first post."
    )
    post = store.read_post(post_address)
    assert post.title == "My Updated Post"
    assert post.updated_at >= post.created_at

    comment_address = store.add_comment(post_address, author, "Great post!", 1)
    assert store.read_post(post_address).comment_count == 1

    store.delete_comment(comment_address, post_address, author)
    assert store.read_post(post_address).comment_count == 0
    with pytest.raises(NotFoundError):
        store.read_comment(comment_address)

    store.delete_post(post_address, author)
    with pytest.raises(NotFoundError):
        store.read_post(post_address)


@pytest.mark.slow
def test_many_comments_keep_the_counter_consistent(store, post_address, author):
    addresses = [
        store.add_comment(post_address, author, f"Comment {index}", index)
        for index in range(1, 201)
    ]
    for address in addresses[::2]:
        store.delete_comment(address, post_address, author)

    assert store.read_post(post_address).comment_count == 100
    assert store.check_consistency(post_address) == 100
