"""Comment thread, mention and deletion tests."""

from __future__ import annotations

import pytest

from watchquest.errors import InvalidInputError, NotFoundError, PermissionDenied
from watchquest.services.comments import find_comment


def _inbox(app, user_id: str) -> list[tuple[str, str]]:
    return [
        (notification.type, notification.actor_id)
        for notification in app.store.document.notifications
        if notification.user_id == user_id
    ]


def test_comment_notifies_list_owner(app, login) -> None:
    login("u2")

    comment = app.comments.add_comment("l1", "  That's what she said  ")

    assert comment.text == "That's what she said"
    assert app.comments.thread("l1")[-1].id == comment.id
    assert _inbox(app, "u1") == [("comment", "u2")]


def test_reply_notifies_parent_author_and_owner(app, login) -> None:
    login("u2")
    parent = app.comments.add_comment("l1", "Classic")

    login("u3")
    app.comments.add_comment("l1", "Agreed", reply_to_id=parent.id)

    assert _inbox(app, "u2") == [("reply", "u3")]
    assert _inbox(app, "u1") == [("comment", "u2"), ("comment", "u3")]


def test_reply_to_a_reply_joins_the_thread(app, login) -> None:
    login("u2")
    root = app.comments.add_comment("l1", "Root")
    login("u3")
    first = app.comments.add_comment("l1", "First", reply_to_id=root.id)
    login("u4")
    second = app.comments.add_comment("l1", "Second", reply_to_id=first.id)

    thread = find_comment(app.store.document.find_list("l1").comments, root.id).comment
    assert [reply.id for reply in thread.replies] == [first.id, second.id]
    assert thread.replies[0].replies == []
    assert ("reply", "u4") in _inbox(app, "u3")


def test_mentions_notify_each_user_once(app, login) -> None:
    login("u3")

    app.comments.add_comment("l1", "@BIG_TUNA look at this, @big_tuna! cc @nobody @worlds_best_boss")

    assert _inbox(app, "u2") == [("mention", "u3")]
    assert _inbox(app, "u1") == [("mention", "u3")]


def test_commenting_on_own_list_does_not_notify(app, login) -> None:
    login("u1")

    app.comments.add_comment("l1", "I wrote this")

    assert _inbox(app, "u1") == []


def test_empty_comment_is_rejected(app, login) -> None:
    login("u2")

    with pytest.raises(InvalidInputError):
        app.comments.add_comment("l1", "   ")


def test_replying_to_missing_comment_raises(app, login) -> None:
    login("u2")

    with pytest.raises(NotFoundError):
        app.comments.add_comment("l1", "Hello?", reply_to_id="c_missing")


def test_comment_requires_list_visibility(app, login) -> None:
    login("u2")

    with pytest.raises(PermissionDenied):
        app.comments.add_comment("l3", "Let me in")


def test_only_author_owner_or_admin_can_delete(app, login) -> None:
    login("u2")
    comment = app.comments.add_comment("l1", "Bears. Beets.")

    login("u3")
    with pytest.raises(PermissionDenied):
        app.comments.delete_comment("l1", comment.id)
    assert find_comment(app.store.document.find_list("l1").comments, comment.id) is not None

    login("u1")
    app.comments.delete_comment("l1", comment.id)
    assert find_comment(app.store.document.find_list("l1").comments, comment.id) is None


def test_admin_deletes_thread_with_replies(app, login) -> None:
    login("u2")
    root = app.comments.add_comment("l1", "Root")
    login("u3")
    reply = app.comments.add_comment("l1", "Reply", reply_to_id=root.id)

    login("admin1")
    app.comments.delete_comment("l1", root.id)

    comments = app.store.document.find_list("l1").comments
    assert find_comment(comments, root.id) is None
    assert find_comment(comments, reply.id) is None


def test_author_can_delete_own_reply(app, login) -> None:
    login("u2")
    root = app.comments.add_comment("l1", "Root")
    login("u3")
    reply = app.comments.add_comment("l1", "Reply", reply_to_id=root.id)

    app.comments.delete_comment("l1", reply.id)

    remaining = find_comment(app.store.document.find_list("l1").comments, root.id)
    assert remaining.comment.replies == []


def test_deleting_missing_comment_raises(app, login) -> None:
    login("u1")

    with pytest.raises(NotFoundError):
        app.comments.delete_comment("l1", "c_missing")
