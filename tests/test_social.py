"""Follow graph, reactions and activity feed tests."""

from __future__ import annotations

import pytest

from watchquest.errors import PermissionDenied, SelfFollowError
from watchquest.models import NotificationSettings


def _assert_counters_consistent(document) -> None:
    for user in document.users:
        assert user.following == len(user.following_ids)
        assert user.followers == sum(
            1 for other in document.users if user.id in other.following_ids
        )


def _notifications(app, user_id: str, type: str):
    return [
        notification
        for notification in app.store.document.notifications
        if notification.user_id == user_id and notification.type == type
    ]


def test_follow_updates_both_counters_and_notifies(app, login) -> None:
    login("u4")

    app.social.follow("u3")

    ryan = app.store.document.find_user("u4")
    pam = app.store.document.find_user("u3")
    assert "u3" in ryan.following_ids
    assert ryan.following == 1
    assert pam.followers == 3
    [notification] = _notifications(app, "u3", "follow")
    assert notification.actor_id == "u4"


def test_follow_and_unfollow_are_idempotent(app, login) -> None:
    login("u4")

    app.social.follow("u3")
    app.social.follow("u3")
    app.social.unfollow("u3")
    app.social.unfollow("u3")

    ryan = app.store.document.find_user("u4")
    assert ryan.following_ids == []
    assert ryan.following == 0
    assert len(_notifications(app, "u3", "follow")) == 1
    _assert_counters_consistent(app.store.document)


def test_counters_stay_consistent_across_sequences(app, login) -> None:
    steps = [
        ("u4", "follow", "u1"),
        ("u5", "follow", "u1"),
        ("u1", "unfollow", "u4"),
        ("u9", "follow", "u5"),
        ("u4", "unfollow", "u1"),
        ("u2", "unfollow", "u1"),
        ("u2", "follow", "u1"),
    ]
    for actor, action, target in steps:
        login(actor)
        getattr(app.social, action)(target)
        _assert_counters_consistent(app.store.document)


def test_self_follow_is_rejected(app, login) -> None:
    login("u2")

    with pytest.raises(SelfFollowError):
        app.social.follow("u2")


def test_muted_follow_notifications_are_suppressed(app, login) -> None:
    login("u3")
    app.notifications.update_settings(NotificationSettings(follows=False))

    login("u4")
    app.social.follow("u3")

    assert _notifications(app, "u3", "follow") == []


def test_followers_and_following_queries(app) -> None:
    assert {user.id for user in app.social.followers("u2")} == {"u1", "u3"}
    assert {user.id for user in app.social.following("u2")} == {"u1", "u3"}


def test_list_follows(app, login) -> None:
    login("u2")

    app.social.follow_list("l2")
    app.social.follow_list("l2")

    assert app.social.list_follower_count("l2") == 1
    assert [media_list.id for media_list in app.lists.followed_lists()] == ["l2"]
    app.social.unfollow_list("l2")
    assert app.social.list_follower_count("l2") == 0
    with pytest.raises(PermissionDenied):
        app.social.follow_list("l3")


def test_reaction_toggle_replace_and_clear(app, login) -> None:
    login("u4")

    added = app.social.toggle_reaction("l1", "🔥")
    replaced = app.social.toggle_reaction("l1", "😂")
    cleared = app.social.toggle_reaction("l1", "😂")

    assert [reaction.emoji for reaction in added if reaction.user_id == "u4"] == ["🔥"]
    assert [reaction.emoji for reaction in replaced if reaction.user_id == "u4"] == ["😂"]
    assert all(reaction.user_id != "u4" for reaction in cleared)
    assert len(_notifications(app, "u1", "like")) == 1


def test_reacting_to_own_list_does_not_notify(app, login) -> None:
    login("u1")

    app.social.toggle_reaction("l1", "👍")

    assert _notifications(app, "u1", "like") == []


def test_fifth_reacted_list_unlocks_social_badge(app, login) -> None:
    login("u4")
    created = [app.lists.create_list(f"Pick {index}", "", []).id for index in range(3)]
    app.accounts.register("Toby Flenderson", "toby", "toby@hr.com", "secret")
    toby_id = app.store.current_user_id

    for list_id in ["l1", "l2", *created[:2]]:
        app.social.toggle_reaction(list_id, "❤️")
    assert not app.store.document.find_user(toby_id).has_badge("ach_social_5")

    app.social.toggle_reaction(created[2], "❤️")

    assert app.store.document.find_user(toby_id).has_badge("ach_social_5")


def test_activity_feed_shows_followed_users(app, login) -> None:
    login("u4")
    media_list = app.lists.create_list("Ryan Started The Fire", "", [])

    login("u1")
    feed = app.social.activity_feed()

    assert feed[0].type == "list_created"
    assert feed[0].data.id == media_list.id
    assert all(item.user.id in {"u2", "u3", "u4"} for item in feed)
    badge_events = [item for item in feed if item.type == "badge_earned"]
    assert [item.data.id for item in badge_events] == ["ach_creator_1"]
