"""Reports, strikes, bans, account deletion and badge administration tests."""

from __future__ import annotations

import pytest

from watchquest.errors import (
    AccountBannedError,
    BannedEmailError,
    InvalidInputError,
    PermissionDenied,
)
from watchquest.models import ReportReason, WatchStatus
from watchquest.store import DocumentStore
from watchquest.utils import DAY_MS


def test_third_active_strike_bans_and_blacklists(app, login) -> None:
    login("admin1")

    for reason in ("Spam", "Trolling", "Spoilers"):
        app.moderation.issue_strike("u4", reason)

    ryan = app.store.document.find_user("u4")
    assert ryan.is_permanently_banned
    assert ryan.ban_reason == "Accumulation of 3 active warnings."
    assert [entry.email for entry in app.store.document.blacklist] == [
        "ryan@dundermifflin.com"
    ]
    alerts = [
        notification
        for notification in app.store.document.notifications
        if notification.user_id == "u4" and notification.type == "strike_alert"
    ]
    assert len(alerts) == 3


def test_banned_email_cannot_register_again(app, login) -> None:
    login("admin1")
    app.moderation.ban_user("u4", "Fraud")
    users_before = len(app.store.document.users)
    app.accounts.logout()

    with pytest.raises(BannedEmailError) as excinfo:
        app.accounts.register("Ryan Again", "ryan2", "Ryan@DunderMifflin.com", "pw")

    assert excinfo.value.ban_reason == "Fraud"
    assert len(app.store.document.users) == users_before


def test_banned_user_cannot_log_in(app, login) -> None:
    login("admin1")
    app.moderation.ban_user("u4", "Fraud")

    with pytest.raises(AccountBannedError):
        app.accounts.login("@wunderkind", "123")


def test_expired_strikes_do_not_count_towards_ban(app, login, clock) -> None:
    login("admin1")
    app.moderation.issue_strike("u4", "Spam")
    app.moderation.issue_strike("u4", "Spam")

    clock.advance(181 * DAY_MS)
    app.moderation.issue_strike("u4", "Spam")

    ryan = app.store.document.find_user("u4")
    assert not ryan.is_permanently_banned
    assert len(app.moderation.active_strikes(ryan)) == 1


def test_expired_strikes_are_dropped_after_reload(app, login, clock, storage, settings) -> None:
    login("admin1")
    app.moderation.issue_strike("u4", "Spam")
    clock.advance(181 * DAY_MS)

    reloaded = DocumentStore(storage, settings, clock=clock)
    reloaded.load()

    assert reloaded.document.find_user("u4").strikes == []


def test_moderation_requires_admin(app, login) -> None:
    login("u1")

    with pytest.raises(PermissionDenied):
        app.moderation.issue_strike("u4", "Spam")
    with pytest.raises(PermissionDenied):
        app.moderation.delete_user("u4")


def test_admin_cannot_moderate_themselves(app, login) -> None:
    login("admin1")

    with pytest.raises(InvalidInputError):
        app.moderation.delete_user("admin1")
    with pytest.raises(InvalidInputError):
        app.moderation.ban_user("admin1", "Oops")


def test_report_response_notifies_reporter(app, login) -> None:
    login("u2")
    report = app.moderation.submit_report("l3", "list", ReportReason.SPAM, "Not a movie list")

    login("admin1")
    resolved = app.moderation.respond_to_report(report.id, "Thanks, handled.")

    assert resolved.status == "resolved"
    assert resolved.reason == "SPAM"
    assert resolved.admin_response == "Thanks, handled."
    [notification] = [
        notification
        for notification in app.store.document.notifications
        if notification.user_id == "u2"
    ]
    assert notification.type == "admin_response"
    assert app.moderation.reports("pending") == []
    assert app.moderation.admin_logs()[0].action_type == "report_response"


def test_anonymous_reports_are_accepted(app, login) -> None:
    report = app.moderation.submit_report("u4", "user", "OTHER")

    login("admin1")
    app.moderation.respond_to_report(report.id, "Looked into it")

    assert report.reporter_id == "anon"
    assert app.store.document.notifications == []


def test_delete_user_removes_every_trace(app, login) -> None:
    login("u2")
    root = app.comments.add_comment("l1", "Jim was here")
    app.tracking.update_status("l1", "m1", WatchStatus.WATCHED)
    app.moderation.submit_report("u4", "user", "SPAM")
    jim_list = app.lists.create_list("Pranks", "", [])
    app.social.follow_list("l2")
    login("u3")
    app.comments.add_comment("l1", "Pam reply", reply_to_id=root.id)
    app.comments.add_comment("l2", "Pam on l2")
    login("u4")
    app.social.toggle_reaction(jim_list.id, "🔥")
    app.moderation.submit_report(jim_list.id, "list", "SPAM")

    login("admin1")
    app.moderation.delete_user("u2")

    document = app.store.document
    assert document.find_user("u2") is None
    assert document.find_list(jim_list.id) is None
    for user in document.users:
        assert "u2" not in user.following_ids
        assert user.following == len(user.following_ids)
        assert user.followers == sum(
            1 for other in document.users if user.id in other.following_ids
        )
    for media_list in document.lists:
        assert all(reaction.user_id != "u2" for reaction in media_list.reactions)
        assert all(comment.user_id != "u2" for comment in media_list.comments)
        for item in media_list.items:
            assert "u2" not in item.tracking
    assert all(
        report.reporter_id != "u2" and report.target_id not in {"u2", jim_list.id}
        for report in document.reports
    )
    assert all(
        notification.user_id != "u2" and notification.actor_id != "u2"
        for notification in document.notifications
    )
    assert [comment.text for comment in document.find_list("l2").comments] == ["Pam on l2"]
    assert document.admin_logs[-1].action_type == "delete_user"
    assert document.admin_logs[-1].target_user_id == "u2"


def test_granted_badge_is_a_snapshot(app, login) -> None:
    login("admin1")
    badge = app.moderation.create_global_badge("Dundie", "Annual award", "fa-trophy")

    granted = app.moderation.grant_badge("u3", badge.id)
    again = app.moderation.grant_badge("u3", badge.id)

    assert granted is not None and again is None
    with app.store.mutation() as document:
        document.global_badges[-1].name = "Renamed Dundie"
    pam = app.store.document.find_user("u3")
    assert next(item for item in pam.badges if item.id == badge.id).name == "Dundie"
    assert any(
        notification.type == "achievement" and notification.actor_id == "admin1"
        for notification in app.store.document.notifications
        if notification.user_id == "u3"
    )


def test_dashboard_stats(app, login) -> None:
    login("admin1")
    app.moderation.issue_strike("u5", "Gossip")
    app.moderation.submit_report("u5", "user", "SPAM")

    stats = app.moderation.dashboard_stats()

    assert stats.total_users == 7
    assert stats.banned_users == 0
    assert stats.pending_reports == 1
    assert stats.active_warnings == 1
