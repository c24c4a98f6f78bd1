"""Reports, strikes, bans, account deletion and admin-granted badges."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from ..errors import InvalidInputError, NotFoundError
from ..models import (
    AdminLog,
    Badge,
    BadgeType,
    BannedEmail,
    Comment,
    Report,
    Strike,
    User,
)
from ..store import DocumentStore
from ..utils import generate_id, iso_date, normalize_email
from .achievements import AchievementEngine
from .notifications import NotificationService

logger = logging.getLogger(__name__)

ANONYMOUS_REPORTER = "anon"
STRIKE_BAN_REASON = "Accumulation of {count} active warnings."


@dataclass(slots=True)
class DashboardStats:
    total_users: int
    banned_users: int
    pending_reports: int
    active_warnings: int


def _prune_comments(comments: list[Comment], user_id: str) -> list[Comment]:
    kept: list[Comment] = []
    for comment in comments:
        if comment.user_id == user_id:
            continue
        comment.replies = _prune_comments(comment.replies, user_id)
        kept.append(comment)
    return kept


class ModerationService:
    def __init__(
        self,
        store: DocumentStore,
        notifications: NotificationService,
        achievements: AchievementEngine,
    ) -> None:
        self._store = store
        self._notifications = notifications
        self._achievements = achievements

    def _log(self, admin: User, action: str, target_user_id: str) -> None:
        self._store.document.admin_logs.append(
            AdminLog(
                id=generate_id("log"),
                action_type=action,
                admin_id=admin.id,
                admin_name=admin.name,
                target_user_id=target_user_id,
                timestamp=self._store.now(),
            )
        )

    def submit_report(
        self,
        target_id: str,
        target_type: Literal["list", "user"],
        reason: str,
        details: str = "",
    ) -> Report:
        """File a report; without a session the report is anonymous."""

        document = self._store.document
        if target_type == "user":
            self._store.require_user(target_id)
        elif target_type == "list":
            self._store.require_list(target_id)
        else:
            raise InvalidInputError(f"Unknown report target type: {target_type}")

        reporter = self._store.current_user()
        report = Report(
            id=generate_id("rep"),
            reporter_id=reporter.id if reporter else ANONYMOUS_REPORTER,
            reporter_name=reporter.name if reporter else "Anonymous",
            target_id=target_id,
            target_type=target_type,
            reason=str(getattr(reason, "value", reason)),
            details=details,
            timestamp=self._store.now(),
        )
        with self._store.mutation():
            document.reports.append(report)
        return report

    def reports(self, status: Literal["pending", "resolved"] | None = None) -> list[Report]:
        self._store.require_admin()
        return [
            report
            for report in self._store.document.reports
            if status is None or report.status == status
        ]

    def respond_to_report(self, report_id: str, response: str) -> Report:
        admin = self._store.require_admin()
        report = next(
            (item for item in self._store.document.reports if item.id == report_id),
            None,
        )
        if report is None:
            raise NotFoundError("report", report_id)
        with self._store.mutation():
            report.status = "resolved"
            report.admin_response = response
            report.responded_at = self._store.now()
            if report.reporter_id != ANONYMOUS_REPORTER:
                self._notifications.emit(
                    report.reporter_id,
                    "admin_response",
                    admin,
                    target_id=report.target_id,
                    target_preview="Your report has been reviewed.",
                )
            self._log(admin, "report_response", report.target_id)
        return report

    def active_strikes(self, user: User) -> list[Strike]:
        now = self._store.now()
        return [strike for strike in user.strikes if strike.expires_at > now]

    def issue_strike(self, user_id: str, reason: str) -> Strike:
        """Warn a user; reaching the active-strike threshold bans them once."""

        admin = self._store.require_admin()
        user = self._store.require_user(user_id)
        if user.id == admin.id:
            raise InvalidInputError("Administrators cannot warn themselves")

        now = self._store.now()
        strike = Strike(
            id=generate_id("stk"),
            reason=reason,
            timestamp=now,
            expires_at=now + self._store.settings.strike_retention_ms,
            issued_by_admin_id=admin.id,
        )
        with self._store.mutation():
            user.strikes.append(strike)
            self._notifications.emit(
                user.id,
                "strike_alert",
                admin,
                target_preview=f"Warning applied: {reason}",
            )
            self._log(admin, "strike", user.id)
            active = len(self.active_strikes(user))
            if active >= self._store.settings.strike_ban_threshold and not user.is_permanently_banned:
                self.ban_user(user.id, STRIKE_BAN_REASON.format(count=active))
        return strike

    def ban_user(self, user_id: str, reason: str) -> User:
        admin = self._store.require_admin()
        user = self._store.require_user(user_id)
        if user.id == admin.id:
            raise InvalidInputError("Administrators cannot ban themselves")
        normalized = normalize_email(user.email)
        with self._store.mutation() as document:
            user.is_permanently_banned = True
            user.ban_reason = reason
            if not any(entry.email == normalized for entry in document.blacklist):
                document.blacklist.append(
                    BannedEmail(email=normalized, banned_at=self._store.now(), reason=reason)
                )
            self._log(admin, "ban", user.id)
        logger.info("Banned user %s: %s", user.id, reason)
        return user

    def delete_user(self, user_id: str) -> None:
        """Remove a user and every trace of them from the document."""

        admin = self._store.require_admin()
        target = self._store.require_user(user_id)
        if target.id == admin.id:
            raise InvalidInputError("Administrators cannot delete themselves")

        with self._store.mutation() as document:
            removed_lists = {
                media_list.id for media_list in document.lists if media_list.creator_id == user_id
            }
            document.users.remove(target)
            document.lists = [
                media_list for media_list in document.lists if media_list.id not in removed_lists
            ]
            document.reports = [
                report
                for report in document.reports
                if report.reporter_id != user_id
                and report.target_id != user_id
                and report.target_id not in removed_lists
            ]
            document.notifications = [
                notification
                for notification in document.notifications
                if notification.user_id != user_id and notification.actor_id != user_id
            ]

            for user in document.users:
                if user_id in user.following_ids:
                    user.following_ids.remove(user_id)
                    user.following = max(0, user.following - 1)
                if user.id in target.following_ids:
                    user.followers = max(0, user.followers - 1)
                user.followed_list_ids = [
                    list_id for list_id in user.followed_list_ids if list_id not in removed_lists
                ]

            for media_list in document.lists:
                media_list.reactions = [
                    reaction for reaction in media_list.reactions if reaction.user_id != user_id
                ]
                media_list.comments = _prune_comments(media_list.comments, user_id)
                for item in media_list.items:
                    item.tracking.pop(user_id, None)

            self._log(admin, "delete_user", user_id)
        logger.info("Deleted user %s and %s lists", user_id, len(removed_lists))

    def create_global_badge(self, name: str, description: str, icon: str) -> Badge:
        admin = self._store.require_admin()
        if not name.strip():
            raise InvalidInputError("A badge needs a name")
        badge = Badge(
            id=generate_id("gb"),
            name=name.strip(),
            description=description,
            icon=icon,
            type=BadgeType.OFFICIAL,
            earned_date=iso_date(self._store.now()),
        )
        with self._store.mutation() as document:
            document.global_badges.append(badge)
        logger.info("%s created global badge %s", admin.id, badge.id)
        return badge

    def global_badges(self) -> list[Badge]:
        return list(self._store.document.global_badges)

    def grant_badge(self, user_id: str, badge_id: str) -> Badge | None:
        """Grant a registry badge; returns ``None`` when the user already holds it."""

        admin = self._store.require_admin()
        user = self._store.require_user(user_id)
        template = next(
            (badge for badge in self._store.document.global_badges if badge.id == badge_id),
            None,
        )
        if template is None:
            raise NotFoundError("badge", badge_id)
        with self._store.mutation():
            badge = self._achievements.grant(user, template, actor=admin)
            if badge is not None:
                self._log(admin, "grant_badge", user.id)
        return badge

    def all_users(self) -> list[User]:
        self._store.require_admin()
        return list(self._store.document.users)

    def admin_logs(self) -> list[AdminLog]:
        self._store.require_admin()
        return sorted(self._store.document.admin_logs, key=lambda log: log.timestamp, reverse=True)

    def dashboard_stats(self) -> DashboardStats:
        self._store.require_admin()
        users = self._store.document.users
        return DashboardStats(
            total_users=len(users),
            banned_users=sum(1 for user in users if user.is_permanently_banned),
            pending_reports=sum(
                1 for report in self._store.document.reports if report.status == "pending"
            ),
            active_warnings=sum(len(self.active_strikes(user)) for user in users),
        )
