"""Notification fan-out gated by recipient preferences."""

from __future__ import annotations

import logging

from ..models import Notification, NotificationSettings, NotificationType, User
from ..store import DocumentStore
from ..utils import generate_id

logger = logging.getLogger(__name__)

SYSTEM_ACTOR_ID = "system"

# Notification types missing from this map are always delivered.
PREFERENCE_FLAGS: dict[str, str] = {
    "like": "likes",
    "comment": "comments",
    "reply": "comments",
    "follow": "follows",
    "mention": "mentions",
}


class NotificationService:
    """Emits notifications and serves the current user's inbox."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def emit(
        self,
        recipient_id: str,
        type: NotificationType,
        actor: User | None,
        *,
        target_id: str | None = None,
        target_preview: str | None = None,
    ) -> Notification | None:
        """Queue a notification inside the caller's mutation scope.

        ``actor=None`` stands for the system itself. Returns ``None`` when the
        notification was suppressed.
        """

        actor_id = actor.id if actor else SYSTEM_ACTOR_ID
        if actor_id == recipient_id:
            return None
        with self._store.mutation() as document:
            recipient = document.find_user(recipient_id)
            if recipient is None:
                return None
            if not self.accepts(recipient.notification_settings, type):
                logger.debug("%s muted %s notifications", recipient_id, type)
                return None
            notification = Notification(
                id=generate_id("n"),
                user_id=recipient_id,
                type=type,
                actor_id=actor_id,
                actor_name=actor.name if actor else self._store.settings.app_name,
                actor_avatar=actor.avatar if actor else "",
                target_id=target_id,
                target_preview=target_preview,
                timestamp=self._store.now(),
            )
            document.notifications.append(notification)
        return notification

    @staticmethod
    def accepts(settings: NotificationSettings, type: NotificationType) -> bool:
        flag = PREFERENCE_FLAGS.get(type)
        if flag is None:
            return True
        return bool(getattr(settings, flag))

    def inbox(self) -> list[Notification]:
        """Return the current user's notifications, newest first."""

        user_id = self._store.current_user_id
        notifications = [
            notification
            for notification in self._store.document.notifications
            if notification.user_id == user_id
        ]
        return sorted(notifications, key=lambda item: item.timestamp, reverse=True)

    def unread_count(self) -> int:
        user_id = self._store.current_user_id
        return sum(
            1
            for notification in self._store.document.notifications
            if notification.user_id == user_id and not notification.is_read
        )

    def mark_all_read(self) -> int:
        """Flip the read flag on every unread notification of the current user."""

        user = self._store.require_current_user()
        changed = 0
        with self._store.mutation() as document:
            for notification in document.notifications:
                if notification.user_id == user.id and not notification.is_read:
                    notification.is_read = True
                    changed += 1
        return changed

    def update_settings(self, settings: NotificationSettings) -> User:
        user = self._store.require_current_user()
        with self._store.mutation():
            user.notification_settings = settings.model_copy()
        return user
