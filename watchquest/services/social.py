"""Social graph: user and list follows, reactions and the activity feed."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from ..errors import InvalidInputError, PermissionDenied, SelfFollowError
from ..models import Reaction, User
from ..store import DocumentStore
from ..utils import date_to_ms, generate_id
from .achievements import AchievementEngine
from .lists import can_view
from .notifications import NotificationService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ActivityItem:
    id: str
    type: Literal["list_created", "badge_earned"]
    user: User
    timestamp: int
    data: Any


class SocialGraph:
    """Maintains follow relations and their denormalised counters."""

    def __init__(
        self,
        store: DocumentStore,
        notifications: NotificationService,
        achievements: AchievementEngine,
    ) -> None:
        self._store = store
        self._notifications = notifications
        self._achievements = achievements

    def follow(self, target_id: str) -> User:
        me = self._store.require_current_user()
        if target_id == me.id:
            raise SelfFollowError("You cannot follow yourself")
        target = self._store.require_user(target_id)
        if target_id in me.following_ids:
            return me
        with self._store.mutation():
            me.following_ids.append(target_id)
            me.following += 1
            target.followers += 1
            self._notifications.emit(target_id, "follow", me, target_id=me.id)
            self._achievements.evaluate(target_id)
        return me

    def unfollow(self, target_id: str) -> User:
        me = self._store.require_current_user()
        target = self._store.require_user(target_id)
        if target_id not in me.following_ids:
            return me
        with self._store.mutation():
            me.following_ids.remove(target_id)
            me.following = max(0, me.following - 1)
            target.followers = max(0, target.followers - 1)
        return me

    def is_following(self, target_id: str) -> bool:
        me = self._store.current_user()
        return me is not None and target_id in me.following_ids

    def followers(self, user_id: str) -> list[User]:
        self._store.require_user(user_id)
        return [user for user in self._store.document.users if user_id in user.following_ids]

    def following(self, user_id: str) -> list[User]:
        user = self._store.require_user(user_id)
        return [other for other in self._store.document.users if other.id in user.following_ids]

    def follow_list(self, list_id: str) -> User:
        me = self._store.require_current_user()
        media_list = self._store.require_list(list_id)
        if not can_view(self._store.document, me, media_list):
            raise PermissionDenied("This list is not visible to you")
        if list_id in me.followed_list_ids:
            return me
        with self._store.mutation():
            me.followed_list_ids.append(list_id)
        return me

    def unfollow_list(self, list_id: str) -> User:
        me = self._store.require_current_user()
        if list_id not in me.followed_list_ids:
            return me
        with self._store.mutation():
            me.followed_list_ids.remove(list_id)
        return me

    def list_follower_count(self, list_id: str) -> int:
        self._store.require_list(list_id)
        return sum(1 for user in self._store.document.users if list_id in user.followed_list_ids)

    def toggle_reaction(self, list_id: str, emoji: str) -> list[Reaction]:
        """Set, replace or clear the current user's single reaction on a list."""

        me = self._store.require_current_user()
        media_list = self._store.require_list(list_id)
        if not emoji.strip():
            raise InvalidInputError("A reaction needs an emoji")
        if not can_view(self._store.document, me, media_list):
            raise PermissionDenied("This list is not visible to you")

        existing = next(
            (reaction for reaction in media_list.reactions if reaction.user_id == me.id),
            None,
        )
        with self._store.mutation():
            if existing is not None and existing.emoji == emoji:
                media_list.reactions.remove(existing)
            elif existing is not None:
                existing.emoji = emoji
                existing.timestamp = self._store.now()
            else:
                media_list.reactions.append(
                    Reaction(
                        id=generate_id("re"),
                        user_id=me.id,
                        emoji=emoji,
                        timestamp=self._store.now(),
                    )
                )
                self._notifications.emit(
                    media_list.creator_id,
                    "like",
                    me,
                    target_id=media_list.id,
                    target_preview=f'reacted {emoji} to your list "{media_list.title}"',
                )
                self._achievements.evaluate(me.id)
        return [reaction.model_copy() for reaction in media_list.reactions]

    def activity_feed(self) -> list[ActivityItem]:
        """Lists created and badges earned by the users the current user follows."""

        me = self._store.current_user()
        if me is None:
            return []
        document = self._store.document
        feed: list[ActivityItem] = []
        for user in document.users:
            if user.id not in me.following_ids:
                continue
            for media_list in document.lists:
                if media_list.creator_id != user.id or not can_view(document, me, media_list):
                    continue
                feed.append(
                    ActivityItem(
                        id=f"act_l_{media_list.id}",
                        type="list_created",
                        user=user,
                        timestamp=media_list.created_at,
                        data=media_list,
                    )
                )
            for badge in user.badges:
                if badge.id in user.hidden_badge_ids:
                    continue
                feed.append(
                    ActivityItem(
                        id=f"act_b_{user.id}_{badge.id}",
                        type="badge_earned",
                        user=user,
                        timestamp=date_to_ms(badge.earned_date),
                        data=badge,
                    )
                )
        return sorted(feed, key=lambda item: item.timestamp, reverse=True)
