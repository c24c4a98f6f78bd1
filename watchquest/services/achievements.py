"""Achievement evaluation, badge grants and the profile patch collection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from ..errors import NotFoundError
from ..models import Badge, BadgeType, MediaList, User
from ..official_badges import ACHIEVEMENT_RULES, OFFICIAL_BADGES, AchievementRule
from ..store import DocumentStore
from ..utils import DAY_MS, iso_date
from .notifications import NotificationService

if TYPE_CHECKING:
    from .progress import ProgressEngine

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UserStatistics:
    lists_created: int
    items_added: int
    lists_reacted: int
    followers: int
    days_joined: int

    def value(self, key: str) -> int:
        return int(getattr(self, key))


@dataclass(slots=True)
class AchievementRow:
    """Progress towards one official badge, as shown on the achievements page."""

    badge: Badge
    current: int
    target: int
    unlocked: bool
    earned_date: str | None = None


@dataclass(slots=True)
class PatchDisplay:
    id: str
    list_id: str
    name: str
    icon: str
    progress: int
    is_complete: bool
    source: Literal["creator", "earner"]


class AchievementEngine:
    """Grants badges idempotently; granted badges are never revoked here."""

    def __init__(
        self,
        store: DocumentStore,
        notifications: NotificationService,
        progress: "ProgressEngine",
        rules: tuple[AchievementRule, ...] = ACHIEVEMENT_RULES,
    ) -> None:
        self._store = store
        self._notifications = notifications
        self._progress = progress
        self._rules = rules

    def statistics(self, user_id: str) -> UserStatistics:
        document = self._store.document
        user = self._store.require_user(user_id)
        owned = [media_list for media_list in document.lists if media_list.creator_id == user_id]
        reacted = {
            media_list.id
            for media_list in document.lists
            if any(reaction.user_id == user_id for reaction in media_list.reactions)
        }
        # joined_at 0 means the join date is unknown
        elapsed = max(0, self._store.now() - user.joined_at) if user.joined_at else 0
        return UserStatistics(
            lists_created=len(owned),
            items_added=sum(len(media_list.items) for media_list in owned),
            lists_reacted=len(reacted),
            followers=user.followers,
            days_joined=elapsed // DAY_MS,
        )

    def registry_badge(self, badge_id: str) -> Badge:
        for badge in self._store.document.global_badges:
            if badge.id == badge_id:
                return badge
        for definition in OFFICIAL_BADGES:
            if definition.id == badge_id:
                return Badge.model_validate(definition.as_payload())
        raise NotFoundError("badge", badge_id)

    def grant(self, user: User, template: Badge, actor: User | None = None, **overrides) -> Badge | None:
        """Append a dated copy of ``template`` unless the user already holds its id."""

        if user.has_badge(template.id):
            return None
        badge = template.model_copy(
            update={"earned_date": iso_date(self._store.now()), **overrides}
        )
        with self._store.mutation():
            user.badges.append(badge)
            self._notifications.emit(
                user.id,
                "achievement",
                actor,
                target_id=badge.related_list_id,
                target_preview=f"Achievement unlocked: {badge.name}",
            )
        logger.info("Granted badge %s to %s", badge.id, user.id)
        return badge

    def evaluate(self, user_id: str) -> list[Badge]:
        """Grant every rule badge whose threshold is met and not yet held."""

        user = self._store.require_user(user_id)
        stats = self.statistics(user_id)
        pending = [
            rule
            for rule in self._rules
            if stats.value(rule.statistic) >= rule.threshold and not user.has_badge(rule.badge_id)
        ]
        if not pending:
            return []
        granted: list[Badge] = []
        with self._store.mutation():
            for rule in pending:
                badge = self.grant(user, self.registry_badge(rule.badge_id))
                if badge is not None:
                    granted.append(badge)
        return granted

    def award_list_reward(self, user: User, media_list: MediaList) -> Badge | None:
        reward = media_list.badge_reward
        if reward is None:
            return None
        return self.grant(
            user,
            reward,
            type=BadgeType.COMMUNITY,
            related_list_id=media_list.id,
        )

    def overview(self, user_id: str) -> list[AchievementRow]:
        user = self._store.require_user(user_id)
        stats = self.statistics(user_id)
        rows: list[AchievementRow] = []
        for rule in self._rules:
            earned = next((badge for badge in user.badges if badge.id == rule.badge_id), None)
            rows.append(
                AchievementRow(
                    badge=self.registry_badge(rule.badge_id),
                    current=stats.value(rule.statistic),
                    target=rule.threshold,
                    unlocked=earned is not None,
                    earned_date=earned.earned_date if earned else None,
                )
            )
        return rows

    def patch_collection(self, user_id: str, *, include_hidden: bool = False) -> list[PatchDisplay]:
        """Creator patches merged with earned community badges, one per list."""

        user = self._store.require_user(user_id)
        collection: list[PatchDisplay] = []
        for media_list in self._store.document.lists:
            if media_list.creator_id != user_id or media_list.badge_reward is None:
                continue
            progress = self._progress.calculate_list_progress(media_list, user_id)
            collection.append(
                PatchDisplay(
                    id=media_list.id,
                    list_id=media_list.id,
                    name=media_list.title,
                    icon=media_list.badge_reward.icon,
                    progress=progress,
                    is_complete=progress == 100,
                    source="creator",
                )
            )
        listed = {patch.list_id for patch in collection}
        for badge in user.badges:
            if badge.type is not BadgeType.COMMUNITY or not badge.related_list_id:
                continue
            if badge.related_list_id in listed:
                continue
            listed.add(badge.related_list_id)
            collection.append(
                PatchDisplay(
                    id=badge.id,
                    list_id=badge.related_list_id,
                    name=badge.name,
                    icon=badge.icon,
                    progress=100,
                    is_complete=True,
                    source="earner",
                )
            )
        if include_hidden:
            return collection
        return [patch for patch in collection if patch.list_id not in user.hidden_patch_ids]

    def visible_badges(self, user_id: str) -> list[Badge]:
        user = self._store.require_user(user_id)
        return [badge for badge in user.badges if badge.id not in user.hidden_badge_ids]

    def set_hidden(self, item_id: str, hidden: bool, *, patch: bool = False) -> User:
        """Hide or show one of the current user's badges (or patches by list id)."""

        user = self._store.require_current_user()
        with self._store.mutation():
            target = user.hidden_patch_ids if patch else user.hidden_badge_ids
            if hidden and item_id not in target:
                target.append(item_id)
            elif not hidden and item_id in target:
                target.remove(item_id)
        return user
