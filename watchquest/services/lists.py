"""Media list curation, visibility rules and list queries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from ..errors import InvalidInputError, NotFoundError, PermissionDenied
from ..models import (
    Badge,
    BadgeType,
    Document,
    ListCategory,
    ListItem,
    Media,
    MediaList,
    PrivacyLevel,
    User,
    WatchStatus,
)
from ..store import DocumentStore
from ..utils import generate_id

if TYPE_CHECKING:
    from .achievements import AchievementEngine

logger = logging.getLogger(__name__)


def can_view(document: Document, viewer: User | None, media_list: MediaList) -> bool:
    """Return whether ``viewer`` may see ``media_list`` under its privacy level."""

    if media_list.privacy is PrivacyLevel.PUBLIC:
        return True
    if viewer is None:
        return False
    if viewer.id == media_list.creator_id or viewer.is_admin:
        return True
    if media_list.privacy is PrivacyLevel.FOLLOWERS:
        return media_list.creator_id in viewer.following_ids
    return False


@dataclass(slots=True)
class ListStats:
    followers: int
    completers: int


class ListService:
    def __init__(self, store: DocumentStore, achievements: "AchievementEngine") -> None:
        self._store = store
        self._achievements = achievements

    def _visible(self, lists: Iterable[MediaList]) -> list[MediaList]:
        document = self._store.document
        viewer = self._store.current_user()
        return [media_list for media_list in lists if can_view(document, viewer, media_list)]

    def _require_owned(self, list_id: str) -> MediaList:
        user = self._store.require_current_user()
        media_list = self._store.require_list(list_id)
        if media_list.creator_id != user.id:
            raise PermissionDenied("Only the list owner can change this list")
        return media_list

    @staticmethod
    def _new_item(media: Media) -> ListItem:
        return ListItem(media=media.model_copy(deep=True))

    def create_list(
        self,
        title: str,
        description: str,
        items: list[Media],
        privacy: PrivacyLevel = PrivacyLevel.PUBLIC,
        category: ListCategory = ListCategory.GENERAL,
        badge_image: str | None = None,
    ) -> MediaList:
        me = self._store.require_current_user()
        title = title.strip()
        if not title:
            raise InvalidInputError("A list needs a title")

        list_id = generate_id("l")
        unique_items: list[ListItem] = []
        for media in items:
            if any(existing.media.id == media.id for existing in unique_items):
                continue
            unique_items.append(self._new_item(media))

        reward = None
        if badge_image:
            reward = Badge(
                id=generate_id("b_reward"),
                name=f"{title} Master",
                description=f"Awarded for completing the {title} list.",
                icon=badge_image,
                type=BadgeType.COMMUNITY,
                related_list_id=list_id,
            )

        media_list = MediaList(
            id=list_id,
            creator_id=me.id,
            creator_name=me.name,
            creator_avatar=me.avatar,
            title=title,
            description=description,
            category=category,
            privacy=privacy,
            items=unique_items,
            badge_reward=reward,
            created_at=self._store.now(),
        )
        with self._store.mutation() as document:
            document.lists.append(media_list)
            self._achievements.evaluate(me.id)
        logger.info("%s created list %s", me.id, list_id)
        return media_list

    def update_list(
        self,
        list_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        privacy: PrivacyLevel | None = None,
        category: ListCategory | None = None,
    ) -> MediaList:
        media_list = self._require_owned(list_id)
        if title is not None and not title.strip():
            raise InvalidInputError("A list needs a title")
        with self._store.mutation():
            if title is not None:
                media_list.title = title.strip()
            if description is not None:
                media_list.description = description
            if privacy is not None:
                media_list.privacy = privacy
            if category is not None:
                media_list.category = category
        return media_list

    def add_item(self, list_id: str, media: Media) -> MediaList:
        media_list = self._require_owned(list_id)
        if media_list.find_item(media.id) is not None:
            raise InvalidInputError(f"{media.title} is already in this list")
        with self._store.mutation():
            media_list.items.append(self._new_item(media))
            self._achievements.evaluate(media_list.creator_id)
        return media_list

    def remove_item(self, list_id: str, media_id: str) -> MediaList:
        media_list = self._require_owned(list_id)
        item = media_list.find_item(media_id)
        if item is None:
            raise NotFoundError("item", f"{list_id}/{media_id}")
        with self._store.mutation():
            media_list.items.remove(item)
        return media_list

    def move_item(self, list_id: str, media_id: str, position: int) -> MediaList:
        media_list = self._require_owned(list_id)
        item = media_list.find_item(media_id)
        if item is None:
            raise NotFoundError("item", f"{list_id}/{media_id}")
        if not 0 <= position < len(media_list.items):
            raise InvalidInputError(f"Position {position} is outside the list")
        with self._store.mutation():
            media_list.items.remove(item)
            media_list.items.insert(position, item)
        return media_list

    def delete_list(self, list_id: str) -> None:
        user = self._store.require_current_user()
        media_list = self._store.require_list(list_id)
        if media_list.creator_id != user.id and not user.is_admin:
            raise PermissionDenied("Only the owner or an administrator can delete a list")
        with self._store.mutation() as document:
            document.lists.remove(media_list)
            for other in document.users:
                if list_id in other.followed_list_ids:
                    other.followed_list_ids.remove(list_id)
        logger.info("%s deleted list %s", user.id, list_id)

    def get_list(self, list_id: str) -> MediaList:
        media_list = self._store.require_list(list_id)
        if not can_view(self._store.document, self._store.current_user(), media_list):
            raise PermissionDenied("This list is not visible to you")
        return media_list

    def feed(self) -> list[MediaList]:
        """Public lists, newest first."""

        public = [
            media_list
            for media_list in self._store.document.lists
            if media_list.privacy is PrivacyLevel.PUBLIC
        ]
        return sorted(public, key=lambda item: (item.created_at, item.id), reverse=True)

    def my_lists(self) -> list[MediaList]:
        me = self._store.require_current_user()
        return [
            media_list
            for media_list in self._store.document.lists
            if media_list.creator_id == me.id
        ]

    def user_lists(self, user_id: str) -> list[MediaList]:
        self._store.require_user(user_id)
        return self._visible(
            media_list
            for media_list in self._store.document.lists
            if media_list.creator_id == user_id
        )

    def followed_lists(self) -> list[MediaList]:
        me = self._store.current_user()
        if me is None:
            return []
        return self._visible(
            media_list
            for media_list in self._store.document.lists
            if media_list.id in me.followed_list_ids
        )

    def search_lists(self, query: str) -> list[MediaList]:
        needle = query.casefold()
        return [
            media_list
            for media_list in self._store.document.lists
            if needle in media_list.title.casefold()
            and media_list.privacy is PrivacyLevel.PUBLIC
        ]

    def find_similar(self, title: str, limit: int = 3) -> list[MediaList]:
        needle = title.casefold()
        matches = self._visible(
            media_list
            for media_list in self._store.document.lists
            if needle in media_list.title.casefold()
        )
        return matches[:limit]

    def stats(self, list_id: str) -> ListStats:
        """Follower and completer counts, both computed by scanning users."""

        media_list = self._store.require_list(list_id)
        followers = sum(
            1 for user in self._store.document.users if list_id in user.followed_list_ids
        )
        trackers = {user_id for item in media_list.items for user_id in item.tracking}
        completers = sum(
            1
            for user_id in trackers
            if media_list.items
            and all(
                item.tracking.get(user_id) is not None
                and item.tracking[user_id].status is WatchStatus.WATCHED
                for item in media_list.items
            )
        )
        return ListStats(followers=followers, completers=completers)
