"""Progress engine: per-item watch state machines and list completion."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable

from ..config import Settings
from ..errors import InvalidInputError, NotFoundError, PermissionDenied
from ..models import (
    Badge,
    ItemProgress,
    ListItem,
    Media,
    MediaList,
    MovieProgress,
    Season,
    SeriesProgress,
    WatchStatus,
)
from ..store import DocumentStore
from ..utils import episode_marker, parse_episode_marker, parse_minutes
from .achievements import AchievementEngine
from .catalog import CatalogResolver
from .lists import can_view

logger = logging.getLogger(__name__)

COMPLETE = 100


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class ProgressEngine:
    """Pure progress transitions; every method returns a new progress value."""

    def __init__(self, *, fallback_episode_count: int, default_movie_minutes: int):
        self.fallback_episode_count = fallback_episode_count
        self.default_movie_minutes = default_movie_minutes

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProgressEngine":
        return cls(
            fallback_episode_count=settings.fallback_episode_count,
            default_movie_minutes=settings.default_movie_minutes,
        )

    def duration(self, media: Media) -> int:
        return parse_minutes(media.duration, self.default_movie_minutes)

    def season_counts(self, media: Media) -> list[tuple[int, int]]:
        """Return ``(season_number, episode_count)`` pairs, estimating unresolved seasons."""

        if media.seasons_data:
            return [
                (season.season_number, season.episodes_count or self.fallback_episode_count)
                for season in media.seasons_data
            ]
        total = media.total_seasons or 1
        return [(number, self.fallback_episode_count) for number in range(1, total + 1)]

    def total_episodes(self, media: Media) -> int:
        return max(1, sum(count for _, count in self.season_counts(media)))

    def new_progress(self, media: Media) -> ItemProgress:
        if media.is_episodic:
            return SeriesProgress()
        return MovieProgress()

    def _coerce(self, media: Media, progress: ItemProgress | None) -> ItemProgress:
        expected = SeriesProgress if media.is_episodic else MovieProgress
        if isinstance(progress, expected):
            return progress.model_copy(deep=True)
        return self.new_progress(media)

    def watched_episodes(self, media: Media, history: list[str]) -> int:
        """Count distinct markers, capped at each season's (estimated) episode count."""

        per_season: dict[int, set[int]] = {}
        for parsed in map(parse_episode_marker, history):
            if parsed is not None:
                per_season.setdefault(parsed[0], set()).add(parsed[1])
        return sum(
            min(len(per_season.get(number, ())), count)
            for number, count in self.season_counts(media)
        )

    def _series_status(self, media: Media, history: list[str]) -> WatchStatus:
        if self.watched_episodes(media, history) >= self.total_episodes(media):
            return WatchStatus.WATCHED
        if history:
            return WatchStatus.WATCHING
        return WatchStatus.UNWATCHED

    def apply_status(
        self, media: Media, progress: ItemProgress | None, status: WatchStatus
    ) -> ItemProgress:
        """Set a status directly, synthesising or clearing progress to match."""

        updated = self._coerce(media, progress)
        updated.status = status
        if isinstance(updated, MovieProgress):
            if status is WatchStatus.WATCHED:
                updated.progress_minutes = self.duration(media)
            elif status is WatchStatus.UNWATCHED:
                updated.progress_minutes = 0
            return updated

        if status is WatchStatus.WATCHED:
            counts = self.season_counts(media)
            updated.watched_history = [
                episode_marker(season, episode)
                for season, count in counts
                for episode in range(1, count + 1)
            ]
            updated.current_season, updated.current_episode = counts[-1]
        elif status is WatchStatus.UNWATCHED:
            updated.current_season = 1
            updated.current_episode = 0
            updated.watched_history = []
        return updated

    def set_minutes(
        self, media: Media, progress: ItemProgress | None, minutes: int
    ) -> MovieProgress:
        if media.is_episodic:
            raise InvalidInputError(f"{media.title} is tracked by episode, not minutes")
        duration = self.duration(media)
        clamped = min(duration, max(0, int(minutes)))
        if clamped == duration:
            status = WatchStatus.WATCHED
        elif clamped > 0:
            status = WatchStatus.WATCHING
        else:
            status = WatchStatus.UNWATCHED
        return MovieProgress(status=status, progress_minutes=clamped)

    def _require_series(
        self, media: Media, progress: ItemProgress | None, season: int
    ) -> SeriesProgress:
        if not media.is_episodic:
            raise InvalidInputError(f"{media.title} is tracked by minutes, not episodes")
        if media.seasons_data:
            unknown = media.season(season) is None
        else:
            unknown = season > (media.total_seasons or 1)
        if season < 1 or unknown:
            raise InvalidInputError(f"{media.title} has no season {season}")
        updated = self._coerce(media, progress)
        assert isinstance(updated, SeriesProgress)
        return updated

    def _check_episode(self, media: Media, season: int, episode: int) -> None:
        if episode < 1:
            raise InvalidInputError("Episode numbers start at 1")
        known = media.season(season)
        if known is not None and known.episodes_count and episode > known.episodes_count:
            raise InvalidInputError(
                f"Season {season} of {media.title} has {known.episodes_count} episodes"
            )

    @staticmethod
    def last_watched_in_season(history: list[str], season: int) -> int:
        episodes = [
            parsed[1]
            for parsed in map(parse_episode_marker, history)
            if parsed is not None and parsed[0] == season
        ]
        return max(episodes, default=0)

    def set_episode_marker(
        self, media: Media, progress: ItemProgress | None, season: int, episode: int
    ) -> SeriesProgress:
        """Toggle a single ``S{season}E{episode}`` marker in the watched history."""

        updated = self._require_series(media, progress, season)
        self._check_episode(media, season, episode)
        marker = episode_marker(season, episode)
        if marker in updated.watched_history:
            updated.watched_history = [
                entry for entry in updated.watched_history if entry != marker
            ]
        else:
            updated.watched_history = [*updated.watched_history, marker]
        updated.current_season = season
        updated.current_episode = self.last_watched_in_season(
            updated.watched_history, season
        )
        updated.status = self._series_status(media, updated.watched_history)
        return updated

    def watch_through(
        self, media: Media, progress: ItemProgress | None, season: int, episode: int
    ) -> SeriesProgress:
        """Mark episodes ``1..episode`` of ``season`` watched and later ones unwatched."""

        updated = self._require_series(media, progress, season)
        if episode != 0:
            self._check_episode(media, season, episode)
        history: list[str] = []
        for entry in updated.watched_history:
            parsed = parse_episode_marker(entry)
            if parsed is not None and parsed[0] == season and parsed[1] > episode:
                continue
            history.append(entry)
        for number in range(1, episode + 1):
            marker = episode_marker(season, number)
            if marker not in history:
                history.append(marker)
        updated.watched_history = history
        updated.current_season = season
        updated.current_episode = episode
        updated.status = self._series_status(media, history)
        return updated

    def set_season_marker(
        self, media: Media, progress: ItemProgress | None, season: int
    ) -> SeriesProgress:
        """Move the cursor to ``season``, resuming at its last watched episode."""

        updated = self._require_series(media, progress, season)
        updated.current_season = season
        updated.current_episode = self.last_watched_in_season(
            updated.watched_history, season
        )
        return updated

    def item_percentage(self, media: Media, progress: ItemProgress | None) -> float:
        if progress is None:
            return 0.0
        if progress.status is WatchStatus.WATCHED:
            return 100.0
        if isinstance(progress, MovieProgress):
            return min(99.0, progress.progress_minutes / self.duration(media) * 100)
        watched = self.watched_episodes(media, progress.watched_history)
        return watched / self.total_episodes(media) * 100

    def calculate_list_progress(self, media_list: MediaList, user_id: str) -> int:
        """Average item completion for ``user_id``, rounded half up; 0 when empty."""

        if not media_list.items:
            return 0
        total = sum(
            self.item_percentage(item.media, item.tracking.get(user_id))
            for item in media_list.items
        )
        return _round_half_up(total / len(media_list.items))


@dataclass(slots=True)
class ProgressUpdate:
    """Outcome of a tracking call for the acting user."""

    media_list: MediaList
    item: ListItem
    progress: ItemProgress
    list_progress: int
    just_completed: bool = False
    awarded_badge: Badge | None = None


Transition = Callable[[Media, ItemProgress | None], ItemProgress]


class TrackingService:
    """Applies progress transitions to lists on behalf of the current user."""

    def __init__(
        self,
        store: DocumentStore,
        engine: ProgressEngine,
        achievements: AchievementEngine,
        catalog: CatalogResolver,
    ) -> None:
        self._store = store
        self._engine = engine
        self._achievements = achievements
        self._catalog = catalog

    @property
    def engine(self) -> ProgressEngine:
        return self._engine

    def _locate(self, list_id: str, media_id: str) -> tuple[MediaList, ListItem]:
        media_list = self._store.require_list(list_id)
        item = media_list.find_item(media_id)
        if item is None:
            raise NotFoundError("item", f"{list_id}/{media_id}")
        return media_list, item

    def _apply(self, list_id: str, media_id: str, transition: Transition) -> ProgressUpdate:
        user = self._store.require_current_user()
        media_list, item = self._locate(list_id, media_id)
        if not can_view(self._store.document, user, media_list):
            raise PermissionDenied("This list is not visible to you")

        before = self._engine.calculate_list_progress(media_list, user.id)
        updated = transition(item.media, item.tracking.get(user.id))
        with self._store.mutation():
            item.tracking[user.id] = updated
            after = self._engine.calculate_list_progress(media_list, user.id)
            just_completed = before < COMPLETE and after == COMPLETE
            badge = None
            if just_completed:
                logger.info("%s completed list %s", user.id, media_list.id)
                badge = self._achievements.award_list_reward(user, media_list)
        return ProgressUpdate(
            media_list=media_list,
            item=item,
            progress=updated,
            list_progress=after,
            just_completed=just_completed,
            awarded_badge=badge,
        )

    def update_status(self, list_id: str, media_id: str, status: WatchStatus) -> ProgressUpdate:
        return self._apply(
            list_id,
            media_id,
            lambda media, progress: self._engine.apply_status(media, progress, status),
        )

    def update_minutes(self, list_id: str, media_id: str, minutes: int) -> ProgressUpdate:
        return self._apply(
            list_id,
            media_id,
            lambda media, progress: self._engine.set_minutes(media, progress, minutes),
        )

    def toggle_episode(
        self, list_id: str, media_id: str, season: int, episode: int
    ) -> ProgressUpdate:
        return self._apply(
            list_id,
            media_id,
            lambda media, progress: self._engine.set_episode_marker(
                media, progress, season, episode
            ),
        )

    def watch_through(
        self, list_id: str, media_id: str, season: int, episode: int
    ) -> ProgressUpdate:
        return self._apply(
            list_id,
            media_id,
            lambda media, progress: self._engine.watch_through(
                media, progress, season, episode
            ),
        )

    async def set_season(self, list_id: str, media_id: str, season: int) -> ProgressUpdate:
        """Move the season cursor, resolving that season's episodes first."""

        self._store.require_current_user()
        _, item = self._locate(list_id, media_id)
        if item.media.is_episodic and item.media.season(season) is not None:
            await self.sync_season_episodes(list_id, media_id, season)
        return self._apply(
            list_id,
            media_id,
            lambda media, progress: self._engine.set_season_marker(media, progress, season),
        )

    async def sync_season_episodes(
        self, list_id: str, media_id: str, season_number: int
    ) -> Season:
        """Resolve one season's episodes and store them on every copy of the media."""

        _, item = self._locate(list_id, media_id)
        season = item.media.season(season_number)
        if season is None:
            raise NotFoundError("season", f"{media_id}/S{season_number}")
        if season.is_resolved:
            return season

        resolved = await self._catalog.resolve_season_episodes(
            media_id, season_number, known=season
        )
        if not resolved.is_resolved:
            return season

        with self._store.mutation() as document:
            for media_list in document.lists:
                for candidate in media_list.items:
                    if candidate.media.id != media_id:
                        continue
                    target = candidate.media.season(season_number)
                    if target is not None and not target.is_resolved:
                        target.episodes_count = resolved.episodes_count
                        target.episodes = [
                            episode.model_copy() for episode in resolved.episodes or []
                        ]
        _, item = self._locate(list_id, media_id)
        return item.media.season(season_number) or resolved

    def list_progress(self, list_id: str, user_id: str | None = None) -> int:
        media_list = self._store.require_list(list_id)
        if user_id is None:
            user_id = self._store.require_current_user().id
        return self._engine.calculate_list_progress(media_list, user_id)
