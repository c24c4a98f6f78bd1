"""Media catalog resolver merging the local seed catalog with OMDb results."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from ..errors import ProviderUnavailable
from ..models import Media, MediaType, Season
from ..seed import LOCAL_CATALOG
from ..utils import parse_year
from .omdb import OmdbClient

logger = logging.getLogger(__name__)

POSTER_PLACEHOLDER = "https://placehold.co/300x450?text=No+Poster"
RUNTIME_PLACEHOLDER = "?? min"
SYNOPSIS_PLACEHOLDER = "No description available."


def _missing(value: Any) -> bool:
    return value is None or str(value).strip() in {"", "N/A"}


def media_from_omdb(payload: dict[str, Any]) -> Media:
    """Normalise an OMDb detail payload into a :class:`Media` record."""

    omdb_type = str(payload.get("Type") or "").lower()
    is_series = omdb_type in {"series", "episode"}

    seasons: int | None = None
    seasons_data: list[Season] | None = None
    if is_series:
        try:
            seasons = max(1, int(payload.get("totalSeasons") or 1))
        except (TypeError, ValueError):
            seasons = 1
        seasons_data = [
            Season(season_number=number, episodes_count=0)
            for number in range(1, seasons + 1)
        ]

    runtime = payload.get("Runtime")
    if is_series:
        duration = f"{seasons} Seasons"
    else:
        duration = RUNTIME_PLACEHOLDER if _missing(runtime) else str(runtime)

    try:
        rating = float(payload.get("imdbRating"))
    except (TypeError, ValueError):
        rating = 0.0

    poster = payload.get("Poster")
    plot = payload.get("Plot")
    return Media(
        id=str(payload.get("imdbID")),
        title=str(payload.get("Title") or "Untitled"),
        year=parse_year(str(payload.get("Year") or "")),
        duration=duration,
        rating=rating,
        poster=POSTER_PLACEHOLDER if _missing(poster) else str(poster),
        synopsis=SYNOPSIS_PLACEHOLDER if _missing(plot) else str(plot),
        type=MediaType.SERIES if is_series else MediaType.MOVIE,
        total_seasons=seasons,
        seasons_data=seasons_data,
    )


@dataclass(slots=True)
class SearchResult:
    """Search matches; ``degraded`` is set when the provider could not help."""

    media: list[Media] = field(default_factory=list)
    degraded: bool = False


class CatalogResolver:
    """Resolves queries and lazily loads season episode lists."""

    def __init__(
        self,
        client: OmdbClient | None,
        *,
        local_catalog: Iterable[Media] = LOCAL_CATALOG,
        detail_limit: int = 5,
    ) -> None:
        self._client = client
        self._local = tuple(local_catalog)
        self._local_ids = {media.id for media in self._local}
        self._detail_limit = detail_limit
        self._season_cache: dict[tuple[str, int], Season] = {}

    @property
    def provider_available(self) -> bool:
        return self._client is not None and self._client.configured

    def search_local(self, query: str) -> list[Media]:
        needle = query.casefold()
        return [
            media.model_copy(deep=True)
            for media in self._local
            if needle in media.title.casefold()
        ]

    async def search(self, query: str) -> SearchResult:
        """Return local and provider matches, deduplicated by id; never raises."""

        query = (query or "").strip()
        if not query:
            return SearchResult()

        results = self.search_local(query)
        remote, degraded = await self._search_remote(query)
        seen = {media.id for media in results}
        for media in remote:
            if media.id in seen:
                continue
            seen.add(media.id)
            results.append(media)
        return SearchResult(media=results, degraded=degraded)

    async def _search_remote(self, query: str) -> tuple[list[Media], bool]:
        if not self.provider_available:
            logger.info("Metadata provider unavailable, searching locally for %r", query)
            return [], True
        assert self._client is not None
        try:
            matches = await self._client.search(query)
        except ProviderUnavailable as exc:
            logger.warning("Provider search failed for %r: %s", query, exc)
            return [], True

        ids = [
            str(match.get("imdbID"))
            for match in matches[: self._detail_limit]
            if match.get("imdbID")
        ]
        details = await asyncio.gather(
            *(self._client.details(imdb_id) for imdb_id in ids),
            return_exceptions=True,
        )
        media: list[Media] = []
        degraded = False
        for imdb_id, payload in zip(ids, details):
            if isinstance(payload, BaseException):
                logger.warning("Provider detail lookup failed for %s: %s", imdb_id, payload)
                degraded = True
                continue
            if payload is None:
                continue
            media.append(media_from_omdb(payload))
        return media, degraded

    async def resolve_season_episodes(
        self, media_id: str, season_number: int, *, known: Season | None = None
    ) -> Season:
        """Return the season with its episodes, fetching them at most once.

        When nothing can be fetched the known (possibly unresolved) season is
        returned unchanged.
        """

        fallback = known or Season(season_number=season_number)
        if known is not None and known.is_resolved:
            return known
        cached = self._season_cache.get((media_id, season_number))
        if cached is not None:
            logger.debug("Season cache hit for %s S%s", media_id, season_number)
            return cached.model_copy(deep=True)
        if media_id in self._local_ids or not self.provider_available:
            return fallback
        assert self._client is not None
        try:
            episodes = await self._client.season(media_id, season_number)
        except ProviderUnavailable as exc:
            logger.warning("Season lookup failed for %s S%s: %s", media_id, season_number, exc)
            return fallback
        if not episodes:
            return fallback
        season = Season(
            season_number=season_number,
            episodes_count=len(episodes),
            episodes=episodes,
        )
        self._season_cache[(media_id, season_number)] = season
        return season.model_copy(deep=True)
