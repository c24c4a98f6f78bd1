"""Thin async client for the OMDb metadata API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..errors import ProviderUnavailable
from ..models import Episode

logger = logging.getLogger(__name__)


class OmdbClient:
    """Wrapper around the three OMDb lookups used by the catalog resolver.

    Transport failures, error statuses and malformed payloads raise
    :class:`ProviderUnavailable`; a well-formed "not found" answer yields an
    empty result instead.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str | None,
        base_url: str = "https://www.omdbapi.com/",
    ) -> None:
        self._client = http_client
        self._api_key = api_key
        self._base_url = base_url

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient) -> "OmdbClient":
        return cls(http_client, settings.omdb_api_key, str(settings.omdb_api_url))

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def _get(self, params: dict[str, Any]) -> dict[str, Any] | None:
        if not self._api_key:
            raise ProviderUnavailable("OMDb API key is not configured")
        query = {**params, "apikey": self._api_key}
        try:
            response = await self._client.get(self._base_url, params=query)
        except httpx.HTTPError as exc:
            logger.warning("OMDb request %s failed: %s", params, exc)
            raise ProviderUnavailable(str(exc)) from exc
        if response.status_code >= 400:
            logger.warning(
                "OMDb request %s failed with %s: %s",
                params,
                response.status_code,
                response.text,
            )
            raise ProviderUnavailable(f"OMDb returned HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning("Unexpected non-JSON OMDb response for %s", params)
            raise ProviderUnavailable("OMDb returned a non-JSON response") from exc
        if not isinstance(payload, dict):
            raise ProviderUnavailable("Unexpected OMDb response structure")
        if payload.get("Response") != "True":
            logger.debug("OMDb had no result for %s: %s", params, payload.get("Error"))
            return None
        return payload

    async def search(self, query: str) -> list[dict[str, Any]]:
        """Return the ranked search matches for ``query``."""

        payload = await self._get({"s": query})
        if payload is None:
            return []
        results = payload.get("Search") or []
        return [entry for entry in results if isinstance(entry, dict)]

    async def details(self, imdb_id: str) -> dict[str, Any] | None:
        return await self._get({"i": imdb_id})

    async def season(self, imdb_id: str, season_number: int) -> list[Episode]:
        payload = await self._get({"i": imdb_id, "Season": season_number})
        if payload is None:
            return []
        episodes: list[Episode] = []
        for entry in payload.get("Episodes") or []:
            if not isinstance(entry, dict):
                continue
            try:
                number = int(entry.get("Episode") or 0)
            except (TypeError, ValueError):
                continue
            if number <= 0:
                continue
            try:
                rating = float(entry.get("imdbRating"))
            except (TypeError, ValueError):
                rating = None
            episodes.append(
                Episode(episode_number=number, title=entry.get("Title"), rating=rating)
            )
        return episodes
