"""Versioned schema migrations applied to the raw document at load time.

Each migration is a pure function taking the JSON payload written by schema
version ``N`` and returning the payload for version ``N + 1``. Migrations only
backfill or reshape data; they never discard user content.
"""

from __future__ import annotations

import copy
import logging
import re
from typing import Any, Callable

from .errors import MigrationError
from .official_badges import OFFICIAL_BADGES
from .utils import parse_minutes

logger = logging.getLogger(__name__)

Payload = dict[str, Any]
Migration = Callable[[Payload], Payload]

LEGACY_TRACKING_KEYS = (
    "status",
    "progressMinutes",
    "currentSeason",
    "currentEpisode",
    "watchedHistory",
)
LEGACY_USER_WATCH_KEYS = ("watchedMovieIds", "watchingMovieIds", "watchProgress")
LEGACY_PRIVACY = {
    "Public": "public",
    "Followers Only": "followers",
    "Private": "private",
}
LEGACY_DEFAULT_MOVIE_MINUTES = 120
SEASONS_RE = re.compile(r"(\d+)\s+Seasons?", re.IGNORECASE)
LIST_ID_TIMESTAMP_RE = re.compile(r"^l_(\d{10,})$")


def _ensure_replies(comments: list[Payload]) -> None:
    for comment in comments:
        replies = comment.get("replies")
        if not isinstance(replies, list):
            replies = []
            comment["replies"] = replies
        _ensure_replies(replies)


def _list_timestamp(media_list: Payload) -> int:
    created = media_list.get("createdAt")
    if isinstance(created, int) and created > 0:
        return created
    match = LIST_ID_TIMESTAMP_RE.match(str(media_list.get("id", "")))
    return int(match.group(1)) if match else 0


def _comment_timestamps(comments: list[Payload], user_id: str) -> list[int]:
    found: list[int] = []
    for comment in comments:
        if comment.get("userId") == user_id:
            found.append(comment.get("timestamp") or 0)
        found.extend(_comment_timestamps(comment.get("replies") or [], user_id))
    return found


def _earliest_activity(document: Payload, user_id: str) -> int:
    """Oldest known timestamp of a user's own lists, reactions or comments; 0 if none."""

    found: list[int] = []
    for media_list in document["lists"]:
        if media_list.get("creatorId") == user_id:
            found.append(_list_timestamp(media_list))
        found.extend(
            reaction.get("timestamp") or 0
            for reaction in media_list["reactions"]
            if reaction.get("userId") == user_id
        )
        found.extend(_comment_timestamps(media_list["comments"], user_id))
    return min((stamp for stamp in found if isinstance(stamp, int) and stamp > 0), default=0)


def migrate_v0_to_v1(document: Payload) -> Payload:
    """Backfill collections and fields introduced after the first release."""

    document = copy.deepcopy(document)
    for key in ("users", "lists", "reports", "notifications", "adminLogs", "blacklist"):
        if not isinstance(document.get(key), list):
            document[key] = []
    if not isinstance(document.get("globalBadges"), list):
        document["globalBadges"] = [badge.as_payload() for badge in OFFICIAL_BADGES]

    for user in document["users"]:
        for key in (
            "followingIds",
            "followedListIds",
            "badges",
            "strikes",
            "hiddenPatchIds",
            "hiddenBadgeIds",
        ):
            if not isinstance(user.get(key), list):
                user[key] = []
        user.setdefault("isPermanentlyBanned", False)
        user.setdefault("followers", 0)
        user.setdefault("following", 0)
        settings = user.get("notificationSettings")
        if not isinstance(settings, dict):
            settings = {}
            user["notificationSettings"] = settings
        for flag in ("likes", "comments", "follows", "mentions"):
            settings.setdefault(flag, True)

    for media_list in document["lists"]:
        for key in ("items", "reactions", "comments"):
            if not isinstance(media_list.get(key), list):
                media_list[key] = []
        _ensure_replies(media_list["comments"])

    for user in document["users"]:
        if not isinstance(user.get("joinedAt"), int):
            user["joinedAt"] = _earliest_activity(document, user.get("id"))
    return document


def _is_episodic(media: Payload) -> bool:
    return media.get("type", "Movie") != "Movie"


def _legacy_progress(item: Payload, media: Payload) -> Payload | None:
    if not any(key in item for key in LEGACY_TRACKING_KEYS):
        return None
    status = item.get("status") or "Unwatched"
    if _is_episodic(media):
        return {
            "kind": "series",
            "status": status,
            "currentSeason": item.get("currentSeason") or 1,
            "currentEpisode": item.get("currentEpisode") or 0,
            "watchedHistory": list(dict.fromkeys(item.get("watchedHistory") or [])),
        }
    return {
        "kind": "movie",
        "status": status,
        "progressMinutes": int(item.get("progressMinutes") or 0),
    }


def migrate_v1_to_v2(document: Payload) -> Payload:
    """Move watch state onto list items, keyed by the tracking user."""

    document = copy.deepcopy(document)
    for media_list in document["lists"]:
        creator_id = media_list.get("creatorId")
        for item in media_list["items"]:
            if "media" not in item and "movie" in item:
                item["media"] = item.pop("movie")
            media = item.get("media") or {}
            if not isinstance(item.get("tracking"), dict):
                progress = _legacy_progress(item, media)
                item["tracking"] = (
                    {creator_id: progress} if progress and creator_id else {}
                )
            for key in LEGACY_TRACKING_KEYS:
                item.pop(key, None)

    for user in document["users"]:
        watched = set(user.get("watchedMovieIds") or [])
        watching = set(user.get("watchingMovieIds") or [])
        minutes = user.get("watchProgress") or {}
        for media_list in document["lists"]:
            if media_list.get("creatorId") != user.get("id"):
                continue
            for item in media_list["items"]:
                media = item.get("media") or {}
                media_id = media.get("id")
                if _is_episodic(media) or user["id"] in item["tracking"]:
                    continue
                if media_id in watched:
                    item["tracking"][user["id"]] = {
                        "kind": "movie",
                        "status": "Watched",
                        "progressMinutes": parse_minutes(
                            media.get("duration"), LEGACY_DEFAULT_MOVIE_MINUTES
                        ),
                    }
                elif media_id in watching:
                    item["tracking"][user["id"]] = {
                        "kind": "movie",
                        "status": "Watching",
                        "progressMinutes": int(minutes.get(media_id) or 0),
                    }
        for key in LEGACY_USER_WATCH_KEYS:
            user.pop(key, None)
    return document


def _season_count(media: Payload) -> int:
    total = media.get("totalSeasons")
    if isinstance(total, int) and total > 0:
        return total
    match = SEASONS_RE.search(str(media.get("duration") or ""))
    if match:
        return max(1, int(match.group(1)))
    return 1


def migrate_v2_to_v3(document: Payload) -> Payload:
    """Normalise enum spellings, media skeletons, rewards and list timestamps."""

    document = copy.deepcopy(document)
    for user in document["users"]:
        privacy = user.get("privacy", "public")
        user["privacy"] = LEGACY_PRIVACY.get(privacy, privacy)

    for media_list in document["lists"]:
        privacy = media_list.get("privacy", "public")
        media_list["privacy"] = LEGACY_PRIVACY.get(privacy, privacy)

        if "createdAt" not in media_list:
            media_list["createdAt"] = _list_timestamp(media_list)

        reward = media_list.get("badgeReward")
        if isinstance(reward, dict):
            if not reward.get("relatedListId"):
                reward["relatedListId"] = media_list.get("id")
            if not reward.get("earnedDate"):
                reward.pop("earnedDate", None)
            reward.setdefault("type", "community")

        for item in media_list["items"]:
            media = item.get("media")
            if not isinstance(media, dict):
                continue
            media.setdefault("type", "Movie")
            if not _is_episodic(media):
                continue
            seasons = _season_count(media)
            media.setdefault("totalSeasons", seasons)
            if not isinstance(media.get("seasonsData"), list):
                media["seasonsData"] = [
                    {"seasonNumber": number, "episodesCount": 0}
                    for number in range(1, media["totalSeasons"] + 1)
                ]
    return document


MIGRATIONS: tuple[Migration, ...] = (
    migrate_v0_to_v1,
    migrate_v1_to_v2,
    migrate_v2_to_v3,
)
CURRENT_SCHEMA_VERSION = len(MIGRATIONS)


def migrate(document: Any) -> tuple[Payload, list[int]]:
    """Upgrade ``document`` to the current schema version.

    Returns the upgraded payload and the list of versions it passed through.
    A document already at the current version is returned untouched.
    """

    if not isinstance(document, dict):
        raise MigrationError("Persisted document is not a JSON object")
    version = document.get("schemaVersion", 0)
    if not isinstance(version, int) or version < 0:
        raise MigrationError(f"Invalid schema version: {version!r}")
    if version > CURRENT_SCHEMA_VERSION:
        raise MigrationError(
            f"Document schema version {version} is newer than supported "
            f"version {CURRENT_SCHEMA_VERSION}"
        )

    applied: list[int] = []
    for step in range(version, CURRENT_SCHEMA_VERSION):
        try:
            document = MIGRATIONS[step](document)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise MigrationError(
                f"Migration from schema version {step} failed: {exc}"
            ) from exc
        document["schemaVersion"] = step + 1
        applied.append(step + 1)
        logger.info("Migrated document to schema version %s", step + 1)
    return document, applied
