"""Utility helpers for the WatchQuest store."""

from __future__ import annotations

import re
import secrets
import time
from datetime import datetime, timezone

DAY_MS = 24 * 60 * 60 * 1000

MENTION_RE = re.compile(r"(?<![\w@])@([A-Za-z0-9_.]+)")
MINUTES_RE = re.compile(r"\d+")
YEAR_RE = re.compile(r"\d{4}")
EPISODE_MARKER_RE = re.compile(r"^S(\d+)E(\d+)$")


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""

    return int(time.time() * 1000)


def iso_date(timestamp_ms: int) -> str:
    """Return the ``YYYY-MM-DD`` date for an epoch-millisecond timestamp."""

    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return moment.date().isoformat()


def generate_id(prefix: str) -> str:
    """Return a random identifier carrying a readable type prefix."""

    return f"{prefix}_{secrets.token_hex(6)}"


def parse_minutes(duration: str | None, default: int) -> int:
    """Extract the leading number of minutes from strings such as ``"132 min"``."""

    if not duration:
        return default
    match = MINUTES_RE.search(duration)
    if not match:
        return default
    minutes = int(match.group(0))
    return minutes if minutes > 0 else default


def parse_year(value: str | None) -> int | None:
    """Return the first four-digit year found in ``value`` (``"2019–"`` → 2019)."""

    if not value:
        return None
    match = YEAR_RE.search(value)
    if not match:
        return None
    return int(match.group(0))


def episode_marker(season: int, episode: int) -> str:
    return f"S{season}E{episode}"


def parse_episode_marker(marker: str) -> tuple[int, int] | None:
    match = EPISODE_MARKER_RE.match(marker)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_handle(handle: str) -> str:
    """Return the canonical ``@handle`` spelling used for storage."""

    cleaned = handle.strip()
    if not cleaned.startswith("@"):
        cleaned = f"@{cleaned}"
    return cleaned


def handle_key(handle: str) -> str:
    """Return the case-insensitive comparison key for a handle."""

    return normalize_handle(handle).lower()


def extract_mentions(text: str) -> list[str]:
    """Return the distinct ``@handle`` tokens in ``text`` in order of appearance."""

    seen: list[str] = []
    for match in MENTION_RE.finditer(text or ""):
        token = match.group(1).rstrip(".")
        if not token:
            continue
        key = f"@{token}".lower()
        if key not in seen:
            seen.append(key)
    return seen


def date_to_ms(value: str | None) -> int:
    """Return the epoch milliseconds of a ``YYYY-MM-DD`` date, or 0 if unparseable."""

    if not value:
        return 0
    try:
        moment = datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        return 0
    return int(moment.timestamp() * 1000)
