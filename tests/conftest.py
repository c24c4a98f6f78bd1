"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the package is importable when running tests without an editable
# install. This mirrors the runtime layout where ``watchquest`` sits at the
# project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from watchquest.config import Settings  # noqa: E402
from watchquest.main import WatchQuest, create_application  # noqa: E402
from watchquest.storage import MemoryStorage  # noqa: E402

FIXED_NOW = 1_700_000_000_000


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now: int = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, milliseconds: int) -> None:
        self.now += milliseconds


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, OMDB_API_KEY=None, STORAGE_QUOTA_BYTES=None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def app(settings: Settings, storage: MemoryStorage, clock: FakeClock) -> WatchQuest:
    return create_application(settings, storage, clock=clock)


@pytest.fixture
def login(app: WatchQuest):
    """Switch the session pointer without going through credential checks."""

    def _login(user_id: str | None) -> None:
        app.store.set_session(user_id)

    return _login
