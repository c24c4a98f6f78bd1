"""Composition root wiring the services around a single document store."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator

import httpx

from .config import Settings, get_settings
from .database import Database
from .models import Document
from .services.accounts import AccountService
from .services.achievements import AchievementEngine
from .services.catalog import CatalogResolver
from .services.comments import CommentService
from .services.lists import ListService
from .services.moderation import ModerationService
from .services.notifications import NotificationService
from .services.omdb import OmdbClient
from .services.progress import ProgressEngine, TrackingService
from .services.social import SocialGraph
from .storage import KeyValueStorage, SqlStorage
from .store import Clock, DocumentStore
from .utils import now_ms

logger = logging.getLogger(__name__)


class WatchQuest:
    """The interface handed to the presentation layer.

    All services share the one :class:`DocumentStore` passed in; nothing is
    held in module-level state.
    """

    def __init__(self, store: DocumentStore, catalog: CatalogResolver) -> None:
        self.store = store
        self.catalog = catalog
        self.progress_engine = ProgressEngine.from_settings(store.settings)
        self.notifications = NotificationService(store)
        self.achievements = AchievementEngine(store, self.notifications, self.progress_engine)
        self.lists = ListService(store, self.achievements)
        self.tracking = TrackingService(store, self.progress_engine, self.achievements, catalog)
        self.social = SocialGraph(store, self.notifications, self.achievements)
        self.comments = CommentService(store, self.notifications)
        self.moderation = ModerationService(store, self.notifications, self.achievements)
        self.accounts = AccountService(store, self.achievements)

    def reset_all(self) -> Document:
        """Wipe the document and the session pointer and start over."""

        return self.store.reset()


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level)


def create_application(
    settings: Settings,
    storage: KeyValueStorage,
    *,
    http_client: httpx.AsyncClient | None = None,
    clock: Clock = now_ms,
) -> WatchQuest:
    """Build and load a :class:`WatchQuest` around ``storage``."""

    client = OmdbClient.from_settings(settings, http_client) if http_client else None
    catalog = CatalogResolver(client, detail_limit=settings.search_detail_limit)
    store = DocumentStore(storage, settings, clock=clock)
    store.load()
    return WatchQuest(store, catalog)


@asynccontextmanager
async def lifespan(settings: Settings | None = None) -> AsyncIterator[WatchQuest]:
    """Own the HTTP client and database for the lifetime of the process."""

    settings = settings or get_settings()
    configure_logging(settings)
    async with AsyncExitStack() as exit_stack:
        http_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(
                timeout=httpx.Timeout(settings.provider_timeout_seconds, connect=5.0)
            )
        )
        database = Database(settings.database_url)
        database.create_all()
        exit_stack.callback(database.dispose)

        storage = SqlStorage(database, quota_bytes=settings.storage_quota_bytes)
        application = create_application(settings, storage, http_client=http_client)
        logger.info("%s ready (%s)", settings.app_name, settings.environment)
        yield application
