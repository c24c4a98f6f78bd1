"""The document store: single owner of the persisted WatchQuest state."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Callable, Iterator

from pydantic import ValidationError

from .config import Settings
from .errors import (
    AuthenticationRequired,
    MigrationError,
    NotFoundError,
    PermissionDenied,
    StorageError,
)
from .migrations import migrate
from .models import Document, MediaList, User
from .seed import build_empty_document, build_seed_document
from .storage import KeyValueStorage
from .utils import now_ms

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


class DocumentStore:
    """Loads, migrates and persists the document; tracks the session pointer.

    Every mutating operation runs inside :meth:`mutation`, which persists the
    whole document once the outermost scope exits and restores the previous
    in-memory state if anything inside it raises, persistence included.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        settings: Settings,
        *,
        clock: Clock = now_ms,
    ) -> None:
        self._storage = storage
        self.settings = settings
        self.clock = clock
        self._document: Document | None = None
        self._current_user_id: str | None = None
        self._depth = 0

    @property
    def document(self) -> Document:
        if self._document is None:
            return self.load()
        return self._document

    @property
    def current_user_id(self) -> str | None:
        return self._current_user_id

    def now(self) -> int:
        return self.clock()

    def load(self) -> Document:
        """Read the document from storage, seeding or migrating it as needed."""

        raw = self._storage.get_item(self.settings.document_key)
        if raw is None:
            self._document = (
                build_seed_document(self.now())
                if self.settings.seed_demo_data
                else build_empty_document()
            )
            logger.info("Created a new %s document", self.settings.app_name)
            self.persist()
        else:
            self._document = self._parse(raw)
            purged = self._purge_expired_strikes()
            if self._document_changed(raw) or purged:
                self.persist()

        self._current_user_id = self._storage.get_item(self.settings.session_key)
        if (
            self._current_user_id is not None
            and self._document.find_user(self._current_user_id) is None
        ):
            logger.info("Dropping session for unknown user %s", self._current_user_id)
            self.set_session(None)
        return self._document

    def _parse(self, raw: str) -> Document:
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MigrationError("Persisted document is not valid JSON") from exc
        payload, applied = migrate(payload)
        if applied:
            logger.info("Upgraded document through schema versions %s", applied)
        try:
            return Document.model_validate(payload)
        except ValidationError as exc:
            raise MigrationError(f"Persisted document is invalid: {exc}") from exc

    def _document_changed(self, raw: str) -> bool:
        assert self._document is not None
        return self._document.to_json() != raw

    def _purge_expired_strikes(self) -> int:
        assert self._document is not None
        now = self.now()
        purged = 0
        for user in self._document.users:
            active = [strike for strike in user.strikes if strike.expires_at > now]
            if len(active) != len(user.strikes):
                purged += len(user.strikes) - len(active)
                user.strikes = active
        if purged:
            logger.info("Purged %s expired strikes", purged)
        return purged

    def persist(self) -> None:
        """Serialize the entire document and write it in a single call."""

        payload = self.document.to_json()
        try:
            self._storage.set_item(self.settings.document_key, payload)
        except StorageError:
            logger.warning("Persisting the document failed")
            raise
        except OSError as exc:
            logger.warning("Persisting the document failed: %s", exc)
            raise StorageError("Failed to persist the document") from exc

    @contextmanager
    def mutation(self) -> Iterator[Document]:
        """Apply a read-modify-write transaction to the document."""

        document = self.document
        if self._depth:
            self._depth += 1
            try:
                yield document
            finally:
                self._depth -= 1
            return

        snapshot = document.model_copy(deep=True)
        self._depth = 1
        try:
            yield document
            self.persist()
        except Exception:
            self._document = snapshot
            raise
        finally:
            self._depth = 0

    def set_session(self, user_id: str | None) -> None:
        if user_id is None:
            self._storage.remove_item(self.settings.session_key)
        else:
            self._storage.set_item(self.settings.session_key, user_id)
        self._current_user_id = user_id

    def reset(self) -> Document:
        """Wipe the document and session pointer, then start from scratch."""

        self._storage.remove_item(self.settings.document_key)
        self._storage.remove_item(self.settings.session_key)
        self._document = None
        self._current_user_id = None
        logger.info("Document and session wiped")
        return self.load()

    def current_user(self) -> User | None:
        return self.document.find_user(self._current_user_id)

    def require_current_user(self) -> User:
        user = self.current_user()
        if user is None:
            raise AuthenticationRequired()
        return user

    def require_admin(self) -> User:
        user = self.require_current_user()
        if not user.is_admin:
            raise PermissionDenied("Administrator role required")
        return user

    def require_user(self, user_id: str) -> User:
        user = self.document.find_user(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    def require_list(self, list_id: str) -> MediaList:
        media_list = self.document.find_list(list_id)
        if media_list is None:
            raise NotFoundError("list", list_id)
        return media_list
