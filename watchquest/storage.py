"""Durable key-value storage used to persist the document and session pointer."""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from .database import Database
from .db_models import StorageEntry
from .errors import StorageError, StorageQuotaExceeded

logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    """String-to-string storage with single-call writes."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


def _check_quota(value: str, quota: int | None) -> None:
    if quota is None:
        return
    size = len(value.encode("utf-8"))
    if size > quota:
        raise StorageQuotaExceeded(size, quota)


class MemoryStorage:
    """Process-local storage, used for tests and throwaway sessions."""

    def __init__(self, quota_bytes: int | None = None) -> None:
        self.quota_bytes = quota_bytes
        self._items: dict[str, str] = {}
        self.write_count = 0

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        _check_quota(value, self.quota_bytes)
        self._items[key] = value
        self.write_count += 1

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class SqlStorage:
    """Storage backed by the ``storage_entries`` table."""

    def __init__(self, database: Database, quota_bytes: int | None = None) -> None:
        self._database = database
        self.quota_bytes = quota_bytes

    def get_item(self, key: str) -> str | None:
        try:
            with self._database.session() as session:
                return session.scalar(
                    select(StorageEntry.value).where(StorageEntry.key == key)
                )
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read {key!r} from storage") from exc

    def set_item(self, key: str, value: str) -> None:
        _check_quota(value, self.quota_bytes)
        try:
            with self._database.session() as session:
                entry = session.get(StorageEntry, key)
                if entry is None:
                    session.add(StorageEntry(key=key, value=value))
                else:
                    entry.value = value
        except SQLAlchemyError as exc:
            logger.warning("Failed to persist %s: %s", key, exc)
            raise StorageError(f"Failed to write {key!r} to storage") from exc

    def remove_item(self, key: str) -> None:
        try:
            with self._database.session() as session:
                session.execute(delete(StorageEntry).where(StorageEntry.key == key))
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to remove {key!r} from storage") from exc
