from __future__ import annotations

import pytest
from sqlalchemy import inspect

from watchquest.config import Settings
from watchquest.database import Database
from watchquest.errors import StorageQuotaExceeded
from watchquest.main import create_application, lifespan
from watchquest.storage import SqlStorage
from watchquest.store import DocumentStore


@pytest.fixture
def database(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'watchquest.db'}")
    database.create_all()
    yield database
    database.dispose()


def test_create_all_builds_storage_table(database) -> None:
    inspector = inspect(database.engine)

    assert "storage_entries" in inspector.get_table_names()
    columns = {column["name"] for column in inspector.get_columns("storage_entries")}
    assert {"key", "value", "updated_at"} <= columns


def test_sql_storage_round_trip(database) -> None:
    storage = SqlStorage(database)

    assert storage.get_item("missing") is None
    storage.set_item("greeting", "hello")
    storage.set_item("greeting", "bonjour")
    assert storage.get_item("greeting") == "bonjour"
    storage.remove_item("greeting")
    storage.remove_item("greeting")
    assert storage.get_item("greeting") is None


def test_sql_storage_enforces_quota(database) -> None:
    storage = SqlStorage(database, quota_bytes=3)

    with pytest.raises(StorageQuotaExceeded):
        storage.set_item("key", "toolong")

    assert storage.get_item("key") is None


def test_document_survives_a_restart(database, settings, clock) -> None:
    app = create_application(settings, SqlStorage(database), clock=clock)
    app.store.set_session("u3")
    created = app.lists.create_list("Persisted", "", [])

    restarted = DocumentStore(SqlStorage(database), settings, clock=clock)
    restarted.load()

    assert restarted.current_user_id == "u3"
    assert restarted.document.find_list(created.id).title == "Persisted"
    assert restarted.document.to_json() == app.store.document.to_json()


@pytest.mark.anyio("asyncio")
async def test_lifespan_wires_sql_storage(tmp_path) -> None:
    settings = Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'lifespan.db'}",
        OMDB_API_KEY=None,
    )

    async with lifespan(settings) as app:
        assert len(app.store.document.users) == 7
        assert not app.catalog.provider_available

    async with lifespan(settings) as restarted:
        assert restarted.store.document.to_json() == app.store.document.to_json()
