# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import asyncio
import itertools
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from cms_core.config import AppConfig, ObjectStorageSettings, SupabaseSettings


# =============================================================================
# FAKE SUPABASE (async client, in-memory tables, realtime channels)
# =============================================================================

class FakeAPIError(Exception):
    """Shape of postgrest APIError: code + message."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class FakeResponse:
    def __init__(self, data: List[Dict[str, Any]], count: Optional[int] = None):
        self.data = data
        self.count = count


class FakeQuery:
    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table_name = table
        self.op = "select"
        self.payload: Any = None
        self.filters: List[tuple] = []
        self.order_by: Optional[tuple] = None
        self.limit_to: Optional[int] = None
        self.count: Optional[str] = None
        self.on_conflict: Optional[str] = None

    # builders -----------------------------------------------------------
    def select(self, *columns, count=None):
        self.op = "select"
        self.count = count
        return self

    def insert(self, row):
        self.op, self.payload = "insert", row
        return self

    def update(self, row):
        self.op, self.payload = "update", row
        return self

    def delete(self):
        self.op = "delete"
        return self

    def upsert(self, row, on_conflict=None):
        self.op, self.payload, self.on_conflict = "upsert", row, on_conflict
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.limit_to = n
        return self

    # execution ----------------------------------------------------------
    def _matches(self, row):
        return all(row.get(col) == value for col, value in self.filters)

    async def execute(self):
        self.client.calls.append((self.op, self.table_name))
        if self.client.latency:
            await asyncio.sleep(self.client.latency)
        error = self.client.failures.get((self.op, self.table_name))
        if callable(error):
            error = error(self)
        if error is not None:
            raise error

        rows = self.client.tables.setdefault(self.table_name, [])

        if self.op == "select":
            result = [dict(r) for r in rows if self._matches(r)]
            total = len(result)
            if self.order_by:
                column, desc = self.order_by
                result.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
            if self.limit_to is not None:
                result = result[: self.limit_to]
            return FakeResponse(result, count=total if self.count else None)

        if self.op == "insert":
            return FakeResponse([self.client.insert_row(self.table_name, self.payload)])

        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(dict(row))
            return FakeResponse(updated)

        if self.op == "delete":
            removed = [dict(r) for r in rows if self._matches(r)]
            self.client.tables[self.table_name] = [r for r in rows if not self._matches(r)]
            return FakeResponse(removed)

        if self.op == "upsert":
            key = self.on_conflict
            for row in rows:
                if row.get(key) == self.payload.get(key):
                    row.update(self.payload)
                    return FakeResponse([dict(row)])
            return FakeResponse([self.client.insert_row(self.table_name, self.payload)])

        raise AssertionError(f"unsupported op {self.op}")


class FakeChannel:
    def __init__(self, client: "FakeSupabase", name: str):
        self.client = client
        self.name = name
        self.bindings: List[tuple] = []
        self.subscribed = False

    def on_postgres_changes(self, event, schema="public", table=None, callback=None, **kwargs):
        self.bindings.append((event, table, callback))
        return self

    async def subscribe(self, *args, **kwargs):
        self.subscribed = True
        return self


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.failures: Dict[tuple, Exception] = {}
        self.calls: List[tuple] = []
        self.channels: List[FakeChannel] = []
        self.latency = 0.0
        self._ids = itertools.count(1000)
        self._clock = itertools.count(1)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def insert_row(self, table: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(payload)
        row.setdefault("id", next(self._ids))
        row.setdefault("created_at", next(self._clock))
        self.tables.setdefault(table, []).append(row)
        return dict(row)

    def fail(self, op: str, table: str, error: Exception) -> None:
        self.failures[(op, table)] = error

    # realtime -----------------------------------------------------------
    def channel(self, name: str) -> FakeChannel:
        channel = FakeChannel(self, name)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel: FakeChannel) -> None:
        self.channels.remove(channel)

    async def remove_all_channels(self) -> None:
        self.channels.clear()

    def push(self, table: str, payload: Dict[str, Any]) -> None:
        for channel in self.channels:
            for _event, bound_table, callback in channel.bindings:
                if bound_table == table and channel.subscribed:
                    callback(payload)


# =============================================================================
# CONFIGURATION FIXTURES
# =============================================================================

SUPABASE_URL = "https://demo.supabase.co"
S3_ENDPOINT = "https://demo.supabase.co/storage/v1/s3"


@pytest.fixture
def run() -> Callable:
    """Drive a coroutine to completion from a plain test."""
    return asyncio.run


@pytest.fixture
def supabase_settings():
    return SupabaseSettings(url=SUPABASE_URL, key="anon-key")


@pytest.fixture
def storage_settings():
    return ObjectStorageSettings(
        endpoint=S3_ENDPOINT,
        access_key_id="access",
        secret_access_key="secret",
    )


@pytest.fixture
def app_config(tmp_path, supabase_settings, storage_settings):
    return AppConfig(
        supabase=supabase_settings,
        object_storage=storage_settings,
        local_db_path=tmp_path / "website.db",
        media_dir=tmp_path / "media",
        local_write_delay=0.0,
    )


@pytest.fixture
def unconfigured_config(tmp_path):
    return AppConfig(
        local_db_path=tmp_path / "website.db",
        media_dir=tmp_path / "media",
        local_write_delay=0.0,
    )


# =============================================================================
# STORAGE FIXTURES
# =============================================================================

@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def api_error():
    """Factory for postgrest-style errors."""
    return FakeAPIError


@pytest.fixture
def event_bus():
    from cms_core.storage import EventBus
    return EventBus()


@pytest.fixture
def local_store(tmp_path):
    from cms_core.storage import LocalStore
    store = LocalStore(tmp_path / "website.db")
    yield store
    store.close()


@pytest.fixture
def local_backend(local_store, event_bus, tmp_path):
    from cms_core.storage import LocalBackend
    return LocalBackend(local_store, event_bus, write_delay=0.0, media_dir=tmp_path / "media")


@pytest.fixture
def provider(supabase_settings, fake_supabase):
    from cms_core.storage import SupabaseClientProvider
    return SupabaseClientProvider(supabase_settings, client=fake_supabase)


@pytest.fixture
def s3_client():
    """Mock boto3 S3 client"""
    client = MagicMock()
    client.put_object.return_value = {"ETag": '"abc"'}
    client.get_paginator.return_value.paginate.return_value = [{"Contents": []}]
    return client


@pytest.fixture
def object_storage(storage_settings, s3_client):
    from cms_core.storage import S3ObjectStorage
    return S3ObjectStorage(storage_settings, client=s3_client)


@pytest.fixture
def remote_backend(provider, event_bus, object_storage):
    from cms_core.storage import RemoteBackend, RealtimeBridge
    return RemoteBackend(provider, event_bus, object_storage=object_storage, realtime=RealtimeBridge(event_bus))


@pytest.fixture
def prober(provider):
    from cms_core.storage import BackendProber
    return BackendProber(provider)


@pytest.fixture
def dispatcher(local_backend, remote_backend, prober, event_bus):
    from cms_core.storage import HybridDispatcher
    return HybridDispatcher(local_backend, remote_backend, prober, event_bus)


# =============================================================================
# MOCK FIXTURES
# =============================================================================

@pytest.fixture
def mock_streamlit(monkeypatch):
    """Replace the Streamlit module used by the UI-facing helpers."""
    mock_st = MagicMock()
    mock_st.session_state = {}

    import cms_core.errors.handlers as handlers
    monkeypatch.setattr(handlers, "st", mock_st)
    return mock_st


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

@pytest.fixture
def make_upload():
    """Factory for in-memory uploads of a given size."""
    from cms_core.models import UploadFile

    def _make(size: int = 1024, name: str = "steel-rod_photo.png", content_type: str = "image/png"):
        return UploadFile(name=name, content=b"\0" * size, content_type=content_type)

    return _make


@pytest.fixture
def recorder(event_bus):
    """Collect every DATA_UPDATED payload in order."""
    from cms_core.storage import Events
    payloads = []
    event_bus.on(Events.DATA_UPDATED, payloads.append)
    return payloads
