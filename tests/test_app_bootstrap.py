import pytest

from growthgarden.apps.api import main
from growthgarden.apps.api.core.db import DatabaseConfigError
from growthgarden.libs.schemas.settings import AppSettings
from growthgarden.libs.storage import MemoryStore, PostgresStore


class ClosablePool:
    closed = False

    async def close(self):
        self.closed = True


def test_llm_router_requires_key_and_flag():
    assert main.build_llm_router(AppSettings(ENVIRONMENT="test", ENABLE_AI_INSIGHTS=False, OPENAI_API_KEY="k")) is None
    assert main.build_llm_router(AppSettings(ENVIRONMENT="test", ENABLE_AI_INSIGHTS=True)) is None

    router = main.build_llm_router(AppSettings(ENVIRONMENT="test", OPENAI_API_KEY="sk-test"))
    assert router.providers == ["openai"]


@pytest.mark.asyncio
async def test_storage_defaults_to_memory_without_database(monkeypatch):
    async def no_database(settings):
        return None

    monkeypatch.setattr(main, "connect_database", no_database)

    storage, warning = await main.build_storage(AppSettings(ENVIRONMENT="test"))

    assert isinstance(storage, MemoryStore)
    assert warning is None


@pytest.mark.asyncio
async def test_storage_warns_when_configured_database_is_unreachable(monkeypatch):
    async def no_database(settings):
        return None

    monkeypatch.setattr(main, "connect_database", no_database)

    storage, warning = await main.build_storage(
        AppSettings(ENVIRONMENT="test", DATABASE_URL="postgresql://u:p@h/db")
    )

    assert isinstance(storage, MemoryStore)
    assert "will not persist" in warning


@pytest.mark.asyncio
async def test_storage_uses_postgres_when_connected(monkeypatch):
    pool = ClosablePool()

    async def connected(settings):
        return pool

    async def schema_ready(pool):
        return False

    monkeypatch.setattr(main, "connect_database", connected)
    monkeypatch.setattr(main, "ensure_schema", schema_ready)

    storage, warning = await main.build_storage(AppSettings(ENVIRONMENT="test"))

    assert isinstance(storage, PostgresStore)
    assert storage.persistent is True
    assert warning is None


@pytest.mark.asyncio
async def test_storage_falls_back_when_schema_fails(monkeypatch):
    pool = ClosablePool()

    async def connected(settings):
        return pool

    async def broken_schema(pool):
        raise RuntimeError("permission denied")

    monkeypatch.setattr(main, "connect_database", connected)
    monkeypatch.setattr(main, "ensure_schema", broken_schema)

    storage, warning = await main.build_storage(AppSettings(ENVIRONMENT="test"))

    assert isinstance(storage, MemoryStore)
    assert pool.closed is True
    assert warning


@pytest.mark.asyncio
async def test_missing_production_database_is_fatal(monkeypatch):
    async def not_configured(settings):
        raise DatabaseConfigError("DATABASE_URL is required")

    monkeypatch.setattr(main, "connect_database", not_configured)

    with pytest.raises(DatabaseConfigError):
        await main.build_storage(AppSettings(ENVIRONMENT="production"))
