"""Tests for the session store back-ends."""

from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from formwizard.config import settings
from formwizard.middleware.exceptions import ConfigurationError
from formwizard.models.wizard_session import WizardSession, utcnow
from formwizard.stores import create_session_store
from formwizard.stores.database import DatabaseSessionStore
from formwizard.stores.memory import MemorySessionStore
from formwizard.stores.redis import RedisSessionStore

STATE = {"stepCurrent": 1, "validations": {"name": "Ana"}}


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.store
@pytest.mark.asyncio
class TestMemorySessionStore:
    async def test_set_get_delete(self):
        store = MemorySessionStore()
        await store.set("k", STATE)
        assert await store.get("k") == STATE
        await store.delete("k")
        assert await store.get("k") is None
        assert await store.get("k", {}) == {}

    async def test_values_are_copied(self):
        store = MemorySessionStore()
        value = {"validations": {"name": "Ana"}}
        await store.set("k", value)
        value["validations"]["name"] = "Changed"
        assert (await store.get("k"))["validations"]["name"] == "Ana"

    async def test_entries_expire(self):
        clock = FakeClock()
        store = MemorySessionStore(ttl=60, clock=clock)
        await store.set("k", STATE)

        clock.now += 59
        assert await store.get("k") == STATE

        clock.now += 2
        assert await store.get("k") is None
        assert len(store) == 0

    async def test_writes_sweep_expired_entries(self):
        clock = FakeClock()
        store = MemorySessionStore(ttl=60, clock=clock)
        await store.set("abandoned", STATE)

        clock.now += 61
        await store.set("active", STATE)
        assert len(store) == 1
        assert await store.get("active") == STATE

    async def test_unserialisable_values_rejected(self):
        store = MemorySessionStore()
        with pytest.raises(TypeError):
            await store.set("k", {"when": object()})


@pytest_asyncio.fixture
async def database_store(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}")
    sessionmaker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    store = DatabaseSessionStore(sessionmaker, ttl=3600)
    await store.create_tables()

    yield store

    await store.close()


async def _age_rows(store: DatabaseSessionStore, hours: int) -> None:
    async with store.sessionmaker() as db:
        await db.execute(update(WizardSession).values(updated_at=utcnow() - timedelta(hours=hours)))
        await db.commit()


@pytest.mark.store
@pytest.mark.integration
@pytest.mark.asyncio
class TestDatabaseSessionStore:
    async def test_set_get_delete(self, database_store):
        await database_store.set("k", STATE)
        assert await database_store.get("k") == STATE
        await database_store.delete("k")
        assert await database_store.get("k") is None

    async def test_set_overwrites(self, database_store):
        await database_store.set("k", STATE)
        await database_store.set("k", {"stepCurrent": 2, "validations": {}})
        assert await database_store.get("k") == {"stepCurrent": 2, "validations": {}}

    async def test_expired_rows_read_as_absent(self, database_store):
        await database_store.set("k", STATE)
        await _age_rows(database_store, hours=2)
        assert await database_store.get("k") is None

    async def test_purge_expired(self, database_store):
        await database_store.set("old", STATE)
        await _age_rows(database_store, hours=2)
        await database_store.set("fresh", STATE)

        assert await database_store.purge_expired() == 1
        assert await database_store.get("fresh") == STATE

    async def test_ping(self, database_store):
        assert await database_store.ping() is True

    async def test_racing_first_writes_keep_the_last_value(self, database_store):
        class StaleReadStore(DatabaseSessionStore):
            """Always misses the existing row, as a request racing another would."""

            async def _find(self, db, key):
                return None

        racing = StaleReadStore(database_store.sessionmaker, ttl=3600)
        await racing.set("k", STATE)
        await racing.set("k", {"stepCurrent": 2, "validations": {}})

        assert await database_store.get("k") == {"stepCurrent": 2, "validations": {}}


@pytest.mark.store
@pytest.mark.integration
@pytest.mark.asyncio
class TestRedisSessionStore:
    async def test_set_get_delete(self, redis_client):
        store = RedisSessionStore(settings.redis_url, ttl=60, prefix="formwizard-test:", client=redis_client)
        await store.set("k", STATE)
        assert await store.get("k") == STATE
        assert 0 < await redis_client.ttl("formwizard-test:k") <= 60

        await store.delete("k")
        assert await store.get("k") is None

    async def test_ping(self, redis_client):
        store = RedisSessionStore(settings.redis_url, client=redis_client)
        assert await store.ping() is True


@pytest.mark.unit
class TestStoreFactory:
    def test_memory_backend(self):
        store = create_session_store(settings.model_copy(update={"session_backend": "memory"}))
        assert isinstance(store, MemorySessionStore)

    def test_redis_backend(self):
        store = create_session_store(settings.model_copy(update={"session_backend": "redis"}))
        assert isinstance(store, RedisSessionStore)

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError):
            create_session_store(settings.model_copy(update={"session_backend": "filesystem"}))


@pytest.mark.store
@pytest.mark.integration
@pytest.mark.asyncio
class TestLifespan:
    async def test_database_store_is_prepared_and_closed(self, tmp_path):
        from formwizard.main import create_app
        from formwizard.services.lifespan import lifespan
        from formwizard.wizards import WizardRegistry

        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'lifespan.db'}")
        store = DatabaseSessionStore(async_sessionmaker(engine, expire_on_commit=False))
        app = create_app(wizards=WizardRegistry(), store=store)

        async with lifespan(app):
            await store.set("k", STATE)
            assert await store.get("k") == STATE

    async def test_memory_store_is_cleared_on_shutdown(self):
        from formwizard.main import create_app
        from formwizard.services.lifespan import lifespan
        from formwizard.wizards import WizardRegistry

        store = MemorySessionStore()
        app = create_app(wizards=WizardRegistry(), store=store)

        async with lifespan(app):
            await store.set("k", STATE)
        assert len(store) == 0
