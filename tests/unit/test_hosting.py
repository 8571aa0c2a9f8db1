from __future__ import annotations

import httpx
import pytest
from fastapi import FastAPI

from migrator.hosting import MigrationHost
from migrator.settings import MigratorSettings
from tests.fakes import FakeDbContext, StoreUnavailable, factory_for


def _settings(environment: str) -> MigratorSettings:
    return MigratorSettings(database_url="postgresql+asyncpg://u:p@localhost/db", environment=environment)


def test_development_flag_comes_from_settings() -> None:
    assert MigrationHost(_settings("Development")).is_development
    assert not MigrationHost(_settings("production")).is_development
    assert MigrationHost(_settings("production"), is_development=True).is_development


@pytest.mark.asyncio
async def test_runners_start_in_registration_order(tracer) -> None:
    calls: list[str] = []

    class FirstDbContext(FakeDbContext):
        async def migrate(self) -> None:
            calls.append("first")

    class SecondDbContext(FakeDbContext):
        async def migrate(self) -> None:
            calls.append("second")

    host = MigrationHost(_settings("production"))
    host.add_migration(factory_for(FirstDbContext()), tracer=tracer)
    host.add_migration(factory_for(SecondDbContext()), tracer=tracer)
    await host.start()

    assert calls == ["first", "second"]


@pytest.mark.asyncio
async def test_first_failure_aborts_remaining_runners(tracer) -> None:
    later = FakeDbContext()
    host = MigrationHost(_settings("production"))
    host.add_migration(factory_for(FakeDbContext(migrate_errors=[StoreUnavailable("down")])), tracer=tracer)
    host.add_migration(factory_for(later), tracer=tracer)

    with pytest.raises(StoreUnavailable):
        await host.start()
    assert later.calls == []


@pytest.mark.asyncio
async def test_lifespan_migrates_before_serving(tracer) -> None:
    calls: list[str] = []
    ctx = FakeDbContext(calls)

    async def seed(context) -> None:
        calls.append("seed")

    host = MigrationHost(_settings("production"))
    host.add_migration(factory_for(ctx), seed, tracer=tracer)
    app = FastAPI(lifespan=host.lifespan)

    @app.get("/ping")
    async def ping() -> dict:
        return {"calls": list(calls)}

    async with app.router.lifespan_context(app):
        assert calls == ["migrate", "seed"]
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            r = await client.get("/ping")
        assert r.json() == {"calls": ["migrate", "seed"]}

    # Nothing else runs after startup.
    assert calls == ["migrate", "seed"]
