from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import sqlalchemy as sa
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from db.context import AppDbContext
from db.seed import TenantSeeder
from migrator.context import async_url, context_factory
from migrator.hosting import MigrationHost
from migrator.observability import add_metrics_route
from migrator.settings import SETTINGS, MigratorSettings


def build_migration_host(settings: MigratorSettings) -> MigrationHost:
    host = MigrationHost(settings)
    host.add_migration(context_factory(AppDbContext, settings), TenantSeeder)
    return host


def create_app(
    settings: MigratorSettings = SETTINGS,
    *,
    host: MigrationHost | None = None,
    engine: AsyncEngine | None = None,
) -> FastAPI:
    host = host or build_migration_host(settings)
    if engine is None:
        engine = create_async_engine(async_url(settings.database_url), pool_pre_ping=True, poolclass=NullPool)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Migrations finish here, before the first request is served.
        try:
            async with host.lifespan(app):
                yield
        finally:
            await engine.dispose()

    app = FastAPI(title="App API", version="0.1.0", lifespan=lifespan)
    app.state.engine = engine
    add_metrics_route(app)

    @app.get("/healthz")
    async def healthz() -> dict:
        async with engine.connect() as conn:
            await conn.execute(sa.text("SELECT 1"))
        return {"ok": True}

    return app
