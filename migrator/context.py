from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from functools import partial

from alembic import command
from alembic.config import Config
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from migrator.settings import SETTINGS, MigratorSettings
from migrator.strategy import ExecutionStrategy, RetryingExecutionStrategy


ContextFactory = Callable[[], AbstractAsyncContextManager["DbContext | None"]]


def sync_url(database_url: str) -> str:
    # Alembic tooling outside a running app uses a sync driver (psycopg3).
    url = database_url.replace("postgresql+asyncpg://", "postgresql+psycopg://")
    url = url.replace("postgresql+psycopg2://", "postgresql+psycopg://")
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def async_url(database_url: str) -> str:
    url = database_url.replace("postgresql+psycopg://", "postgresql+asyncpg://")
    url = url.replace("postgresql+psycopg2://", "postgresql+asyncpg://")
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def build_alembic_config(script_location: str, database_url: str | None = None) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", script_location)
    if database_url:
        cfg.set_main_option("sqlalchemy.url", sync_url(database_url))
    return cfg


class DbContext:
    """
    A connected, schema-bearing database: an async engine plus the Alembic scripts for it.

    Subclass per database; the subclass name labels spans and log lines.
    """

    def __init__(self, engine: AsyncEngine, alembic_config: Config, settings: MigratorSettings | None = None):
        self.engine = engine
        self.alembic_config = alembic_config
        self.settings = settings or SETTINGS

    @property
    def name(self) -> str:
        return type(self).__name__

    def _upgrade(self, connection: Connection) -> None:
        # env.py picks the connection up instead of opening its own.
        self.alembic_config.attributes["connection"] = connection
        try:
            command.upgrade(self.alembic_config, "head")
        finally:
            self.alembic_config.attributes.pop("connection", None)

    async def migrate(self) -> None:
        """Apply every pending revision up to head. Applied revisions are skipped."""
        async with self.engine.begin() as conn:
            await conn.run_sync(self._upgrade)

    def create_execution_strategy(self) -> ExecutionStrategy:
        return RetryingExecutionStrategy(
            max_retries=self.settings.migration_max_retries,
            delay_ms=self.settings.migration_retry_delay_ms,
            max_delay_ms=self.settings.migration_max_retry_delay_ms,
        )

    async def dispose(self) -> None:
        await self.engine.dispose()


@asynccontextmanager
async def scoped_context(
    context_cls: type[DbContext] = DbContext, settings: MigratorSettings | None = None
) -> AsyncIterator[DbContext]:
    settings = settings or SETTINGS
    # NullPool: the engine lives for one startup run only.
    engine = create_async_engine(async_url(settings.database_url), pool_pre_ping=True, poolclass=NullPool)
    context = context_cls(engine, build_alembic_config(settings.alembic_script_location), settings)
    try:
        yield context
    finally:
        await context.dispose()


def context_factory(context_cls: type[DbContext] = DbContext, settings: MigratorSettings | None = None) -> ContextFactory:
    return partial(scoped_context, context_cls, settings)
