from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from migrator.context import ContextFactory
from migrator.logging import logger
from migrator.runner import StartupMigrationRunner
from migrator.seeding import SeedFn, Seeder
from migrator.settings import SETTINGS, MigratorSettings


class MigrationHost:
    """
    Registry of startup migrations for one application.

    Usage:
        host = MigrationHost(SETTINGS)
        host.add_migration(context_factory(AppDbContext), TenantSeeder)
        app = FastAPI(lifespan=host.lifespan)
    """

    def __init__(self, settings: MigratorSettings | None = None, *, is_development: bool | None = None):
        if is_development is None:
            is_development = (settings or SETTINGS).is_development
        self.is_development = is_development
        self.runners: list[StartupMigrationRunner] = []

    def add_migration(
        self,
        context_factory: ContextFactory,
        seeder: SeedFn | Seeder | type[Seeder] | None = None,
        **runner_kwargs: Any,
    ) -> StartupMigrationRunner:
        runner = StartupMigrationRunner(
            context_factory, seeder, is_development=self.is_development, **runner_kwargs
        )
        self.runners.append(runner)
        return runner

    async def start(self) -> None:
        # Sequential, in registration order; the first failure aborts startup.
        for runner in self.runners:
            await runner.run()
        logger.info("startup_migrations_finished", runners=len(self.runners), is_development=self.is_development)

    @asynccontextmanager
    async def lifespan(self, app: Any) -> AsyncIterator[None]:
        await self.start()
        yield
