from __future__ import annotations

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from enum import Enum

from opentelemetry import trace

from migrator.context import ContextFactory, DbContext
from migrator.logging import logger
from migrator.observability import (
    MIGRATION_LATENCY,
    MIGRATION_RETRIES_TOTAL,
    MIGRATION_RUNS_TOTAL,
    get_tracer,
    set_exception_tags,
)
from migrator.seeding import SeedFn, Seeder, resolve_seeder
from migrator.strategy import ExecutionStrategy


class MigrationState(str, Enum):
    NOT_STARTED = "not_started"
    NO_CONTEXT = "no_context"
    MIGRATING_OR_SKIPPED = "migrating_or_skipped"
    SEEDING = "seeding"
    COMPLETED = "completed"
    FAILED = "failed"


class StartupMigrationRunner:
    """
    Migrates and seeds one database, once, before the host starts serving.

    Steps:
    - acquire a context from the factory; no context means there is nothing to do
    - under the execution strategy: apply pending migrations (skipped in development),
      then run the seeder
    - on failure: tag the span, log one error line and re-raise the original exception

    The strategy may re-run migrate+seed after a transient failure, so the seeder must be
    idempotent.
    """

    def __init__(
        self,
        context_factory: ContextFactory,
        seeder: SeedFn | Seeder | type[Seeder] | None = None,
        *,
        is_development: bool = False,
        strategy: ExecutionStrategy | None = None,
        tracer: trace.Tracer | None = None,
    ):
        self._context_factory = context_factory
        self._seed = resolve_seeder(seeder)
        self._is_development = is_development
        self._strategy = strategy
        self._tracer = tracer or get_tracer()
        self.state = MigrationState.NOT_STARTED

    async def run(self) -> None:
        try:
            async with self._context_factory() as context:
                if context is None:
                    self.state = MigrationState.NO_CONTEXT
                    logger.debug("migration_skipped_no_context")
                    return
                await self._migrate(context)
        except Exception:
            self.state = MigrationState.FAILED
            raise

    async def _migrate(self, context: DbContext) -> None:
        name = context.name
        strategy = self._strategy or context.create_execution_strategy()
        attempts = 0

        async def attempt() -> None:
            nonlocal attempts
            attempts += 1
            if attempts > 1:
                MIGRATION_RETRIES_TOTAL.labels(name).inc()
            await self._migrate_and_seed(context, attempts)

        start = time.perf_counter()
        # Exceptions are tagged by hand so a failure marks the span exactly once.
        with self._tracer.start_as_current_span(
            f"Migration operation {name}", record_exception=False, set_status_on_exception=False
        ) as span:
            span.set_attribute("db.context", name)
            try:
                logger.info("migration_started", db_context=name)
                await strategy.execute(attempt)
            except Exception as e:
                set_exception_tags(span, e)
                MIGRATION_RUNS_TOTAL.labels(name, "error").inc()
                logger.error("migration_failed", db_context=name, attempts=attempts, exc_info=e)
                raise
            finally:
                MIGRATION_LATENCY.labels(name).observe((time.perf_counter() - start) * 1000)

        self.state = MigrationState.COMPLETED
        MIGRATION_RUNS_TOTAL.labels(name, "ok").inc()

    async def _migrate_and_seed(self, context: DbContext, attempt: int) -> None:
        with self._tracer.start_as_current_span(
            f"Migrating {context.name}", record_exception=False, set_status_on_exception=False
        ) as span:
            span.set_attribute("db.migration.attempt", attempt)
            try:
                self.state = MigrationState.MIGRATING_OR_SKIPPED
                if self._is_development:
                    span.set_attribute("db.migration.skipped", True)
                else:
                    await context.migrate()
                self.state = MigrationState.SEEDING
                await self._seed(context)
            except Exception as e:
                set_exception_tags(span, e)
                raise


async def migrate_context(
    context: DbContext,
    seeder: SeedFn | Seeder | type[Seeder] | None = None,
    *,
    is_development: bool = False,
    strategy: ExecutionStrategy | None = None,
    tracer: trace.Tracer | None = None,
) -> MigrationState:
    """Run the startup migration against a context the caller already owns."""

    @asynccontextmanager
    async def borrowed() -> AsyncIterator[DbContext]:
        yield context

    runner = StartupMigrationRunner(
        borrowed, seeder, is_development=is_development, strategy=strategy, tracer=tracer
    )
    await runner.run()
    return runner.state
