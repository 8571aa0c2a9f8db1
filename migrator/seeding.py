from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from migrator.errors import SeederResolutionError

if TYPE_CHECKING:
    from migrator.context import DbContext


SeedFn = Callable[["DbContext"], Awaitable[None]]


@runtime_checkable
class Seeder(Protocol):
    """
    Populates initial data into a freshly migrated database.

    `seed` may run more than once per startup when the execution strategy re-runs
    the operation after a transient failure, so it must be idempotent.
    """

    async def seed(self, context: DbContext) -> None: ...


async def noop_seed(context: DbContext) -> None:
    return None


def resolve_seeder(seeder: SeedFn | Seeder | type[Seeder] | None) -> SeedFn:
    """
    Normalize the accepted seeder forms to a single coroutine function.

    A seeder class gets a fresh instance for every run.
    """
    if seeder is None:
        return noop_seed
    if inspect.isclass(seeder):
        if not inspect.iscoroutinefunction(getattr(seeder, "seed", None)):
            raise SeederResolutionError(f"seeder class {seeder.__name__} needs an async seed() method")
        seeder_cls = seeder

        async def _seed_scoped(context: DbContext) -> None:
            await seeder_cls().seed(context)

        return _seed_scoped
    if inspect.iscoroutinefunction(seeder):
        return seeder
    if isinstance(seeder, Seeder):
        # runtime_checkable only checks the attribute name.
        if not inspect.iscoroutinefunction(seeder.seed):
            raise SeederResolutionError(f"{type(seeder).__name__}.seed must be async")
        return seeder.seed
    raise SeederResolutionError(f"unsupported seeder: {seeder!r}; expected an async function or a Seeder")
