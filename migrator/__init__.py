"""
Run database schema migrations and seeding once at application startup.

The host registers one runner per persistence context and awaits them before it
accepts traffic:
- `MigrationHost.add_migration` registers a context factory and an optional seeder
- `MigrationHost.lifespan` plugs the startup hook into a FastAPI app
"""

from migrator.context import DbContext, context_factory, scoped_context
from migrator.hosting import MigrationHost
from migrator.runner import MigrationState, StartupMigrationRunner, migrate_context
from migrator.seeding import Seeder
from migrator.strategy import NoRetryExecutionStrategy, RetryingExecutionStrategy

__all__ = [
    "DbContext",
    "MigrationHost",
    "MigrationState",
    "NoRetryExecutionStrategy",
    "RetryingExecutionStrategy",
    "Seeder",
    "StartupMigrationRunner",
    "context_factory",
    "migrate_context",
    "scoped_context",
]
