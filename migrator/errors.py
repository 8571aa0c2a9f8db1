from __future__ import annotations


class MigrationError(RuntimeError):
    """Base class for errors raised by the migrator itself.

    Failures coming from the database, Alembic or a seeder are never wrapped in it.
    """


class SeederResolutionError(MigrationError, TypeError):
    pass
