from __future__ import annotations

from migrator.context import DbContext


class AppDbContext(DbContext):
    """The application's own database: tenants and per-tenant settings."""
