from __future__ import annotations

import argparse
import json
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, insert

from db.context import AppDbContext
from migrator.context import sync_url
from migrator.logging import logger
from migrator.settings import SETTINGS


meta = sa.MetaData()

tenants = sa.Table(
    "tenants",
    meta,
    sa.Column("tenant_id", sa.Text(), primary_key=True),
    sa.Column("display_name", sa.Text(), nullable=False),
    sa.Column("is_active", sa.Boolean(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
)
app_settings = sa.Table(
    "app_settings",
    meta,
    sa.Column("tenant_id", sa.Text(), primary_key=True),
    sa.Column("key", sa.Text(), primary_key=True),
    sa.Column("value", JSONB, nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
)

DEFAULT_SETTINGS: dict[str, Any] = {
    "currency": "USD",
    "locale": "en-US",
    "max_sessions_per_user": 5,
}


def _now() -> datetime:
    return datetime.now(tz=UTC)


def seed_statements(tenant_id: str, display_name: str | None = None) -> list[Any]:
    """
    INSERT ... ON CONFLICT DO NOTHING for the default tenant and its settings.

    Re-running never overwrites rows an operator has since edited.
    """
    now = _now()
    stmts: list[Any] = [
        insert(tenants)
        .values(
            tenant_id=tenant_id,
            display_name=display_name or tenant_id,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["tenant_id"])
    ]
    setting_rows = [
        {"tenant_id": tenant_id, "key": k, "value": v, "updated_at": now} for k, v in DEFAULT_SETTINGS.items()
    ]
    stmts.append(insert(app_settings).values(setting_rows).on_conflict_do_nothing(index_elements=["tenant_id", "key"]))
    return stmts


class TenantSeeder:
    """
    Seeds the default tenant. Safe to run on every startup.

    Without an explicit tenant id it uses `default_tenant_id` from the settings the
    context was built with, so the host's settings reach a class-registered seeder.
    """

    def __init__(self, tenant_id: str | None = None):
        self.tenant_id = tenant_id

    async def seed(self, context: AppDbContext) -> None:
        tenant_id = self.tenant_id or context.settings.default_tenant_id
        async with context.engine.begin() as conn:
            for stmt in seed_statements(tenant_id):
                await conn.execute(stmt)
        logger.info("seed_finished", db_context=context.name, tenant_id=tenant_id)


def seed(database_url: str, tenant_id: str) -> dict[str, int]:
    engine = sa.create_engine(sync_url(database_url), future=True)
    try:
        with engine.begin() as conn:
            for stmt in seed_statements(tenant_id):
                conn.execute(stmt)
            counts = {}
            for table in ["tenants", "app_settings"]:
                counts[table] = conn.execute(sa.text(f"SELECT COUNT(1) FROM {table}")).scalar_one()
    finally:
        engine.dispose()
    return counts


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Seed the default tenant into an already migrated database.")
    parser.add_argument("--database-url", default=SETTINGS.database_url)
    parser.add_argument("--tenant-id", default=SETTINGS.default_tenant_id)
    args = parser.parse_args(argv)
    counts = seed(args.database_url, args.tenant_id)
    print(json.dumps({"tenant_id": args.tenant_id, "counts": counts}, indent=2, default=str))


if __name__ == "__main__":
    main()
