from __future__ import annotations

import json
from contextlib import asynccontextmanager
from types import SimpleNamespace

import pytest
from sqlalchemy.dialects import postgresql

from migrator.settings import SETTINGS, MigratorSettings


class _RecordingConn:
    def __init__(self) -> None:
        self.statements: list[object] = []

    async def execute(self, stmt) -> None:
        self.statements.append(stmt)


class _RecordingEngine:
    def __init__(self) -> None:
        self.conn = _RecordingConn()

    @asynccontextmanager
    async def begin(self):
        yield self.conn


def _context(default_tenant_id: str) -> SimpleNamespace:
    settings = MigratorSettings(database_url="postgresql+asyncpg://u:p@h/db", default_tenant_id=default_tenant_id)
    return SimpleNamespace(name="AppDbContext", settings=settings, engine=_RecordingEngine())


def _tenant_param(stmt) -> str:
    return stmt.compile(dialect=postgresql.dialect()).params["tenant_id"]


@pytest.mark.asyncio
async def test_tenant_seeder_uses_the_context_settings_by_default() -> None:
    from db.seed import TenantSeeder

    ctx = _context("t_host")
    await TenantSeeder().seed(ctx)

    stmts = ctx.engine.conn.statements
    assert len(stmts) == 2
    assert _tenant_param(stmts[0]) == "t_host"


@pytest.mark.asyncio
async def test_tenant_seeder_explicit_tenant_wins() -> None:
    from db.seed import TenantSeeder

    ctx = _context("t_host")
    await TenantSeeder("t_explicit").seed(ctx)
    assert _tenant_param(ctx.engine.conn.statements[0]) == "t_explicit"


def test_seed_main_defaults_come_from_settings(monkeypatch, capsys) -> None:
    import db.seed

    calls: list[tuple[str, str]] = []

    def fake_seed(database_url: str, tenant_id: str) -> dict[str, int]:
        calls.append((database_url, tenant_id))
        return {"tenants": 1, "app_settings": 3}

    monkeypatch.setattr(db.seed, "seed", fake_seed)
    db.seed.main([])

    assert calls == [(SETTINGS.database_url, SETTINGS.default_tenant_id)]
    out = json.loads(capsys.readouterr().out)
    assert out["counts"] == {"tenants": 1, "app_settings": 3}
