from __future__ import annotations

import argparse
import asyncio

from db.context import AppDbContext
from db.seed import TenantSeeder
from migrator.context import context_factory
from migrator.hosting import MigrationHost
from migrator.logging import configure_logging
from migrator.settings import SETTINGS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="migrator",
        description="Apply pending migrations and seed the application database once, then exit.",
    )
    parser.add_argument("--environment", default=SETTINGS.environment, help="'development' skips schema migration.")
    parser.add_argument("--no-seed", action="store_true", help="Migrate only.")
    parser.add_argument("--log-level", default=SETTINGS.log_level)
    return parser


def build_host(environment: str, *, seed: bool = True) -> MigrationHost:
    settings = SETTINGS.model_copy(update={"environment": environment})
    host = MigrationHost(settings)
    host.add_migration(context_factory(AppDbContext, settings), TenantSeeder if seed else None)
    return host


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    host = build_host(args.environment, seed=not args.no_seed)
    configure_logging(args.log_level, json_logs=not host.is_development)
    asyncio.run(host.start())
