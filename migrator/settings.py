from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


REPO_ROOT = Path(__file__).resolve().parents[1]


class MigratorSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="forbid")

    database_url: str
    environment: str = "production"
    log_level: str = "info"

    # Execution strategy
    migration_max_retries: int = 6
    migration_retry_delay_ms: int = 1000
    migration_max_retry_delay_ms: int = 30000

    alembic_script_location: str = str(REPO_ROOT / "db" / "migrations" / "alembic")
    default_tenant_id: str = "t_default"

    @property
    def is_development(self) -> bool:
        return self.environment.strip().lower() == "development"


SETTINGS = MigratorSettings()
