"""
Pydantic Settings — single source of truth for all configuration.

Reads from environment variables (and .env file in dev).
Both the API service and the reseed CLI resolve their config via
`get_settings()`.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide settings loaded from env vars."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Database (API service only) ───────────────────
    database_url: str = Field(
        default="",
        description="Async Postgres DSN (postgresql+asyncpg://...)",
    )
    database_pgbouncer: bool = Field(
        default=False,
        description="Disable prepared statements for pgBouncer transaction mode",
    )
    database_pool_size: int = 5

    # ── Data manager endpoints ────────────────────────
    data_manager_base_url: str = Field(
        default="http://127.0.0.1:8080",
        description="Base URL of the service exposing delete-table / insert-table",
    )
    data_manager_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="API key sent as X-Api-Key and required by the data-manager routes",
    )
    request_timeout_seconds: float | None = Field(
        default=None,
        description="Per-request timeout; None leaves calls bounded only by the transport",
    )

    # ── Seed bundles ──────────────────────────────────
    seed_data_root: str = Field(
        default=".",
        description="Directory holding the seed bundle folders",
    )
    default_source_folder: str = Field(
        default="data-db",
        description="Bundle used by insert-table when the caller omits sourceFolder",
    )
    demo_source_folder: str = Field(
        default="demo-data",
        description="Bundle loaded by the demo data wizard and the reseed CLI",
    )

    # ── Pipeline ──────────────────────────────────────
    phase_transition_delay_seconds: float = Field(
        default=1.0,
        description="Pause between deletion-complete and the insertion phase",
    )

    # ── Logging ───────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    # ── Deployment ────────────────────────────────────
    app_environment: str = "development"
    port: int = 8080

    @property
    def is_production(self) -> bool:
        return self.app_environment == "production"

    @property
    def resolved_api_key(self) -> str:
        return self.data_manager_api_key.get_secret_value()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached singleton settings instance."""
    return Settings()
