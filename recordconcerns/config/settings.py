"""
Library configuration via Pydantic Settings.

All values are sourced from environment variables (prefixed with
``RECORDCONCERNS_``) or an .env file. Per-model declarations may override
the hashid and slug defaults.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    """Deployment environment identifiers."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class LogLevel(StrEnum):
    """Structured log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Centralised, type-validated configuration for every concern."""

    model_config = SettingsConfigDict(
        env_prefix="RECORDCONCERNS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────────── #
    app_name: str = Field(
        default="recordconcerns",
        description="Hosting application namespace. Default hashid salt.",
    )
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development|testing|production)",
    )

    # ── Hashids ────────────────────────────────────────────────────────── #
    hashid_salt: str | None = Field(
        default=None,
        description="Salt for hashid encoding. Falls back to app_name.",
    )
    hashid_min_length: int = Field(
        default=8,
        ge=0,
        le=64,
        description="Minimum rendered hashid length",
    )
    hashid_random_ceiling: int = Field(
        default=1_000_000_000,
        ge=1,
        description="Exclusive upper bound for random hashid candidates",
    )

    # ── Slugs ──────────────────────────────────────────────────────────── #
    slug_separator: str = Field(default="-", description="Word separator in slugs")
    slug_max_length: int = Field(
        default=255,
        ge=8,
        le=2048,
        description="Slugs are truncated to this many characters",
    )

    # ── Database ───────────────────────────────────────────────────────── #
    database_url: str = Field(
        default="sqlite+aiosqlite:///./recordconcerns.db",
        description=(
            "Async SQLAlchemy connection string. "
            "Use sqlite+aiosqlite:// for local or postgresql+asyncpg:// for production."
        ),
    )
    db_pool_size: int = Field(default=5, ge=1, le=50, description="Connection pool size")
    db_max_overflow: int = Field(default=10, ge=0, le=100, description="Pool max overflow")
    db_echo: bool = Field(default=False, description="Log all SQL statements (debug only)")

    # ── Logging ────────────────────────────────────────────────────────── #
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Minimum log level")
    log_json: bool = Field(default=True, description="Emit logs as JSON (False for dev console)")

    # ── Validators ─────────────────────────────────────────────────────── #

    @field_validator("slug_separator")
    @classmethod
    def separator_must_not_be_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("slug_separator must not be empty")
        return v

    @model_validator(mode="after")
    def production_safety_checks(self) -> Settings:
        if self.environment == Environment.PRODUCTION and self.db_echo:
            raise ValueError("db_echo must be False in production")
        return self

    @property
    def default_hashid_salt(self) -> str:
        return self.hashid_salt or self.app_name


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings singleton."""
    return Settings()
