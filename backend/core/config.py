from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic.aliases import AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=BACKEND_DIR / ".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = Field(
        default=f"sqlite+pysqlite:///{BACKEND_DIR / 'timetable.db'}",
        validation_alias=AliasChoices("database_url", "DATABASE_URL"),
    )

    # Runtime
    environment: str = Field(default="development", validation_alias=AliasChoices("environment", "ENVIRONMENT"))
    frontend_origin: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("frontend_origin", "FRONTEND_ORIGIN"),
    )

    # Create missing tables at startup. Production deployments normally manage schema separately.
    auto_create_schema: bool = Field(
        default=True,
        validation_alias=AliasChoices("auto_create_schema", "AUTO_CREATE_SCHEMA"),
    )

    # Logging. Empty log_level picks DEBUG in development and INFO in production.
    log_level: str = Field(default="", validation_alias=AliasChoices("log_level", "LOG_LEVEL"))
    log_dir: Path = Field(default=BACKEND_DIR / "logs", validation_alias=AliasChoices("log_dir", "LOG_DIR"))

    # Scheduler
    slot_granularity_minutes: int = Field(
        default=30,
        gt=0,
        validation_alias=AliasChoices("slot_granularity_minutes", "SLOT_GRANULARITY_MINUTES"),
    )
    max_run_seconds: float = Field(
        default=60.0,
        gt=0,
        validation_alias=AliasChoices("max_run_seconds", "MAX_RUN_SECONDS"),
    )

    @field_validator("frontend_origin")
    @classmethod
    def _normalize_frontend_origin(cls, v: str) -> str:
        # Starlette CORS expects the Origin to match exactly (no trailing slash).
        return v.strip().rstrip("/")

    @field_validator("environment")
    @classmethod
    def _normalize_environment(cls, v: str) -> str:
        return (v or "development").strip().lower()

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if v and v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown LOG_LEVEL {v!r}")
        return v

    @field_validator("database_url")
    @classmethod
    def _normalize_database_url(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("DATABASE_URL must not be empty")
        return v


settings = Settings()
