"""Application configuration objects."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pydantic settings used to configure the stock-take engine."""

    model_config = SettingsConfigDict(
        env_prefix="STOCKTAKE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = Field(
        default="Stock-take Service",
        description="Human friendly name for the API.",
    )
    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Deployment environment flag used for logging.",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./stocktake.db",
        description="SQLAlchemy compatible database URL.",
    )
    echo_sql: bool = Field(
        default=False,
        description="Enable SQL echo logging for debugging.",
    )
    log_level: str = Field(default="INFO", description="Root log level.")
    access_control_allow_origin: str = Field(
        default="*",
        description="Allowed CORS origins for the API.",
    )
    default_timezone: str = Field(
        default="UTC",
        description="Timezone used to render export dates and read naive merge dates.",
    )
    ingest_batch_size: int = Field(
        default=1000,
        description="Number of catalog rows written per upsert batch.",
    )
    legacy_encoding: str = Field(
        default="big5",
        description="Fallback codec for uploads that are neither BOM-marked nor UTF-8.",
    )
    autocomplete_min_length: int = Field(default=2, ge=1)
    autocomplete_limit: int = Field(default=5, ge=1)
    related_min_vendor_pn_length: int = Field(
        default=3,
        ge=1,
        description="Shortest VendorPN trusted for related-item matching.",
    )
    description_match: Literal["exact", "prefix", "segments"] = Field(
        default="exact",
        description="Comparison used by the description fallback of related-item matching.",
    )
    default_operators: list[str] = Field(
        default_factory=lambda: ["Kayra", "Lynn", "Jamilla", "Hannah", "Devin"],
        description="Operator names offered when no list has been stored yet.",
    )
    access_password: str = Field(
        default="20251201",
        description="Initial access password, hashed into the database on first use.",
    )
    backup_version: str = Field(default="1.5")
    merge_default_operator: str = Field(default="Imported")

    @field_validator("database_url")
    @classmethod
    def _validate_sqlite_path(cls, value: str) -> str:
        if not value.startswith("sqlite"):
            raise ValueError("Only SQLite database URLs are supported")
        if ":memory:" not in value and "///" not in value:
            raise ValueError(
                "SQLite database URLs should be in the form sqlite+aiosqlite:///path/to/db"
            )
        return value

    @field_validator("ingest_batch_size")
    @classmethod
    def _validate_batch_size(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("ingest_batch_size must be positive")
        return value

    @field_validator("default_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.default_timezone)


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of :class:`Settings`."""

    return Settings()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = ["Settings", "get_settings", "configure_logging"]
