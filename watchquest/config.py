"""Application configuration models."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="WatchQuest", alias="APP_NAME")

    database_url: str = Field(
        default="sqlite:///./watchquest.db", alias="DATABASE_URL"
    )
    document_key: str = Field(
        default="watchquest_security_db_v1", alias="DOCUMENT_KEY"
    )
    session_key: str = Field(default="watchquest_session_v1", alias="SESSION_KEY")
    storage_quota_bytes: int | None = Field(
        default=5_000_000, alias="STORAGE_QUOTA_BYTES", ge=0
    )

    omdb_api_key: str | None = Field(default=None, alias="OMDB_API_KEY")
    omdb_api_url: HttpUrl = Field(
        default="https://www.omdbapi.com/", alias="OMDB_API_URL"
    )
    provider_timeout_seconds: float = Field(
        default=10.0, alias="PROVIDER_TIMEOUT", gt=0
    )
    search_detail_limit: int = Field(
        default=5, alias="SEARCH_DETAIL_LIMIT", ge=1, le=20
    )

    strike_retention_days: int = Field(
        default=180, alias="STRIKE_RETENTION_DAYS", ge=1
    )
    strike_ban_threshold: int = Field(
        default=3, alias="STRIKE_BAN_THRESHOLD", ge=1, le=20
    )
    fallback_episode_count: int = Field(
        default=10, alias="FALLBACK_EPISODE_COUNT", ge=1, le=500
    )
    default_movie_minutes: int = Field(
        default=120, alias="DEFAULT_MOVIE_MINUTES", ge=1
    )
    seed_demo_data: bool = Field(default=True, alias="SEED_DEMO_DATA")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("storage_quota_bytes", mode="before")
    @classmethod
    def _parse_quota(cls, value: object) -> object:
        """Treat blank or zero quotas as unlimited storage."""

        if value is None:
            return None
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
        if str(value) == "0":
            return None
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> str:
        level = str(value or "INFO").strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def strike_retention_ms(self) -> int:
        """Return the strike lifetime in milliseconds."""

        return self.strike_retention_days * 24 * 60 * 60 * 1000

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", populate_by_name=True
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]
