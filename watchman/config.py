"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Watchman", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl | None = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    poster_base_url: str = Field(
        default="https://image.tmdb.org/t/p/w500", alias="POSTER_BASE_URL"
    )
    watch_provider_region: str = Field(default="IN", alias="WATCH_PROVIDER_REGION")
    certification_country: str = Field(default="US", alias="CERTIFICATION_COUNTRY")

    request_timeout_seconds: float = Field(
        default=20.0, alias="REQUEST_TIMEOUT", gt=0, le=120
    )
    max_retries: int = Field(default=2, alias="TMDB_MAX_RETRIES", ge=0, le=10)

    database_url: str = Field(
        default="sqlite+aiosqlite:///./watchman.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("watch_provider_region", "certification_country", mode="before")
    @classmethod
    def _normalise_region(cls, value: object) -> str:
        """Region codes are ISO 3166-1 alpha-2, compared upper-case."""

        if not isinstance(value, str):
            raise TypeError("Region codes must be strings")
        cleaned = value.strip().upper()
        if len(cleaned) != 2 or not cleaned.isalpha():
            raise ValueError("Region codes must be two-letter country codes")
        return cleaned

    @field_validator("tmdb_api_key", mode="before")
    @classmethod
    def _blank_key_is_missing(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def tmdb_base_url(self) -> str | None:
        """Return the TMDB API root without a trailing slash."""

        if self.tmdb_api_url is None:
            return None
        return str(self.tmdb_api_url).rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
