"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the credential services and
the operational scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Optional

import os

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()

TimeUnit = Literal["minute", "hour", "day"]


class ProviderSettings(BaseSettings):
    """Configuration required for talking to the OAuth provider."""

    model_config = SettingsConfigDict(populate_by_name=True)

    client_id: str = Field(..., validation_alias="OAUTH_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="OAUTH_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="OAUTH_REDIRECT_URI")
    authorize_url: str = Field(
        "https://accounts.spotify.com/authorize",
        validation_alias="OAUTH_AUTHORIZE_URL",
    )
    token_url: str = Field(
        "https://accounts.spotify.com/api/token",
        validation_alias="OAUTH_TOKEN_URL",
    )
    profile_url: str = Field(
        "https://api.spotify.com/v1/me",
        validation_alias="OAUTH_PROFILE_URL",
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("user-top-read",),
        validation_alias="OAUTH_SCOPES",
    )
    http_timeout: float = Field(10.0, validation_alias="OAUTH_HTTP_TIMEOUT")

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class CacheSettings(BaseSettings):
    """Lifetimes of the volatile caches and the refresh policy."""

    model_config = SettingsConfigDict(populate_by_name=True)

    state_cache_time_unit: TimeUnit = Field(
        "day",
        validation_alias="STATE_CACHE_TIME_UNIT",
        description="State entries expire at the start of the next unit.",
    )
    token_cache_time_unit: TimeUnit = Field(
        "day",
        validation_alias="TOKEN_CACHE_TIME_UNIT",
        description="Cached credentials expire at the start of the next unit.",
    )
    refresh_leeway_seconds: int = Field(
        0,
        ge=0,
        validation_alias="TOKEN_REFRESH_LEEWAY_SECONDS",
        description="Treat credentials as stale this many seconds before expiry.",
    )
    state_cache_max_entries: int = Field(
        10_000,
        ge=1,
        validation_alias="STATE_CACHE_MAX_ENTRIES",
        description="Outstanding states kept at once; the soonest to expire is dropped first.",
    )
    token_cache_max_entries: int = Field(
        10_000,
        ge=1,
        validation_alias="TOKEN_CACHE_MAX_ENTRIES",
        description="Cached credentials kept at once; evicted ones are read from storage.",
    )


class StorageSettings(BaseSettings):
    """Durable credential storage configuration."""

    model_config = SettingsConfigDict(populate_by_name=True)

    backend: Literal["sqlite", "dynamodb"] = Field(
        "sqlite", validation_alias="CREDENTIAL_STORE_BACKEND"
    )
    db_path: str = Field("data/credentials.db", validation_alias="CREDENTIAL_DB_PATH")
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")
    dynamodb_table_name: Optional[str] = Field(
        None,
        validation_alias="DYNAMODB_TABLE_NAME",
        description="Required when the dynamodb backend is selected.",
    )


class UserDirectorySettings(BaseSettings):
    """Settings for the external user directory service."""

    model_config = SettingsConfigDict(populate_by_name=True)

    base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="USER_DIRECTORY_URL",
        description="When omitted, credentials are stored without a user id.",
    )
    service_token: Optional[str] = Field(None, validation_alias="USER_DIRECTORY_TOKEN")
    retry_attempts: int = Field(3, ge=1, validation_alias="USER_DIRECTORY_RETRY_ATTEMPTS")
    timeout: float = Field(10.0, validation_alias="USER_DIRECTORY_TIMEOUT")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting users back to the front-end.",
    )
    session_cookie_name: str = Field("access_token", validation_alias="SESSION_COOKIE_NAME")
    session_cookie_secure: bool = Field(True, validation_alias="SESSION_COOKIE_SECURE")
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    user_directory: UserDirectorySettings = Field(default_factory=UserDirectorySettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "CacheSettings",
    "ProviderSettings",
    "StorageSettings",
    "TimeUnit",
    "UserDirectorySettings",
    "get_settings",
]
