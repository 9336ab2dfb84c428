"""Application settings and configuration management."""

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Token Signing Configuration
    access_token_secret: str = Field(
        default="default-access-secret",
        description="HMAC secret used to sign access tokens",
    )
    refresh_token_secret: str = Field(
        default="default-refresh-secret",
        description="HMAC secret used to sign refresh tokens",
    )
    access_token_expiry: timedelta = Field(
        default=timedelta(minutes=15),
        description="Access token lifetime (ISO 8601 duration, e.g. PT15M)",
    )
    refresh_token_expiry: timedelta = Field(
        default=timedelta(days=7),
        description="Refresh token lifetime (ISO 8601 duration, e.g. PT15M)",
    )
    token_issuer: str = Field(
        default="agent-service",
        description="Issuer claim written to and required on every token",
    )

    # Operating Mode
    token_stateful: bool = Field(
        default=False,
        description="Track refresh tokens and sessions in Redis",
    )
    session_ttl: timedelta = Field(
        default=timedelta(hours=24),
        description="Lifetime of a session record, set once at creation",
    )

    # Redis Configuration
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for refresh tokens and sessions",
    )
    redis_socket_timeout: float = Field(
        default=5.0,
        description="Redis connect and read timeout in seconds",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log format",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
