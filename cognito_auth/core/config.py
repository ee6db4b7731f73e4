"""
Application configuration models and helpers.

Centralizes settings for the Cognito hosted UI integration, session signing,
token storage and the HTTP application itself.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional
from urllib.parse import urlsplit

import os

from pydantic import Field, HttpUrl, field_validator
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


class CognitoSettings(BaseSettings):
    """Configuration required for talking to a Cognito user pool domain."""

    model_config = SettingsConfigDict(env_prefix="COGNITO_", extra="ignore")

    oauth2_domain: str = Field(
        ...,
        description="Hosted UI domain, e.g. ``auth.example.com`` (scheme optional).",
    )
    app_client_id: str
    app_secret: str
    redirect_uri: str = Field(
        ..., description="Callback URL registered on the app client, sent verbatim."
    )
    logout_uri: str = Field(
        ..., description="Sign-out URL registered on the app client, sent verbatim."
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = ("openid", "profile")
    http_timeout: float = 10.0

    @field_validator("oauth2_domain")
    @classmethod
    def _strip_scheme(cls, value: str) -> str:
        """Accept the domain with or without ``https://`` and trailing slash."""
        for prefix in ("https://", "http://"):
            if value.startswith(prefix):
                value = value[len(prefix):]
        return value.rstrip("/")

    @field_validator("redirect_uri", "logout_uri")
    @classmethod
    def _require_absolute_url(cls, value: str) -> str:
        """Cognito compares these byte for byte, so they are checked but not rewritten."""
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ValueError("must be an absolute http(s) URL")
        return value

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


class OAuthSettings(BaseSettings):
    """Login flow and browser session configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")
    session_secret: Optional[str] = Field(
        None,
        validation_alias="SESSION_SECRET",
        description="Key used to sign state tokens and session cookies.",
    )
    session_cookie_name: str = Field("session", validation_alias="SESSION_COOKIE_NAME")
    state_cookie_name: str = Field(
        "oauth_state",
        validation_alias="OAUTH_STATE_COOKIE_NAME",
        description="Cookie binding the login state nonce to the browser that started it.",
    )
    session_max_age_seconds: int = Field(
        60 * 60 * 24 * 7, validation_alias="SESSION_MAX_AGE"
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class DatabaseSettings(BaseSettings):
    """Persistence configuration for users, tokens and login history."""

    model_config = SettingsConfigDict(extra="ignore")

    path: str = Field("data/auth.db", validation_alias="DATABASE_PATH")
    login_history_retention_days: Optional[int] = Field(
        None,
        validation_alias="LOGIN_HISTORY_RETENTION_DAYS",
        description="Prune login history older than this many days. Unset keeps everything.",
    )


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
    cognito: CognitoSettings = Field(default_factory=CognitoSettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    @property
    def secure_cookies(self) -> bool:
        return self.environment.lower() not in ("development", "test")


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "CognitoSettings",
    "DatabaseSettings",
    "OAuthSettings",
    "SecuritySettings",
    "get_settings",
]
