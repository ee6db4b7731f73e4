"""
Settings as seen by routes and client factories.

Routes take the whole ``AppSettings`` through ``get_app_settings`` so tests can
swap it with ``app.dependency_overrides``. The factories in ``clients`` only
read the section they are built from, and the two secrets that fall back to
the app client secret are resolved here in one place.
"""

from cognito_auth.core.config import (
    AppSettings,
    CognitoSettings,
    DatabaseSettings,
    get_settings,
)


def get_app_settings() -> AppSettings:
    return get_settings()


def get_cognito_settings() -> CognitoSettings:
    return get_app_settings().cognito


def get_database_settings() -> DatabaseSettings:
    return get_app_settings().database


def signing_secret(settings: AppSettings) -> str:
    """Key for OAuth state and session cookie signatures."""
    return settings.oauth.session_secret or settings.cognito.app_secret


def encryption_secret(settings: AppSettings) -> str:
    """Seed for the Fernet key protecting stored tokens."""
    return settings.security.token_encryption_secret or settings.cognito.app_secret


__all__ = [
    "encryption_secret",
    "get_app_settings",
    "get_cognito_settings",
    "get_database_settings",
    "signing_secret",
]
