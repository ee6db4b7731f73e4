"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_auth_service,
    get_cognito_client,
    get_oauth_state_encoder,
    get_sqlite_store,
    get_token_cipher_service,
)
from .config import (
    encryption_secret,
    get_app_settings,
    get_cognito_settings,
    get_database_settings,
    signing_secret,
)

__all__ = [
    "encryption_secret",
    "get_app_settings",
    "get_auth_service",
    "get_cognito_client",
    "get_cognito_settings",
    "get_database_settings",
    "get_oauth_state_encoder",
    "get_sqlite_store",
    "get_token_cipher_service",
    "signing_secret",
]
