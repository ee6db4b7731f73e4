"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from datetime import timedelta
from functools import lru_cache

from cognito_auth.clients import CognitoOAuthClient, OAuthStateEncoder, SQLiteStore
from cognito_auth.services import CognitoAuthService, TokenCipherService

from .config import (
    encryption_secret,
    get_app_settings,
    get_cognito_settings,
    get_database_settings,
    signing_secret,
)


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide the signer for state tokens and session cookies."""
    return OAuthStateEncoder(secret_key=signing_secret(get_app_settings()))


@lru_cache()
def get_cognito_client() -> CognitoOAuthClient:
    """Create a singleton Cognito OAuth client."""
    return CognitoOAuthClient(get_cognito_settings())


@lru_cache()
def get_sqlite_store() -> SQLiteStore:
    """Provide shared SQLite record store."""
    return SQLiteStore(get_database_settings().path)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    return TokenCipherService(secret=encryption_secret(get_app_settings()))


@lru_cache()
def get_auth_service() -> CognitoAuthService:
    """Provide the sign-in service wired to the shared client and store."""
    retention_days = get_database_settings().login_history_retention_days
    return CognitoAuthService(
        oauth_client=get_cognito_client(),
        store=get_sqlite_store(),
        token_cipher=get_token_cipher_service(),
        login_history_retention=(
            timedelta(days=retention_days) if retention_days else None
        ),
    )


__all__ = [
    "get_auth_service",
    "get_cognito_client",
    "get_oauth_state_encoder",
    "get_sqlite_store",
    "get_token_cipher_service",
]
