"""Expose constructed client wrappers."""

from .cognito import CognitoOAuthClient, OAuthStateEncoder
from .sqlite_store import SQLiteStore

__all__ = [
    "CognitoOAuthClient",
    "OAuthStateEncoder",
    "SQLiteStore",
]
