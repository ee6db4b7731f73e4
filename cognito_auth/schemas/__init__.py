"""Public schema exports."""

from .auth import (
    AuthorizationUrlResponse,
    OAuthCallbackPayload,
    TokenRefreshResponse,
    UserResponse,
)

__all__ = [
    "AuthorizationUrlResponse",
    "OAuthCallbackPayload",
    "TokenRefreshResponse",
    "UserResponse",
]
