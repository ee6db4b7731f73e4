"""Schemas related to the hosted UI login flow."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class OAuthCallbackPayload(BaseModel):
    """Payload sent to complete the OAuth callback exchange."""

    code: str = Field(..., description="Authorization code returned by the hosted UI.")
    state: str = Field(..., description="Opaque state token issued when starting login.")


class AuthorizationUrlResponse(BaseModel):
    authorization_url: str
    state: str


class UserResponse(BaseModel):
    """Public view of a signed-in user."""

    id: int
    sub: str
    email: str
    name: Optional[str] = None


class TokenRefreshResponse(BaseModel):
    status: str = "refreshed"
    expires_at: datetime


__all__ = [
    "AuthorizationUrlResponse",
    "OAuthCallbackPayload",
    "TokenRefreshResponse",
    "UserResponse",
]
