"""
Domain models for persisted users, tokens and login history.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class User(BaseModel):
    """A local user record keyed by email."""

    id: int
    sub: str = Field(..., description="Subject identifier issued by Cognito.")
    email: str
    name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class StoredToken(BaseModel):
    """The current token pair for a user; token values are encrypted."""

    user_id: int
    access_token: str
    refresh_token: str
    expires_at: datetime
    created_at: datetime
    updated_at: datetime


class LoginHistoryEntry(BaseModel):
    id: int
    user_id: int
    ip_address: Optional[str] = None
    login_at: datetime


__all__ = ["LoginHistoryEntry", "StoredToken", "User"]
