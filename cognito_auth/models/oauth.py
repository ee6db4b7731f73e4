"""
Payloads returned by the Cognito OAuth2 endpoints.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class TokenSet(BaseModel):
    """Tokens issued by the ``/oauth2/token`` endpoint."""

    id_token: Optional[str] = None
    access_token: str
    refresh_token: Optional[str] = Field(
        None, description="Absent when the grant was a refresh_token grant."
    )
    expires_in: int = Field(..., description="Access token lifetime in seconds.")
    token_type: str = "Bearer"


class UserInfo(BaseModel):
    """User attributes returned by the ``/oauth2/userInfo`` endpoint."""

    sub: str
    email: str
    username: Optional[str] = None
    name: Optional[str] = None
    family_name: Optional[str] = None
    given_name: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "UserInfo":
        return cls(
            sub=claims["sub"],
            email=claims["email"],
            username=claims.get("username"),
            name=claims.get("name"),
            family_name=claims.get("family_name"),
            given_name=claims.get("given_name"),
            department=claims.get("custom:department"),
            position=claims.get("custom:position"),
        )


__all__ = ["TokenSet", "UserInfo"]
