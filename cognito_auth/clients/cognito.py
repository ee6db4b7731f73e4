"""
Amazon Cognito hosted UI utilities.

These helpers build the hosted login/logout redirects and perform the
Authorization Code flow against the user pool's OAuth2 endpoints.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
from hashlib import sha256
from typing import Any, Dict, Iterable, Optional
from urllib.parse import urlencode

import httpx
from fastapi import status

from cognito_auth.core.config import CognitoSettings
from cognito_auth.models.oauth import TokenSet, UserInfo

logger = logging.getLogger(__name__)

DEFAULT_AUTH_ERROR = "An error occurred during authorization"


class AuthenticationError(Exception):
    """Raised when Cognito rejects an authorization request."""


class TokenNotFoundError(Exception):
    """Raised when no persisted token is available for a user."""


class InvalidSignatureError(ValueError):
    """Raised when a signed state or session value fails verification."""


class OAuthStateEncoder:
    """Sign and verify OAuth state values and session cookies."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise InvalidSignatureError("Malformed signed value.") from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise InvalidSignatureError("Invalid signature.")
        payload = json.loads(serialized)
        if not isinstance(payload, dict):
            raise InvalidSignatureError("Signed value is not an object.")
        return payload


class CognitoOAuthClient:
    """Build hosted UI URLs and call the Cognito OAuth2 endpoints."""

    LOGIN_PATH = "/login"
    LOGOUT_PATH = "/logout"
    TOKEN_PATH = "/oauth2/token"
    USER_INFO_PATH = "/oauth2/userInfo"

    def __init__(
        self,
        settings: CognitoSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def base_url(self) -> str:
        return f"https://{self._settings.oauth2_domain}"

    def build_login_url(
        self,
        redirect_uri: str,
        scopes: Iterable[str] = (),
        state: Optional[str] = None,
    ) -> str:
        """Construct the hosted login page URL."""
        params = {
            "client_id": self._settings.app_client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
        }
        params.update(self._optional_params(scopes, state))
        return self._url(self.LOGIN_PATH, params)

    def build_logout_url(self, logout_uri: str) -> str:
        """Construct the URL that signs out and redirects to ``logout_uri``."""
        params = {
            "client_id": self._settings.app_client_id,
            "logout_uri": logout_uri,
        }
        return self._url(self.LOGOUT_PATH, params)

    def build_logout_and_login_url(
        self,
        redirect_uri: str,
        scopes: Iterable[str] = (),
        state: Optional[str] = None,
    ) -> str:
        """Construct the URL that signs out and shows the login page again."""
        params = {
            "client_id": self._settings.app_client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
        }
        params.update(self._optional_params(scopes, state))
        return self._url(self.LOGOUT_PATH, params)

    async def exchange_authorization_code(self, code: str, redirect_uri: str) -> TokenSet:
        """
        Exchange an authorization code for tokens.

        Codes are single use: a second exchange of the same code fails with
        ``invalid_grant``.
        """
        token_payload = await self._request_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
            }
        )
        if not all(
            token_payload.get(key) for key in ("access_token", "refresh_token", "expires_in")
        ):
            raise AuthenticationError("Incomplete token payload returned from Cognito.")

        return TokenSet(
            id_token=token_payload.get("id_token"),
            access_token=token_payload["access_token"],
            refresh_token=token_payload["refresh_token"],
            expires_in=int(token_payload["expires_in"]),
            token_type=token_payload.get("token_type", "Bearer"),
        )

    async def refresh_access_token(self, refresh_token: str) -> TokenSet:
        """Obtain a new access token using a stored refresh token."""
        token_payload = await self._request_token(
            {
                "grant_type": "refresh_token",
                "client_id": self._settings.app_client_id,
                "refresh_token": refresh_token,
            }
        )
        if not token_payload.get("access_token") or not token_payload.get("expires_in"):
            raise AuthenticationError("Incomplete refresh payload returned from Cognito.")

        return TokenSet(
            id_token=token_payload.get("id_token"),
            access_token=token_payload["access_token"],
            refresh_token=token_payload.get("refresh_token"),
            expires_in=int(token_payload["expires_in"]),
            token_type=token_payload.get("token_type", "Bearer"),
        )

    async def fetch_user_info(self, access_token: str) -> UserInfo:
        """Retrieve the signed-in user's attributes."""
        async with self._http_client() as client:
            response = await client.get(
                f"{self.base_url}{self.USER_INFO_PATH}",
                headers={"Authorization": f"Bearer {access_token}"},
            )

        claims = _json_body(response)
        if response.status_code != status.HTTP_200_OK:
            logger.warning(
                "Cognito userInfo request failed with status %s", response.status_code
            )
            raise AuthenticationError(claims.get("error_description") or DEFAULT_AUTH_ERROR)

        if not claims.get("sub") or not claims.get("email"):
            raise AuthenticationError("User info response is missing sub or email.")

        return UserInfo.from_claims(claims)

    async def _request_token(self, data: Dict[str, str]) -> Dict[str, Any]:
        async with self._http_client() as client:
            response = await client.post(
                f"{self.base_url}{self.TOKEN_PATH}",
                data=data,
                headers={"Authorization": self._basic_credentials()},
            )

        token_payload = _json_body(response)
        if response.status_code != status.HTTP_200_OK:
            logger.warning(
                "Cognito rejected %s grant (status=%s, error=%s)",
                data["grant_type"],
                response.status_code,
                token_payload.get("error"),
            )
            raise AuthenticationError(
                token_payload.get("error_description") or DEFAULT_AUTH_ERROR
            )
        return token_payload

    def _basic_credentials(self) -> str:
        pair = f"{self._settings.app_client_id}:{self._settings.app_secret}"
        return "Basic " + base64.b64encode(pair.encode("utf-8")).decode("ascii")

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.http_timeout, transport=self._transport
        )

    def _url(self, path: str, params: Dict[str, str]) -> str:
        return f"{self.base_url}{path}?{urlencode(params)}"

    @staticmethod
    def _optional_params(scopes: Iterable[str], state: Optional[str]) -> Dict[str, str]:
        params: Dict[str, str] = {}
        scope = " ".join(scopes)
        if scope:
            params["scope"] = scope
        if state:
            params["state"] = state
        return params


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


__all__ = [
    "AuthenticationError",
    "CognitoOAuthClient",
    "DEFAULT_AUTH_ERROR",
    "InvalidSignatureError",
    "OAuthStateEncoder",
    "TokenNotFoundError",
]
