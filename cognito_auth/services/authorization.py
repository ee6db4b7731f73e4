"""
Authorization Code flow on top of the Cognito client and the record store.

Each operation is a provider round trip followed by database writes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from cognito_auth.clients import CognitoOAuthClient, SQLiteStore
from cognito_auth.clients.cognito import TokenNotFoundError
from cognito_auth.models.user import StoredToken, User
from cognito_auth.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


class CognitoAuthService:
    """Signs users in and manages their persisted Cognito tokens."""

    _REFRESH_WINDOW = timedelta(minutes=5)

    def __init__(
        self,
        oauth_client: CognitoOAuthClient,
        store: SQLiteStore,
        token_cipher: TokenCipherService,
        *,
        login_history_retention: Optional[timedelta] = None,
    ) -> None:
        self._oauth = oauth_client
        self._store = store
        self._cipher = token_cipher
        self._history_retention = login_history_retention

    async def authorize(
        self,
        code: str,
        redirect_uri: str,
        *,
        ip_address: Optional[str] = None,
    ) -> User:
        """
        Exchange ``code`` for tokens and record the sign-in.

        ``redirect_uri`` must be the one the login redirect was built with.
        Nothing is written when Cognito rejects the code.
        """
        tokens = await self._oauth.exchange_authorization_code(code, redirect_uri)
        user_info = await self._oauth.fetch_user_info(tokens.access_token)

        now = datetime.now(timezone.utc)
        user = self._store.record_login(
            email=user_info.email,
            sub=user_info.sub,
            name=user_info.name,
            access_token=self._cipher.encrypt(tokens.access_token),
            refresh_token=self._cipher.encrypt(tokens.refresh_token or ""),
            expires_at=now + timedelta(seconds=tokens.expires_in),
            ip_address=ip_address,
            login_at=now,
        )

        if self._history_retention is not None:
            removed = self._store.prune_login_history(before=now - self._history_retention)
            if removed:
                logger.debug("Pruned %d login history rows", removed)

        logger.info("User %s signed in from %s", user.id, ip_address or "unknown address")
        return user

    async def get_access_token(self, user_id: int) -> str:
        """Return a usable access token, refreshing it when close to expiry."""
        record = self._require_token(user_id)

        expires_at = record.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        if expires_at <= datetime.now(timezone.utc) + self._REFRESH_WINDOW:
            record = await self._refresh(user_id, record)

        return self._cipher.decrypt(record.access_token)

    async def refresh_access_token(self, user_id: int) -> StoredToken:
        """Force a refresh of the user's access token."""
        return await self._refresh(user_id, self._require_token(user_id))

    async def _refresh(self, user_id: int, record: StoredToken) -> StoredToken:
        refresh_token = self._cipher.decrypt(record.refresh_token)
        if not refresh_token:
            raise TokenNotFoundError(f"No refresh token stored for user {user_id}.")

        refreshed_at = datetime.now(timezone.utc)
        tokens = await self._oauth.refresh_access_token(refresh_token)
        sealed_refresh = (
            self._cipher.encrypt(tokens.refresh_token)
            if tokens.refresh_token
            else record.refresh_token
        )
        self._store.save_token(
            user_id=user_id,
            access_token=self._cipher.encrypt(tokens.access_token),
            refresh_token=sealed_refresh,
            expires_at=refreshed_at + timedelta(seconds=tokens.expires_in),
        )
        logger.info("Refreshed access token for user %s", user_id)
        return self._require_token(user_id)

    def _require_token(self, user_id: int) -> StoredToken:
        record = self._store.get_token(user_id)
        if record is None:
            raise TokenNotFoundError(f"No token stored for user {user_id}.")
        return record


__all__ = ["CognitoAuthService"]
