from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from cognito_auth.clients.cognito import AuthenticationError, TokenNotFoundError
from cognito_auth.clients.sqlite_store import SQLiteStore
from cognito_auth.models.oauth import TokenSet, UserInfo
from cognito_auth.services.authorization import CognitoAuthService
from cognito_auth.services.token_cipher import TokenCipherService

REDIRECT_URI = "https://app.example.com/api/auth/callback"


class DummyCognitoClient:
    def __init__(self, *, fail_with: str | None = None) -> None:
        self.fail_with = fail_with
        self.exchanges: list[tuple[str, str]] = []
        self.refreshes: list[str] = []
        self.user_info = UserInfo(sub="sub-1", email="taro@example.com", name="Taro")

    async def exchange_authorization_code(self, code: str, redirect_uri: str) -> TokenSet:
        self.exchanges.append((code, redirect_uri))
        if self.fail_with:
            raise AuthenticationError(self.fail_with)
        return TokenSet(
            id_token="id", access_token="access-1", refresh_token="refresh-1", expires_in=3600
        )

    async def fetch_user_info(self, access_token: str) -> UserInfo:
        assert access_token == "access-1"
        return self.user_info

    async def refresh_access_token(self, refresh_token: str) -> TokenSet:
        self.refreshes.append(refresh_token)
        return TokenSet(access_token="access-2", expires_in=1800)


@pytest.fixture()
def store(tmp_path: Path) -> SQLiteStore:
    return SQLiteStore(str(tmp_path / "auth.db"))


@pytest.fixture()
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="service-secret")


@pytest.mark.anyio
async def test_authorize_writes_user_token_and_history(store, cipher) -> None:
    oauth = DummyCognitoClient()
    service = CognitoAuthService(oauth, store, cipher)

    before = datetime.now(timezone.utc)
    user = await service.authorize("code-1", REDIRECT_URI, ip_address="203.0.113.7")

    assert oauth.exchanges == [("code-1", REDIRECT_URI)]
    assert user.email == "taro@example.com"
    assert user.sub == "sub-1"

    token = store.get_token(user.id)
    assert token is not None
    assert token.access_token != "access-1"
    assert cipher.decrypt(token.access_token) == "access-1"
    assert cipher.decrypt(token.refresh_token) == "refresh-1"
    assert before + timedelta(seconds=3590) <= token.expires_at <= datetime.now(
        timezone.utc
    ) + timedelta(seconds=3600)

    history = store.list_login_history(user.id)
    assert len(history) == 1
    assert history[0].ip_address == "203.0.113.7"


@pytest.mark.anyio
async def test_reauthentication_updates_user_and_overwrites_token(store, cipher) -> None:
    oauth = DummyCognitoClient()
    service = CognitoAuthService(oauth, store, cipher)

    first = await service.authorize("code-1", REDIRECT_URI)
    oauth.user_info = UserInfo(sub="sub-9", email="taro@example.com", name="Taro Y.")
    second = await service.authorize("code-2", REDIRECT_URI)

    assert second.id == first.id
    assert second.name == "Taro Y."
    assert len(store.list_login_history(first.id)) == 2


@pytest.mark.anyio
async def test_invalid_code_raises_and_writes_nothing(store, cipher) -> None:
    oauth = DummyCognitoClient(fail_with="Invalid authorization code")
    service = CognitoAuthService(oauth, store, cipher)

    with pytest.raises(AuthenticationError, match="Invalid authorization code"):
        await service.authorize("bad", REDIRECT_URI)

    assert store.get_user_by_email("taro@example.com") is None


@pytest.mark.anyio
async def test_retention_prunes_old_history(store, cipher) -> None:
    service = CognitoAuthService(
        DummyCognitoClient(), store, cipher, login_history_retention=timedelta(days=30)
    )
    user = store.upsert_user(email="taro@example.com", sub="sub-1", name="Taro")
    store.add_login_history(
        user_id=user.id,
        ip_address=None,
        login_at=datetime.now(timezone.utc) - timedelta(days=31),
    )

    await service.authorize("code", REDIRECT_URI)

    assert len(store.list_login_history(user.id)) == 1


@pytest.mark.anyio
async def test_get_access_token_refreshes_near_expiry(store, cipher) -> None:
    oauth = DummyCognitoClient()
    service = CognitoAuthService(oauth, store, cipher)
    user = store.upsert_user(email="taro@example.com", sub="sub-1", name=None)
    store.save_token(
        user_id=user.id,
        access_token=cipher.encrypt("stale-access"),
        refresh_token=cipher.encrypt("refresh-1"),
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=1),
    )

    access_token = await service.get_access_token(user.id)

    assert access_token == "access-2"
    assert oauth.refreshes == ["refresh-1"]
    stored = store.get_token(user.id)
    assert cipher.decrypt(stored.refresh_token) == "refresh-1"
    assert stored.expires_at > datetime.now(timezone.utc) + timedelta(minutes=25)


@pytest.mark.anyio
async def test_get_access_token_returns_fresh_token_without_refresh(store, cipher) -> None:
    oauth = DummyCognitoClient()
    service = CognitoAuthService(oauth, store, cipher)
    user = store.upsert_user(email="taro@example.com", sub="sub-1", name=None)
    store.save_token(
        user_id=user.id,
        access_token=cipher.encrypt("fresh-access"),
        refresh_token=cipher.encrypt("refresh-1"),
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )

    assert await service.get_access_token(user.id) == "fresh-access"
    assert oauth.refreshes == []


@pytest.mark.anyio
async def test_missing_token_raises(store, cipher) -> None:
    service = CognitoAuthService(DummyCognitoClient(), store, cipher)

    with pytest.raises(TokenNotFoundError):
        await service.refresh_access_token(42)
