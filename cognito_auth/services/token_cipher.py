"""Encryption of access and refresh tokens before they reach the database."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken


def derive_fernet_key(secret: str) -> bytes:
    """Stretch an arbitrary secret string into a urlsafe 32-byte Fernet key."""
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class TokenCipherService:
    """Seal token strings at rest using a key derived from a configured secret."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        self._fernet = Fernet(derive_fernet_key(secret))

    def encrypt(self, token: str) -> str:
        return self._fernet.encrypt(token.encode("utf-8")).decode("ascii")

    def decrypt(self, sealed: str) -> str:
        """Reverse ``encrypt``; raises ``ValueError`` for foreign or corrupt values."""
        try:
            token = self._fernet.decrypt(sealed.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError) as exc:
            raise ValueError("Stored token could not be decrypted.") from exc
        return token.decode("utf-8")


__all__ = ["TokenCipherService", "derive_fernet_key"]
