"""Service layer exports."""

from .authorization import CognitoAuthService
from .token_cipher import TokenCipherService

__all__ = [
    "CognitoAuthService",
    "TokenCipherService",
]
