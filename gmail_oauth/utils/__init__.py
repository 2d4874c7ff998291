"""Shared utilities: the exception hierarchy and AES-GCM sealing helpers."""

from gmail_oauth.utils.encryption import generate_key, key_from_hex, seal, unseal
from gmail_oauth.utils.errors import (
    AuthenticationError,
    AuthorizationError,
    GmailAPIError,
    GmailOAuthError,
    NotFoundError,
    PersistenceError,
    TokenError,
    ValidationError,
)

__all__ = [
    # Encryption utilities
    "generate_key",
    "seal",
    "unseal",
    "key_from_hex",
    # Exception hierarchy
    "GmailOAuthError",
    "AuthenticationError",
    "TokenError",
    "AuthorizationError",
    "NotFoundError",
    "PersistenceError",
    "GmailAPIError",
    "ValidationError",
]
