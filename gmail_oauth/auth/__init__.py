"""Authentication module for the Gmail OAuth server.

This module covers the OAuth 2.0 token lifecycle:

- Consent URL, code exchange and refresh against Google
- The per-browser-session caller, sealed with AES-256-GCM
- File-based credential persistence keyed by local user id
- Delegated mailbox access checks

Usage:
    >>> from gmail_oauth.auth import CredentialStore, OAuthManager
    >>>
    >>> manager = OAuthManager(settings)
    >>> url, state = manager.create_auth_url()
    >>> token_set = manager.exchange_code(code)
    >>> CredentialStore(settings.token_file).save("user_1", token_set)
"""

from gmail_oauth.auth.delegation import DelegationVerifier
from gmail_oauth.auth.oauth import (
    GOOGLE_AUTH_URI,
    GOOGLE_TOKEN_URI,
    OAUTH_SCOPES,
    OAuthManager,
)
from gmail_oauth.auth.session import (
    AuthorizationSession,
    EncryptedSessionCodec,
    JSONSessionCodec,
    SessionCodec,
    caller_summary,
)
from gmail_oauth.auth.storage import CredentialStore, new_local_user_id
from gmail_oauth.auth.tokens import (
    AuthenticatedCaller,
    CredentialRecord,
    TokenSet,
    is_expired,
)

__all__ = [
    # OAuth
    "OAuthManager",
    "OAUTH_SCOPES",
    "GOOGLE_AUTH_URI",
    "GOOGLE_TOKEN_URI",
    # Session
    "AuthorizationSession",
    "SessionCodec",
    "JSONSessionCodec",
    "EncryptedSessionCodec",
    "caller_summary",
    # Storage
    "CredentialStore",
    "new_local_user_id",
    # Tokens
    "TokenSet",
    "AuthenticatedCaller",
    "CredentialRecord",
    "is_expired",
    # Delegation
    "DelegationVerifier",
]
