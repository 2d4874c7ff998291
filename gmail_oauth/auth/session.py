"""Per-browser-session holder of the authenticated caller.

``AuthorizationSession`` wraps the mutable mapping Starlette exposes as
``request.session``. The caller is never stored as a loose dict: it is
encoded by an injected ``SessionCodec`` and the resulting bytes are kept
base64url-encoded (unpadded) under a single key.

States:
    Anonymous (initial) --begin--> Authenticated --end--> Anonymous

The session also remembers the OAuth ``state`` parameter between the
redirect to Google and the callback.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import MutableMapping
from typing import Any, Protocol

from pydantic import ValidationError as ModelValidationError

from gmail_oauth.auth.tokens import AuthenticatedCaller, TokenSet
from gmail_oauth.utils.encryption import seal, unseal
from gmail_oauth.utils.errors import AuthenticationError, TokenError

logger = logging.getLogger(__name__)

CALLER_KEY = "caller"
OAUTH_STATE_KEY = "oauth_state"
OAUTH_MODE_KEY = "oauth_mode"

# Bound into every sealed blob so a sealed caller cannot be replayed as
# some other kind of payload sealed under the same key.
_CODEC_CONTEXT = b"gmail-oauth-session-v1"


def _to_text(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _from_text(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


class SessionCodec(Protocol):
    """Converts an AuthenticatedCaller to and from opaque bytes."""

    def serialize(self, caller: AuthenticatedCaller) -> bytes: ...

    def deserialize(self, data: bytes) -> AuthenticatedCaller: ...


class JSONSessionCodec:
    """Plain JSON codec. Only suitable when the session store is server-side."""

    def serialize(self, caller: AuthenticatedCaller) -> bytes:
        return caller.model_dump_json().encode("utf-8")

    def deserialize(self, data: bytes) -> AuthenticatedCaller:
        try:
            return AuthenticatedCaller.model_validate_json(data)
        except (ModelValidationError, ValueError) as e:
            raise TokenError(
                "Session payload is not a valid caller",
                details={"error_type": type(e).__name__},
            ) from e


class EncryptedSessionCodec:
    """JSON codec sealed with AES-256-GCM.

    Used with cookie-backed sessions so that tokens never reach the browser
    in readable form.
    """

    def __init__(self, key: bytes) -> None:
        self._key = key
        self._json = JSONSessionCodec()

    def serialize(self, caller: AuthenticatedCaller) -> bytes:
        return seal(self._json.serialize(caller), self._key, _CODEC_CONTEXT)

    def deserialize(self, data: bytes) -> AuthenticatedCaller:
        return self._json.deserialize(unseal(data, self._key, _CODEC_CONTEXT))


class AuthorizationSession:
    """Holds at most one AuthenticatedCaller for a browser session.

    Args:
        storage: The session mapping (``request.session``).
        codec: Codec used to encode the caller.

    Example:
        >>> session = AuthorizationSession({}, JSONSessionCodec())
        >>> session.is_authenticated()
        False
    """

    def __init__(self, storage: MutableMapping[str, Any], codec: SessionCodec) -> None:
        self._storage = storage
        self._codec = codec

    def begin(
        self,
        provider_user_id: str,
        email: str,
        display_name: str,
        token_set: TokenSet,
    ) -> AuthenticatedCaller:
        """Create or replace the caller for this session."""
        caller = AuthenticatedCaller(
            provider_user_id=provider_user_id,
            email=email,
            display_name=display_name,
            token_set=token_set,
        )
        self._storage[CALLER_KEY] = _to_text(self._codec.serialize(caller))
        logger.debug("Session established for %s", email)
        return caller

    @property
    def caller(self) -> AuthenticatedCaller | None:
        """The current caller, or None when anonymous.

        A payload that can no longer be decoded (rotated key, tampering)
        is dropped and the session becomes anonymous.
        """
        encoded = self._storage.get(CALLER_KEY)
        if not encoded:
            return None
        try:
            return self._codec.deserialize(_from_text(encoded))
        except (TokenError, ValueError, TypeError) as e:
            logger.warning("Discarding undecodable session payload: %s", e)
            self._storage.pop(CALLER_KEY, None)
            return None

    def is_authenticated(self) -> bool:
        return self.caller is not None

    def current_access_token(self) -> str:
        """Return the caller's access token as-is.

        No freshness check happens here; see ``OAuthManager.ensure_fresh``.

        Raises:
            AuthenticationError: If no caller is present.
        """
        caller = self.caller
        if caller is None:
            raise AuthenticationError("Not authenticated")
        return caller.token_set.access_token

    def replace_token_set(self, token_set: TokenSet) -> AuthenticatedCaller:
        """Swap in a refreshed TokenSet for the current caller.

        Raises:
            AuthenticationError: If no caller is present.
        """
        caller = self.caller
        if caller is None:
            raise AuthenticationError("Not authenticated")
        return self.begin(
            caller.provider_user_id, caller.email, caller.display_name, token_set
        )

    def end(self) -> None:
        """Forget the caller. Safe to call when already anonymous."""
        self._storage.pop(CALLER_KEY, None)

    # OAuth redirect state

    def remember_authorization(self, state: str, mode: str) -> None:
        """Record the state parameter sent to Google and what the callback should do."""
        self._storage[OAUTH_STATE_KEY] = state
        self._storage[OAUTH_MODE_KEY] = mode

    def take_authorization(self) -> tuple[str | None, str | None]:
        """Pop the pending ``(state, mode)``; both None if nothing is pending."""
        state = self._storage.pop(OAUTH_STATE_KEY, None)
        mode = self._storage.pop(OAUTH_MODE_KEY, None)
        return state, mode


def caller_summary(caller: AuthenticatedCaller) -> dict[str, str]:
    """Public view of a caller, without tokens."""
    return caller.model_dump(include={"provider_user_id", "email", "display_name"})


__all__ = [
    "SessionCodec",
    "JSONSessionCodec",
    "EncryptedSessionCodec",
    "AuthorizationSession",
    "caller_summary",
]
