"""Google OAuth 2.0 web-server flow.

``OAuthManager`` covers the three things the server needs from Google's
identity endpoints:

1. Building the consent URL (offline access + forced consent, so a refresh
   token is issued even on repeat sign-ins).
2. Exchanging the callback's authorization code for a ``TokenSet`` and
   looking up who signed in.
3. Refreshing an access token before use when it has expired.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any
from urllib.parse import urlencode

import requests
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from gmail_oauth.auth.tokens import TokenSet, is_expired
from gmail_oauth.config import Settings
from gmail_oauth.utils.errors import AuthenticationError, TokenError

logger = logging.getLogger(__name__)

# Read, send, modify, plus OpenID identity (id, email, display name)
OAUTH_SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.modify",
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URI = "https://openidconnect.googleapis.com/v1/userinfo"

USERINFO_TIMEOUT_SECONDS = 30


class OAuthManager:
    """Drives the consent redirect, code exchange and token refresh.

    Attributes:
        _client_id: Google OAuth client ID.
        _client_secret: Google OAuth client secret.
        _redirect_uri: Callback URI registered with Google.

    Example:
        >>> manager = OAuthManager(Settings.from_env())
        >>> url, state = manager.create_auth_url()
    """

    def __init__(self, settings: Settings) -> None:
        self._client_id = settings.client_id
        self._client_secret = settings.client_secret
        self._redirect_uri = settings.redirect_uri

        if not self.is_configured:
            logger.warning(
                "OAuth credentials not configured. Set GOOGLE_CLIENT_ID and "
                "GOOGLE_CLIENT_SECRET environment variables."
            )

    @property
    def is_configured(self) -> bool:
        """True if both client ID and secret are set."""
        return bool(self._client_id and self._client_secret)

    @property
    def redirect_uri(self) -> str:
        return self._redirect_uri

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise AuthenticationError(
                "OAuth not configured",
                details={
                    "hint": "Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET "
                    "environment variables"
                },
            )

    def _get_client_config(self) -> dict[str, Any]:
        """Client configuration in the shape google-auth-oauthlib expects."""
        return {
            "web": {
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
                "redirect_uris": [self._redirect_uri],
            }
        }

    def create_auth_url(self, state: str | None = None) -> tuple[str, str]:
        """Create the Google consent URL.

        Args:
            state: CSRF token to round-trip through Google. A random one is
                generated when omitted.

        Returns:
            Tuple of (auth_url, state).

        Raises:
            AuthenticationError: If OAuth is not configured.
        """
        self._require_configured()

        if state is None:
            state = secrets.token_urlsafe(32)

        params = {
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "response_type": "code",
            "scope": " ".join(OAUTH_SCOPES),
            "state": state,
            "access_type": "offline",
            "prompt": "consent",
        }

        auth_url = f"{GOOGLE_AUTH_URI}?{urlencode(params)}"
        logger.debug("Created auth URL with state: %s", state[:8] + "...")
        return auth_url, state

    def exchange_code(self, code: str) -> TokenSet:
        """Exchange an authorization code for tokens.

        Raises:
            AuthenticationError: If OAuth is not configured or the exchange
                fails.
        """
        self._require_configured()

        if not code:
            raise AuthenticationError("Authorization code required")

        flow = Flow.from_client_config(
            self._get_client_config(),
            scopes=OAUTH_SCOPES,
            redirect_uri=self._redirect_uri,
        )

        try:
            flow.fetch_token(code=code)
        except Exception as e:
            logger.error("Failed to exchange authorization code: %s", e)
            raise AuthenticationError(
                f"Failed to exchange authorization code: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        token_set = TokenSet.from_credentials(flow.credentials)
        if not token_set.scopes:
            token_set = token_set.model_copy(update={"scopes": list(OAUTH_SCOPES)})

        logger.info(
            "Exchanged authorization code for tokens (refresh token: %s)",
            "yes" if token_set.refresh_token else "no",
        )
        return token_set

    def fetch_profile(self, token_set: TokenSet) -> tuple[str, str, str]:
        """Look up the signed-in user.

        Returns:
            Tuple of (provider_user_id, email, display_name).

        Raises:
            AuthenticationError: If Google rejects the token or the response
                lacks an id or email.
        """
        try:
            response = requests.get(
                GOOGLE_USERINFO_URI,
                headers={"Authorization": f"Bearer {token_set.access_token}"},
                timeout=USERINFO_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            logger.error("Network error fetching user profile: %s", e)
            raise AuthenticationError(
                f"Network error fetching user profile: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        if response.status_code != 200:
            raise AuthenticationError(
                "Failed to fetch user profile",
                details={"status_code": response.status_code},
            )

        data = response.json()
        user_id = data.get("sub")
        email = data.get("email")
        if not user_id or not email:
            raise AuthenticationError(
                "User profile is missing id or email",
                details={"fields": sorted(data.keys())},
            )
        return str(user_id), str(email), str(data.get("name") or email)

    def build_credentials(self, token_set: TokenSet) -> Credentials:
        """Credentials able to refresh themselves with this client's secret."""
        return Credentials(  # type: ignore[no-untyped-call]
            token=token_set.access_token,
            refresh_token=token_set.refresh_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=self._client_id,
            client_secret=self._client_secret,
            scopes=token_set.scopes or OAUTH_SCOPES,
            expiry=token_set.naive_expiry,
        )

    def refresh(self, token_set: TokenSet) -> TokenSet:
        """Mint a new access token from the refresh token.

        Returns:
            A new TokenSet; the refresh token is carried over when Google
            does not rotate it.

        Raises:
            TokenError: If there is no refresh token or Google refuses it.
        """
        if not token_set.refresh_token:
            raise TokenError(
                "No refresh token available",
                details={"hint": "User must re-authenticate to obtain a refresh token"},
            )
        self._require_configured()

        credentials = self.build_credentials(token_set)
        try:
            credentials.refresh(Request())
        except Exception as e:
            logger.error("Failed to refresh token: %s", e)
            raise TokenError(
                f"Failed to refresh token: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        refreshed = TokenSet.from_credentials(credentials)
        if not refreshed.refresh_token:
            refreshed = refreshed.model_copy(
                update={"refresh_token": token_set.refresh_token}
            )
        if not refreshed.scopes:
            refreshed = refreshed.model_copy(update={"scopes": list(token_set.scopes)})

        logger.info("Successfully refreshed access token")
        return refreshed

    def ensure_fresh(self, token_set: TokenSet) -> TokenSet:
        """Return a TokenSet that is safe to send.

        - Not expired: returned unchanged.
        - Expired (or expiry unknown) with a refresh token: refreshed.
        - Expiry unknown, no refresh token: returned unchanged; the remote
          call decides.
        - Known expired, no refresh token: ``TokenError``.
        """
        if not is_expired(token_set):
            return token_set
        if token_set.refresh_token:
            return self.refresh(token_set)
        if token_set.expires_at is None:
            return token_set
        raise TokenError(
            "Access token expired and no refresh token is available",
            details={"expired_at": token_set.expires_at.isoformat()},
        )


__all__ = [
    "OAuthManager",
    "OAUTH_SCOPES",
    "GOOGLE_AUTH_URI",
    "GOOGLE_TOKEN_URI",
    "GOOGLE_USERINFO_URI",
]
