"""Server configuration.

All settings are read from the environment once, at startup, into a
``Settings`` instance that is handed to ``create_app``. Nothing else in the
package calls ``os.getenv``.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

REQUIRED_VARIABLES = (
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "SESSION_SECRET",
    "TOKEN_ENCRYPTION_KEY",
)


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _parse_grants(raw: str) -> dict[str, list[str]]:
    """Parse DELEGATION_GRANTS, a JSON object of owner -> [target, ...]."""
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error("DELEGATION_GRANTS is not valid JSON: %s", e)
        return {}
    if not isinstance(data, dict):
        logger.error("DELEGATION_GRANTS must be a JSON object")
        return {}

    grants: dict[str, list[str]] = {}
    for owner, targets in data.items():
        if isinstance(targets, str):
            targets = [targets]
        if not isinstance(targets, list):
            logger.warning("Ignoring delegation grants for %s: not a list", owner)
            continue
        grants[str(owner).lower()] = [str(t).lower() for t in targets]
    return grants


class Settings(BaseModel):
    """Runtime configuration for the web server."""

    client_id: str | None = Field(default=None, description="Google OAuth client ID")
    client_secret: str | None = Field(
        default=None, description="Google OAuth client secret"
    )
    redirect_uri: str = Field(
        default="http://localhost:3000/auth/google/callback",
        description="OAuth callback registered with Google",
    )
    session_secret: str | None = Field(
        default=None, description="Key used to sign the session cookie"
    )
    token_encryption_key: str | None = Field(
        default=None, description="64 hex characters sealing the session payload"
    )
    token_file: Path = Field(
        default=Path("tokens.json"), description="Credential store location"
    )
    delegation_grants: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Mailboxes each owner may act on through delegated routes",
    )
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    https_only: bool = False
    default_max_results: int = Field(default=20, ge=1, le=500)
    delegated_max_results: int = Field(default=10, ge=1, le=500)

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from environment variables."""
        port = int(os.getenv("PORT", "3000"))
        return cls(
            client_id=os.getenv("GOOGLE_CLIENT_ID") or None,
            client_secret=os.getenv("GOOGLE_CLIENT_SECRET") or None,
            redirect_uri=os.getenv(
                "GOOGLE_REDIRECT_URI",
                f"http://localhost:{port}/auth/google/callback",
            ),
            session_secret=os.getenv("SESSION_SECRET") or None,
            token_encryption_key=os.getenv("TOKEN_ENCRYPTION_KEY") or None,
            token_file=Path(os.getenv("TOKEN_FILE", "tokens.json")),
            delegation_grants=_parse_grants(os.getenv("DELEGATION_GRANTS", "")),
            host=os.getenv("HOST", "0.0.0.0"),
            port=port,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            https_only=_env_flag("HTTPS_ONLY"),
        )

    @property
    def oauth_configured(self) -> bool:
        """True if both the client ID and secret are set."""
        return bool(self.client_id and self.client_secret)

    def presence(self) -> dict[str, bool]:
        """Report which required values are set, without their values."""
        return {
            "client_id_set": bool(self.client_id),
            "client_secret_set": bool(self.client_secret),
            "session_secret_set": bool(self.session_secret),
            "token_encryption_key_set": bool(self.token_encryption_key),
        }

    def missing(self) -> list[str]:
        """Names of required environment variables that are not set."""
        values = {
            "GOOGLE_CLIENT_ID": self.client_id,
            "GOOGLE_CLIENT_SECRET": self.client_secret,
            "SESSION_SECRET": self.session_secret,
            "TOKEN_ENCRYPTION_KEY": self.token_encryption_key,
        }
        return [name for name in REQUIRED_VARIABLES if not values[name]]


__all__ = ["Settings", "REQUIRED_VARIABLES"]
