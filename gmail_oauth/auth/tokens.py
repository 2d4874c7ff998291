"""Token and caller models for the OAuth lifecycle.

A ``TokenSet`` is what Google hands back from a code exchange or refresh.
It is immutable in practice: a refresh produces a new ``TokenSet`` that
replaces the old one wholesale.

Expiry semantics:
- ``expires_at`` in the past (or now) means expired.
- ``expires_at`` missing means the token's age cannot be verified. It is
  reported as expired so callers refresh when they can, but a token with no
  expiry and no refresh token is still sent and allowed to fail.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class TokenSet(BaseModel):
    """Access/refresh credential pair issued by Google.

    Attributes:
        access_token: Bearer token attached to every Gmail API call.
        refresh_token: Long-lived token used to mint new access tokens.
        expires_at: When the access token stops working (UTC).
        scopes: Scopes granted with this token.
    """

    access_token: str = Field(..., min_length=1)
    refresh_token: str | None = None
    expires_at: datetime | None = None
    scopes: list[str] = Field(default_factory=list)

    @field_validator("expires_at")
    @classmethod
    def _normalize_expiry(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @classmethod
    def from_credentials(cls, credentials: object) -> TokenSet:
        """Build a TokenSet from ``google.oauth2.credentials.Credentials``.

        google-auth keeps ``expiry`` as a naive UTC datetime; it is made
        timezone-aware here.
        """
        scopes = getattr(credentials, "scopes", None) or []
        return cls(
            access_token=credentials.token,  # type: ignore[attr-defined]
            refresh_token=getattr(credentials, "refresh_token", None),
            expires_at=getattr(credentials, "expiry", None),
            scopes=list(scopes),
        )

    @property
    def naive_expiry(self) -> datetime | None:
        """``expires_at`` as the naive UTC datetime google-auth expects."""
        if self.expires_at is None:
            return None
        return self.expires_at.astimezone(UTC).replace(tzinfo=None)


def is_expired(token_set: TokenSet, now: datetime | None = None) -> bool:
    """Return True if the access token must be treated as expired.

    Args:
        token_set: Token to check.
        now: Reference time; defaults to the current UTC time.

    Returns:
        True when ``expires_at`` is missing or ``now >= expires_at``.
    """
    if token_set.expires_at is None:
        return True
    reference = _as_utc(now) if now is not None else datetime.now(UTC)
    return reference >= token_set.expires_at


class AuthenticatedCaller(BaseModel):
    """The signed-in user of one HTTP session."""

    provider_user_id: str
    email: str
    display_name: str = ""
    token_set: TokenSet


class CredentialRecord(BaseModel):
    """A TokenSet persisted under an opaque local user id."""

    token_set: TokenSet
    email: str | None = Field(
        default=None, description="Mailbox that granted the token"
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("created_at")
    @classmethod
    def _normalize_created(cls, value: datetime) -> datetime:
        return _as_utc(value)  # type: ignore[return-value]

    def to_document(self) -> dict[str, object]:
        """Flatten into the JSON shape written to the credential file."""
        return {
            "access_token": self.token_set.access_token,
            "refresh_token": self.token_set.refresh_token,
            "expires_at": (
                self.token_set.expires_at.isoformat()
                if self.token_set.expires_at
                else None
            ),
            "scopes": list(self.token_set.scopes),
            "email": self.email,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_document(cls, document: dict[str, object]) -> CredentialRecord:
        """Inverse of ``to_document``.

        Raises:
            pydantic.ValidationError: If required fields are missing or
                malformed.
        """
        token_set = TokenSet(
            access_token=document.get("access_token"),  # type: ignore[arg-type]
            refresh_token=document.get("refresh_token"),  # type: ignore[arg-type]
            expires_at=document.get("expires_at"),  # type: ignore[arg-type]
            scopes=document.get("scopes") or [],  # type: ignore[arg-type]
        )
        email = document.get("email")
        created_at = document.get("created_at")
        if not created_at:
            return cls(token_set=token_set, email=email)  # type: ignore[arg-type]
        return cls(token_set=token_set, email=email, created_at=created_at)  # type: ignore[arg-type]


__all__ = [
    "TokenSet",
    "AuthenticatedCaller",
    "CredentialRecord",
    "is_expired",
]
