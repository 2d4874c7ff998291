"""Delegated mailbox access checks.

A stored credential may act on a mailbox other than its own only when both
hold:

1. the operator listed the target under the credential's mailbox in
   ``DELEGATION_GRANTS``, and
2. Google confirms the token can read the target's profile.

Anything that cannot be verified is refused.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from gmail_oauth.auth.tokens import CredentialRecord
from gmail_oauth.utils.errors import AuthorizationError, GmailOAuthError

logger = logging.getLogger(__name__)


class ProfileSource(Protocol):
    def get_profile(self, mailbox: str | None = None) -> dict[str, Any]: ...


class DelegationVerifier:
    """Decides whether a stored credential may act on a target mailbox.

    Args:
        grants: Owner address -> addresses that owner may act on. Keys and
            values are compared case-insensitively.
    """

    def __init__(self, grants: dict[str, list[str]] | None = None) -> None:
        self._grants = {
            owner.lower(): {t.lower() for t in targets}
            for owner, targets in (grants or {}).items()
        }

    def is_granted(self, owner: str | None, target_email: str) -> bool:
        """True if the operator configured ``owner`` -> ``target_email``."""
        if not owner:
            return False
        return target_email.lower() in self._grants.get(owner.lower(), set())

    def verify(
        self, record: CredentialRecord, target_email: str, client: ProfileSource
    ) -> None:
        """Raise unless the record may act on ``target_email``.

        Raises:
            AuthorizationError: If there is no grant, or the provider does
                not confirm access.
        """
        owner = record.email
        target = target_email.lower()

        if owner and owner.lower() == target:
            return

        if not self.is_granted(owner, target):
            logger.warning("No delegation grant from %s to %s", owner, target_email)
            raise AuthorizationError(
                "Delegated access to this mailbox is not granted",
                details={"targetEmail": target_email},
            )

        try:
            profile = client.get_profile(target_email)
        except GmailOAuthError as e:
            logger.warning(
                "Provider refused delegated access from %s to %s: %s",
                owner,
                target_email,
                e.message,
            )
            raise AuthorizationError(
                "Delegated access could not be verified",
                details={"targetEmail": target_email, "reason": e.message},
            ) from e

        confirmed = str(profile.get("emailAddress", "")).lower()
        if confirmed != target:
            raise AuthorizationError(
                "Delegated access could not be verified",
                details={"targetEmail": target_email},
            )

    def status(
        self, record: CredentialRecord, target_email: str, client: ProfileSource
    ) -> dict[str, Any]:
        """Report whether access would be allowed, without raising."""
        try:
            self.verify(record, target_email, client)
        except AuthorizationError as e:
            return {"has_access": False, "reason": e.message}
        return {"has_access": True, "reason": "Delegation verified"}


__all__ = ["DelegationVerifier", "ProfileSource"]
