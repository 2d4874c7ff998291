"""File-based credential store for the delegated-access flow.

All records live in one JSON document mapping an opaque local user id to
the flattened TokenSet plus ``created_at``::

    {
      "user_3f2a...": {
        "access_token": "ya29...",
        "refresh_token": "1//...",
        "expires_at": "2026-10-18T12:00:00+00:00",
        "scopes": [...],
        "email": "owner@example.com",
        "created_at": "2026-10-18T11:00:00+00:00"
      }
    }

Writers are serialised with a lock and the document is replaced atomically
(temporary file in the same directory, then ``os.replace``), so concurrent
saves for different ids no longer lose updates. File permissions are
restricted to the owner.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import uuid
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError as ModelValidationError

from gmail_oauth.auth.tokens import CredentialRecord, TokenSet, is_expired
from gmail_oauth.utils.errors import PersistenceError, ValidationError

logger = logging.getLogger(__name__)


def new_local_user_id() -> str:
    """Mint an opaque id for a newly stored credential."""
    return f"user_{uuid.uuid4().hex}"


class CredentialStore:
    """Durable local-user-id -> TokenSet persistence.

    Attributes:
        _path: JSON document holding every record.

    Example:
        >>> store = CredentialStore(Path("tokens.json"))
        >>> store.save("user_1", TokenSet(access_token="ya29..."))
        >>> store.load("user_1").token_set.access_token
        'ya29...'
    """

    def __init__(self, path: Path) -> None:
        """Initialize the store.

        Args:
            path: Location of the JSON document. The file itself is created
                on the first save; its parent directory is created now.
        """
        self._path = path
        self._lock = threading.Lock()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("CredentialStore initialized at %s", self._path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_document(self) -> dict[str, dict[str, object]]:
        """Read the whole document; an absent file is an empty store."""
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.error("Failed to read credential file %s: %s", self._path, e)
            raise PersistenceError(
                f"Failed to read credential file: {e}",
                details={"path": str(self._path), "error_type": type(e).__name__},
            ) from e

        if not raw.strip():
            return {}

        try:
            document = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Credential file %s contains invalid JSON: %s", self._path, e)
            raise PersistenceError(
                "Credential file contains invalid JSON",
                details={"path": str(self._path), "error": str(e)},
            ) from e

        if not isinstance(document, dict):
            raise PersistenceError(
                "Credential file must contain a JSON object",
                details={"path": str(self._path)},
            )
        return document

    def _write_document(self, document: dict[str, dict[str, object]]) -> None:
        """Replace the document atomically with owner-only permissions."""
        directory = self._path.parent
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self._path)
        except OSError as e:
            logger.error("Failed to write credential file %s: %s", self._path, e)
            Path(tmp_name).unlink(missing_ok=True)
            raise PersistenceError(
                f"Failed to write credential file: {e}",
                details={"path": str(self._path), "error_type": type(e).__name__},
            ) from e

    @staticmethod
    def _check_id(local_user_id: str) -> str:
        if not isinstance(local_user_id, str) or not local_user_id.strip():
            raise ValidationError("Local user id cannot be empty", field="userId")
        return local_user_id.strip()

    def save(
        self,
        local_user_id: str,
        token_set: TokenSet,
        email: str | None = None,
    ) -> CredentialRecord:
        """Write or overwrite the record for ``local_user_id``.

        Args:
            local_user_id: Opaque id minted by this server.
            token_set: Tokens to persist.
            email: Mailbox the token was granted by, if known.

        Returns:
            The stored record, ``created_at`` set to now.

        Raises:
            PersistenceError: If the existing file is corrupt or the write
                fails.
        """
        local_user_id = self._check_id(local_user_id)
        record = CredentialRecord(token_set=token_set, email=email)

        with self._lock:
            document = self._read_document()
            document[local_user_id] = record.to_document()
            self._write_document(document)

        logger.info("Saved tokens for user %s", local_user_id)
        return record

    def load(self, local_user_id: str) -> CredentialRecord | None:
        """Load the record for ``local_user_id``.

        Returns:
            The record, or None when the file or the key does not exist.

        Raises:
            PersistenceError: If the file is unreadable or the record is
                malformed.
        """
        local_user_id = self._check_id(local_user_id)

        with self._lock:
            document = self._read_document()

        entry = document.get(local_user_id)
        if entry is None:
            logger.debug("No tokens found for user %s", local_user_id)
            return None

        if not isinstance(entry, dict):
            raise PersistenceError(
                "Stored credential record is not an object",
                details={"user_id": local_user_id},
            )
        try:
            return CredentialRecord.from_document(entry)
        except ModelValidationError as e:
            logger.error("Malformed credential record for %s: %s", local_user_id, e)
            raise PersistenceError(
                "Stored credential record is malformed",
                details={"user_id": local_user_id, "error_count": e.error_count()},
            ) from e

    def replace_token_set(
        self, local_user_id: str, token_set: TokenSet
    ) -> CredentialRecord:
        """Store a refreshed TokenSet, keeping the record's mailbox email."""
        existing = self.load(local_user_id)
        email = existing.email if existing else None
        return self.save(local_user_id, token_set, email=email)

    def delete(self, local_user_id: str) -> bool:
        """Delete the record for ``local_user_id``.

        Returns:
            True if a record was deleted, False if none existed.
        """
        local_user_id = self._check_id(local_user_id)

        with self._lock:
            document = self._read_document()
            if local_user_id not in document:
                return False
            del document[local_user_id]
            self._write_document(document)

        logger.info("Deleted tokens for user %s", local_user_id)
        return True

    @staticmethod
    def is_expired(token_set: TokenSet, now: datetime | None = None) -> bool:
        """True if ``expires_at`` is missing or has passed."""
        return is_expired(token_set, now)


__all__ = ["CredentialStore", "new_local_user_id"]
