"""Server-side registry of OAuth ``state`` values issued by the token API.

``/api/auth/url`` is called by API clients that may never carry the
browser's session cookie to the callback, so their ``state`` cannot live
in the session. It is kept here instead, in process memory, and consumed
exactly once by the callback.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 10 * 60


@dataclass
class PendingEntry:
    """One issued state and when it was issued."""

    mode: str
    issued_at: float


class PendingAuthorizations:
    """Single-use OAuth states with a time limit.

    Entries older than ``ttl_seconds`` are treated as absent and swept on
    every write.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS) -> None:
        self._ttl_seconds = ttl_seconds
        self._entries: dict[str, PendingEntry] = {}
        self._lock = threading.Lock()

    def _sweep(self, now: float) -> None:
        expired = [
            state
            for state, entry in self._entries.items()
            if now - entry.issued_at > self._ttl_seconds
        ]
        for state in expired:
            del self._entries[state]
        if expired:
            logger.debug("Dropped %d expired authorization states", len(expired))

    def add(self, state: str, mode: str) -> None:
        """Remember ``state`` until it is taken or expires."""
        now = time.monotonic()
        with self._lock:
            self._sweep(now)
            self._entries[state] = PendingEntry(mode=mode, issued_at=now)

    def take(self, state: str | None) -> str | None:
        """Consume ``state`` and return its mode.

        Returns:
            The mode it was issued with, or None if unknown, expired or
            already taken.
        """
        if not state:
            return None
        now = time.monotonic()
        with self._lock:
            entry = self._entries.pop(state, None)
        if entry is None:
            return None
        if now - entry.issued_at > self._ttl_seconds:
            return None
        return entry.mode

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["PendingAuthorizations", "DEFAULT_TTL_SECONDS"]
