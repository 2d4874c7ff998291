"""Audit trail for sign-ins, token writes and mailbox operations.

Each event becomes one JSON line on the ``gmail_oauth.audit`` logger, with
token-like and body-like values redacted.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)
audit_log = logging.getLogger("gmail_oauth.audit")


class AuditEntry(BaseModel):
    """Model for an audit log entry."""

    timestamp: str = Field(
        default_factory=lambda: datetime.now(UTC).isoformat(),
        description="ISO format timestamp",
    )
    actor: str = Field(default="anonymous", description="Caller email or local user id")
    operation: str = Field(..., description="Route or auth operation name")
    action: str = Field(default="invoke", description="Action type")
    mailbox: str | None = Field(default=None, description="Mailbox acted on")
    parameters: dict[str, Any] = Field(
        default_factory=dict,
        description="Operation parameters (sensitive data redacted)",
    )
    result_status: str | None = Field(default=None, description="success/error")
    error_message: str | None = Field(default=None, description="Error if failed")
    duration_ms: float | None = Field(default=None, description="Execution time")


class AuditLogger:
    """Writes ``AuditEntry`` records as JSON lines."""

    SENSITIVE_KEYS = {
        "body",
        "message",
        "password",
        "token",
        "secret",
        "code",
        "access_token",
        "refresh_token",
        "client_secret",
        "authorization",
        "attachments",
    }

    def __init__(self, enabled: bool = True) -> None:
        self._enabled = enabled

    def _redact_sensitive(self, params: dict[str, Any]) -> dict[str, Any]:
        """Redact sensitive values from parameters."""
        redacted: dict[str, Any] = {}
        for key, value in params.items():
            if key.lower() in self.SENSITIVE_KEYS:
                redacted[key] = "[REDACTED]" if value else value
            elif isinstance(value, dict):
                redacted[key] = self._redact_sensitive(value)
            else:
                redacted[key] = value
        return redacted

    def log(self, entry: AuditEntry) -> None:
        if not self._enabled:
            return
        try:
            audit_log.info(json.dumps({"audit": entry.model_dump()}, default=str))
        except Exception as e:
            logger.error("Failed to write audit log: %s", e)

    def log_operation(
        self,
        operation: str,
        parameters: dict[str, Any],
        actor: str = "anonymous",
        mailbox: str | None = None,
        result_status: str | None = None,
        error_message: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """Log one mailbox operation performed on behalf of ``actor``."""
        self.log(
            AuditEntry(
                actor=actor,
                operation=operation,
                mailbox=mailbox,
                parameters=self._redact_sensitive(parameters),
                result_status=result_status,
                error_message=error_message,
                duration_ms=duration_ms,
            )
        )

    def log_auth_event(
        self,
        event: str,
        actor: str = "anonymous",
        success: bool = True,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log an authentication event (login, logout, refresh, store...)."""
        self.log(
            AuditEntry(
                actor=actor,
                operation="auth",
                action=event,
                parameters=self._redact_sensitive(details or {}),
                result_status="success" if success else "error",
            )
        )


__all__ = ["AuditEntry", "AuditLogger"]
