"""Response envelopes shared by every JSON route.

Success: ``{"success": true, ...payload}``.
Failure: ``{"success": false, "error": "...", "details": {...}}``.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi.responses import JSONResponse

from gmail_oauth.utils.errors import GmailOAuthError, ValidationError

logger = logging.getLogger(__name__)


def build_success_response(**payload: Any) -> dict[str, Any]:
    """Build a success envelope around route-specific keys."""
    return {"success": True, **payload}


def build_error_response(
    error: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a failure envelope.

    Args:
        error: Human-readable error message.
        details: Optional additional context; omitted when empty.
    """
    response: dict[str, Any] = {"success": False, "error": error}
    if details:
        response["details"] = details
    return response


def error_response(exc: GmailOAuthError) -> JSONResponse:
    """Convert a server exception into its JSON response and status code."""
    details = dict(exc.details)
    if isinstance(exc, ValidationError) and exc.field:
        details.setdefault("field", exc.field)
    if exc.status_code >= 500:
        logger.error("Request failed: %s", exc)
    else:
        logger.info("Request rejected (%d): %s", exc.status_code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_response(exc.message, details),
    )


__all__ = ["build_success_response", "build_error_response", "error_response"]
