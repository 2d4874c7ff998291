"""Per-request plumbing: session access, caller resolution and stored credentials.

Components live on ``app.state`` (set up by ``create_app``); these helpers
read them from the request so routes never touch module-level state.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from fastapi import Request

from gmail_oauth.auth.session import AuthorizationSession
from gmail_oauth.auth.tokens import AuthenticatedCaller, CredentialRecord
from gmail_oauth.gmail.client import MailboxClient
from gmail_oauth.utils.errors import (
    AuthenticationError,
    NotFoundError,
    TokenError,
    ValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_session(request: Request) -> AuthorizationSession:
    """Wrap ``request.session`` with the app's session codec."""
    return AuthorizationSession(request.session, request.app.state.session_codec)


def make_client(request: Request, access_token: str, mailbox: str = "me") -> MailboxClient:
    """Build a mailbox client through the app's client factory."""
    return request.app.state.client_factory(access_token, mailbox)


async def require_caller(request: Request) -> AuthenticatedCaller:
    """Resolve the session caller with a token that is safe to send.

    An expired access token is refreshed first and the new TokenSet written
    back into the session.

    Raises:
        AuthenticationError: If the session is anonymous.
        TokenError: If the token is expired and cannot be refreshed; the
            session is ended.
    """
    session = get_session(request)
    caller = session.caller
    if caller is None:
        raise AuthenticationError("Not authenticated")

    oauth = request.app.state.oauth_manager
    audit = request.app.state.audit_logger
    try:
        token_set = await asyncio.to_thread(oauth.ensure_fresh, caller.token_set)
    except TokenError as e:
        session.end()
        audit.log_auth_event(
            "refresh", actor=caller.email, success=False, details={"reason": e.message}
        )
        raise

    if token_set is not caller.token_set:
        caller = session.replace_token_set(token_set)
        audit.log_auth_event("refresh", actor=caller.email)
    return caller


async def load_record(request: Request, user_id: str | None) -> CredentialRecord:
    """Load the stored credential for ``userId``.

    Raises:
        ValidationError: If no ``userId`` was supplied.
        NotFoundError: If nothing is stored under it.
    """
    if not user_id or not user_id.strip():
        raise ValidationError(
            "User ID required. Use the userId from authentication.", field="userId"
        )
    store = request.app.state.credential_store
    record = await asyncio.to_thread(store.load, user_id)
    if record is None:
        raise NotFoundError(
            "User not found or not authenticated. Please authenticate first.",
            details={"userId": user_id},
        )
    return record


async def refresh_record(
    request: Request, user_id: str, record: CredentialRecord
) -> CredentialRecord:
    """Refresh a stored credential if needed, persisting the new TokenSet."""
    oauth = request.app.state.oauth_manager
    token_set = await asyncio.to_thread(oauth.ensure_fresh, record.token_set)
    if token_set is record.token_set:
        return record

    store = request.app.state.credential_store
    updated = await asyncio.to_thread(store.replace_token_set, user_id, token_set)
    request.app.state.audit_logger.log_auth_event(
        "refresh", actor=user_id, details={"email": record.email}
    )
    return updated


async def run_operation(
    request: Request,
    operation: str,
    params: dict[str, Any],
    func: Callable[..., T],
    *args: Any,
    actor: str,
    mailbox: str | None = None,
) -> T:
    """Run a blocking mailbox call in a worker thread with audit logging.

    Args:
        request: Current request (for the audit logger).
        operation: Name recorded in the audit trail.
        params: Parameters recorded in the audit trail (redacted).
        func: The blocking call.
        *args: Positional arguments for ``func``.
        actor: Caller email or local user id.
        mailbox: Mailbox acted on, if not the caller's own.

    Returns:
        Result of ``func``.
    """
    audit = request.app.state.audit_logger
    start_time = time.perf_counter()
    result_status = "success"
    error_message: str | None = None

    try:
        return await asyncio.to_thread(func, *args)
    except Exception as e:
        result_status = "error"
        error_message = str(e)
        raise
    finally:
        audit.log_operation(
            operation=operation,
            parameters=params,
            actor=actor,
            mailbox=mailbox,
            result_status=result_status,
            error_message=error_message,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )


__all__ = [
    "get_session",
    "make_client",
    "require_caller",
    "load_record",
    "refresh_record",
    "run_operation",
]
