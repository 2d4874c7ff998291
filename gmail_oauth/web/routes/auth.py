"""OAuth routes: browser sign-in, logout and the stored-token API.

One callback serves both flows. The mode recorded with the ``state``
parameter decides what happens after the code exchange:

- ``session``: the caller is placed in the browser session and redirected
  to the dashboard.
- ``store``: the TokenSet is written to the credential store under a new
  local user id, returned as JSON for use with the delegated routes.

Browser sign-in keeps its ``state`` in the session. States issued by
``/api/auth/url`` are kept server-side in ``PendingAuthorizations`` so the
callback does not depend on the API client's cookie.
"""

from __future__ import annotations

import asyncio
import logging
import secrets

from fastapi import APIRouter, Query, Request
from fastapi.responses import RedirectResponse

from gmail_oauth.auth.storage import new_local_user_id
from gmail_oauth.utils.errors import AuthenticationError, GmailOAuthError
from gmail_oauth.web.dependencies import get_session, load_record
from gmail_oauth.web.responses import build_success_response, error_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

MODE_SESSION = "session"
MODE_STORE = "store"

FAILURE_REDIRECT = "/?error=auth_failed"


def _same_state(received: str | None, expected: str | None) -> bool:
    if not received or not expected:
        return False
    return secrets.compare_digest(received.encode(), expected.encode())


@router.get("/auth/google")
async def start_login(request: Request):
    """Redirect the browser to Google's consent screen."""
    oauth = request.app.state.oauth_manager
    try:
        auth_url, state = oauth.create_auth_url()
    except GmailOAuthError as e:
        logger.error("Cannot start login: %s", e)
        return RedirectResponse(url="/?error=oauth_not_configured", status_code=302)

    get_session(request).remember_authorization(state, MODE_SESSION)
    return RedirectResponse(url=auth_url, status_code=302)


@router.get("/auth/google/callback")
async def oauth_callback(
    request: Request,
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
):
    """Complete the authorization code exchange."""
    session = get_session(request)
    audit = request.app.state.audit_logger
    expected_state, mode = session.take_authorization()
    if not _same_state(state, expected_state):
        pending_mode = request.app.state.pending_authorizations.take(state)
        if pending_mode is not None:
            expected_state, mode = state, pending_mode

    try:
        if error:
            raise AuthenticationError(
                "Authorization was denied", details={"provider_error": error}
            )
        if not code:
            raise AuthenticationError("Authorization code missing from callback")
        if not _same_state(state, expected_state):
            raise AuthenticationError("OAuth state mismatch")

        oauth = request.app.state.oauth_manager
        token_set = await asyncio.to_thread(oauth.exchange_code, code)
        provider_user_id, email, display_name = await asyncio.to_thread(
            oauth.fetch_profile, token_set
        )

        if mode == MODE_STORE:
            store = request.app.state.credential_store
            local_user_id = new_local_user_id()
            await asyncio.to_thread(store.save, local_user_id, token_set, email)
            audit.log_auth_event(
                "store_tokens", actor=local_user_id, details={"email": email}
            )
            return build_success_response(
                userId=local_user_id,
                hasRefreshToken=bool(token_set.refresh_token),
                note="Use this userId with the /api/delegated endpoints",
            )

        session.begin(provider_user_id, email, display_name, token_set)
    except GmailOAuthError as e:
        audit.log_auth_event(
            "login", success=False, details={"reason": e.message, "mode": mode}
        )
        if mode == MODE_STORE:
            return error_response(e)
        logger.warning("Login failed: %s", e)
        return RedirectResponse(url=FAILURE_REDIRECT, status_code=302)

    audit.log_auth_event("login", actor=email)
    logger.info("User %s signed in", email)
    return RedirectResponse(url="/dashboard", status_code=302)


@router.get("/logout")
async def logout(request: Request):
    """End the session and clear the cookie."""
    session = get_session(request)
    caller = session.caller
    session.end()
    request.session.clear()
    if caller is not None:
        request.app.state.audit_logger.log_auth_event("logout", actor=caller.email)
    return RedirectResponse(url="/", status_code=302)


@router.get("/api/auth/url")
async def auth_url(request: Request):
    """Start a sign-in whose tokens are kept in the credential store."""
    oauth = request.app.state.oauth_manager
    try:
        url, state = oauth.create_auth_url()
    except GmailOAuthError as e:
        return error_response(e)

    request.app.state.pending_authorizations.add(state, MODE_STORE)
    return build_success_response(
        authUrl=url,
        message="Visit this URL to authorize access to your Gmail account",
    )


@router.get("/api/auth/status")
async def auth_status(
    request: Request, user_id: str | None = Query(None, alias="userId")
):
    """Report whether tokens are stored for ``userId`` and if they expired."""
    try:
        record = await load_record(request, user_id)
    except GmailOAuthError as e:
        return error_response(e)

    expires_at = record.token_set.expires_at
    return build_success_response(
        hasTokens=True,
        isExpired=request.app.state.credential_store.is_expired(record.token_set),
        expiryDate=expires_at.isoformat() if expires_at else None,
    )



@router.delete("/api/auth/tokens")
async def delete_tokens(
    request: Request, user_id: str | None = Query(None, alias="userId")
):
    """Forget the credential stored for ``userId``."""
    try:
        await load_record(request, user_id)
        store = request.app.state.credential_store
        await asyncio.to_thread(store.delete, user_id)
    except GmailOAuthError as e:
        return error_response(e)

    request.app.state.audit_logger.log_auth_event("delete_tokens", actor=user_id)
    return build_success_response(message="Stored tokens deleted")


__all__ = ["router"]
