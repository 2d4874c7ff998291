"""FastAPI application factory.

``create_app`` wires every component from an explicit ``Settings`` and
hangs them off ``app.state``:

- ``settings``: the configuration the app was built with
- ``oauth_manager``: consent URL, code exchange, refresh
- ``credential_store``: stored TokenSets for the delegated routes
- ``pending_authorizations``: OAuth states issued by the token API
- ``session_codec``: seals the session caller
- ``delegation_verifier``: delegated access checks
- ``audit_logger``: JSON-line audit trail
- ``client_factory``: ``(access_token, mailbox) -> MailboxClient``
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from gmail_oauth.auth.delegation import DelegationVerifier
from gmail_oauth.auth.oauth import OAuthManager
from gmail_oauth.auth.pending import PendingAuthorizations
from gmail_oauth.auth.session import EncryptedSessionCodec, SessionCodec
from gmail_oauth.auth.storage import CredentialStore
from gmail_oauth.config import Settings
from gmail_oauth.gmail.client import MailboxClient
from gmail_oauth.middleware.audit_logger import AuditLogger
from gmail_oauth.utils.encryption import generate_key, key_from_hex
from gmail_oauth.utils.errors import GmailOAuthError
from gmail_oauth.web.responses import build_error_response, error_response
from gmail_oauth.web.routes import auth, delegated, health, mail, pages

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"
SESSION_COOKIE = "gmail_oauth_session"
SESSION_MAX_AGE_SECONDS = 24 * 60 * 60

ClientFactory = Callable[[str, str], MailboxClient]


def _session_codec(settings: Settings) -> SessionCodec:
    if settings.token_encryption_key:
        return EncryptedSessionCodec(key_from_hex(settings.token_encryption_key))
    logger.warning(
        "TOKEN_ENCRYPTION_KEY not set; using a temporary key. "
        "Sessions will not survive a restart."
    )
    return EncryptedSessionCodec(generate_key())


def _session_secret(settings: Settings) -> str:
    if settings.session_secret:
        return settings.session_secret
    logger.warning(
        "SESSION_SECRET not set; using a temporary secret. "
        "Sessions will not survive a restart."
    )
    return secrets.token_hex(32)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(GmailOAuthError)
    async def _handle_server_error(request: Request, exc: GmailOAuthError):
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation(
        request: Request, exc: RequestValidationError
    ):
        errors = [
            {
                "field": ".".join(str(part) for part in error.get("loc", ())[1:]),
                "message": error.get("msg", ""),
            }
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=build_error_response("Invalid request", {"errors": errors}),
        )

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=build_error_response("Internal server error"),
        )


def create_app(
    settings: Settings,
    client_factory: ClientFactory | None = None,
) -> FastAPI:
    """Build the web application.

    Args:
        settings: Runtime configuration.
        client_factory: Builds the mailbox client for a token and mailbox;
            defaults to ``MailboxClient``.

    Returns:
        The configured FastAPI application.
    """
    app = FastAPI(title="Gmail OAuth", version=APP_VERSION)

    app.state.settings = settings
    app.state.oauth_manager = OAuthManager(settings)
    app.state.credential_store = CredentialStore(settings.token_file)
    app.state.pending_authorizations = PendingAuthorizations()
    app.state.session_codec = _session_codec(settings)
    app.state.delegation_verifier = DelegationVerifier(settings.delegation_grants)
    app.state.audit_logger = AuditLogger()
    app.state.client_factory = client_factory or MailboxClient

    app.add_middleware(
        SessionMiddleware,
        secret_key=_session_secret(settings),
        session_cookie=SESSION_COOKIE,
        max_age=SESSION_MAX_AGE_SECONDS,
        same_site="lax",
        https_only=settings.https_only,
    )

    _register_exception_handlers(app)

    app.include_router(pages.router)
    app.include_router(auth.router)
    app.include_router(mail.router)
    app.include_router(delegated.router)
    app.include_router(health.router)

    logger.info(
        "Application created (OAuth configured: %s, delegation grants: %d)",
        settings.oauth_configured,
        len(settings.delegation_grants),
    )
    return app


__all__ = ["create_app", "SESSION_COOKIE"]
