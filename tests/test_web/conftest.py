"""Shared fixtures for HTTP route tests.

The app is built from real components; only the Gmail client factory and
Google's token/userinfo endpoints are replaced.
"""

from collections.abc import Callable, Iterator
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from gmail_oauth.auth.tokens import TokenSet
from gmail_oauth.config import Settings
from gmail_oauth.web.app import create_app

STORED_USER_ID = "user_0123456789abcdef0123456789abcdef"


@pytest.fixture
def mailbox_client() -> MagicMock:
    """Mailbox client handed to every route."""
    client = MagicMock()
    client.get_profile.return_value = {"emailAddress": "shared@example.com"}
    return client


@pytest.fixture
def client_factory(mailbox_client: MagicMock) -> MagicMock:
    return MagicMock(return_value=mailbox_client)


@pytest.fixture
def app(settings: Settings, client_factory: MagicMock) -> FastAPI:
    return create_app(settings, client_factory=client_factory)


@pytest.fixture
def http(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as client:
        yield client


@pytest.fixture
def sign_in(http: TestClient, app: FastAPI) -> Callable[[TokenSet], TestClient]:
    """Run the browser login flow with Google's side mocked out."""

    def _sign_in(
        token_set: TokenSet,
        email: str = "user@example.com",
        display_name: str = "Test User",
    ) -> TestClient:
        manager = app.state.oauth_manager
        response = http.get("/auth/google", follow_redirects=False)
        state = parse_qs(urlparse(response.headers["location"]).query)["state"][0]

        with (
            patch.object(manager, "exchange_code", return_value=token_set),
            patch.object(
                manager, "fetch_profile", return_value=("sub-1", email, display_name)
            ),
        ):
            response = http.get(
                "/auth/google/callback",
                params={"code": "auth-code", "state": state},
                follow_redirects=False,
            )
        assert response.headers["location"] == "/dashboard"
        return http

    return _sign_in


@pytest.fixture
def signed_in(sign_in, fresh_token_set: TokenSet) -> TestClient:
    return sign_in(fresh_token_set)


@pytest.fixture
def stored_user(app: FastAPI, fresh_token_set: TokenSet) -> str:
    """A credential stored for owner@example.com."""
    app.state.credential_store.save(
        STORED_USER_ID, fresh_token_set, email="owner@example.com"
    )
    return STORED_USER_ID
