"""Tests for sign-in, logout, pages and the stored-token API."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

from fastapi.testclient import TestClient

from gmail_oauth.auth.tokens import TokenSet
from gmail_oauth.config import Settings
from gmail_oauth.utils.errors import AuthenticationError
from gmail_oauth.web.app import create_app


def auth_state(response) -> str:
    return parse_qs(urlparse(response.headers["location"]).query)["state"][0]


class TestBrowserLogin:
    def test_login_redirects_to_google(self, http: TestClient) -> None:
        response = http.get("/auth/google", follow_redirects=False)

        assert response.status_code == 302
        location = response.headers["location"]
        assert location.startswith("https://accounts.google.com/o/oauth2/v2/auth")
        params = parse_qs(urlparse(location).query)
        assert params["access_type"] == ["offline"]
        assert params["prompt"] == ["consent"]

    def test_successful_callback_establishes_session(
        self, signed_in: TestClient
    ) -> None:
        assert signed_in.get("/health").json()["authenticated"] is True

        page = signed_in.get("/dashboard")
        assert page.status_code == 200
        assert "user@example.com" in page.text

    def test_state_mismatch_fails(self, http: TestClient, app) -> None:
        http.get("/auth/google", follow_redirects=False)
        manager = app.state.oauth_manager

        with patch.object(manager, "exchange_code") as mock_exchange:
            response = http.get(
                "/auth/google/callback",
                params={"code": "c", "state": "forged"},
                follow_redirects=False,
            )

        assert response.headers["location"] == "/?error=auth_failed"
        mock_exchange.assert_not_called()
        assert http.get("/health").json()["authenticated"] is False

    def test_provider_error_fails(self, http: TestClient) -> None:
        state = auth_state(http.get("/auth/google", follow_redirects=False))

        response = http.get(
            "/auth/google/callback",
            params={"error": "access_denied", "state": state},
            follow_redirects=False,
        )

        assert response.headers["location"] == "/?error=auth_failed"

    def test_missing_code_fails(self, http: TestClient) -> None:
        state = auth_state(http.get("/auth/google", follow_redirects=False))

        response = http.get(
            "/auth/google/callback", params={"state": state}, follow_redirects=False
        )

        assert response.headers["location"] == "/?error=auth_failed"

    def test_exchange_failure(self, http: TestClient, app) -> None:
        state = auth_state(http.get("/auth/google", follow_redirects=False))
        manager = app.state.oauth_manager

        with patch.object(
            manager, "exchange_code", side_effect=AuthenticationError("bad code")
        ):
            response = http.get(
                "/auth/google/callback",
                params={"code": "c", "state": state},
                follow_redirects=False,
            )

        assert response.headers["location"] == "/?error=auth_failed"
        assert http.get("/health").json()["authenticated"] is False

    def test_state_cannot_be_replayed(self, http: TestClient, app) -> None:
        state = auth_state(http.get("/auth/google", follow_redirects=False))
        manager = app.state.oauth_manager
        token_set = TokenSet(access_token="t")

        with (
            patch.object(manager, "exchange_code", return_value=token_set),
            patch.object(
                manager, "fetch_profile", return_value=("s", "u@example.com", "U")
            ),
        ):
            http.get(
                "/auth/google/callback",
                params={"code": "c", "state": state},
                follow_redirects=False,
            )
            http.get("/logout", follow_redirects=False)
            replay = http.get(
                "/auth/google/callback",
                params={"code": "c", "state": state},
                follow_redirects=False,
            )

        assert replay.headers["location"] == "/?error=auth_failed"

    def test_login_without_oauth_config(self, settings: Settings) -> None:
        app = create_app(settings.model_copy(update={"client_id": None}))
        with TestClient(app) as http:
            response = http.get("/auth/google", follow_redirects=False)

        assert response.headers["location"] == "/?error=oauth_not_configured"


class TestLogoutAndPages:
    def test_logout_ends_session(self, signed_in: TestClient) -> None:
        response = signed_in.get("/logout", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/"
        assert signed_in.get("/health").json()["authenticated"] is False
        assert signed_in.get("/api/emails").status_code == 401

    def test_logout_when_anonymous(self, http: TestClient) -> None:
        response = http.get("/logout", follow_redirects=False)
        assert response.headers["location"] == "/"

    def test_landing_page(self, http: TestClient) -> None:
        response = http.get("/")

        assert response.status_code == 200
        assert "Sign in with Google" in response.text
        assert "test-client-secret" not in response.text

    def test_landing_shows_error(self, http: TestClient) -> None:
        response = http.get("/", params={"error": "<b>auth_failed</b>"})
        assert "&lt;b&gt;auth_failed&lt;/b&gt;" in response.text

    def test_landing_reports_configuration(self, http: TestClient) -> None:
        response = http.get("/")

        assert response.headers["content-type"].startswith("text/html")
        assert "<strong>Client ID:</strong> Set" in response.text
        assert "http://localhost:3000/auth/google/callback" in response.text
        assert "Sign-in failed" not in response.text

    def test_dashboard_escapes_profile(
        self, sign_in, fresh_token_set: TokenSet
    ) -> None:
        http = sign_in(fresh_token_set, display_name="<script>x</script>")

        page = http.get("/dashboard")

        assert "Welcome, &lt;script&gt;x&lt;/script&gt;!" in page.text
        assert "<script>x</script>" not in page.text
        assert 'value="user@example.com"' in page.text

    def test_landing_redirects_when_signed_in(self, signed_in: TestClient) -> None:
        response = signed_in.get("/", follow_redirects=False)
        assert response.headers["location"] == "/dashboard"

    def test_dashboard_requires_session(self, http: TestClient) -> None:
        response = http.get("/dashboard", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/"


class TestTokenApi:
    """Sign-in whose tokens go to the credential store."""

    def test_auth_url(self, http: TestClient) -> None:
        body = http.get("/api/auth/url").json()

        assert body["success"] is True
        assert body["authUrl"].startswith("https://accounts.google.com/")
        assert body["message"]

    def test_callback_stores_tokens(self, http: TestClient, app) -> None:
        auth_url = http.get("/api/auth/url").json()["authUrl"]
        state = parse_qs(urlparse(auth_url).query)["state"][0]
        manager = app.state.oauth_manager
        token_set = TokenSet(
            access_token="stored-token",
            refresh_token="1//r",
            expires_at=datetime.now(UTC) + timedelta(hours=1),
        )

        with (
            patch.object(manager, "exchange_code", return_value=token_set),
            patch.object(
                manager,
                "fetch_profile",
                return_value=("sub-9", "owner@example.com", "Owner"),
            ),
        ):
            response = http.get(
                "/auth/google/callback", params={"code": "c", "state": state}
            )

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["hasRefreshToken"] is True
        assert body["userId"].startswith("user_")

        record = app.state.credential_store.load(body["userId"])
        assert record.token_set.access_token == "stored-token"
        assert record.email == "owner@example.com"
        # Token API sign-in does not sign the browser in
        assert http.get("/health").json()["authenticated"] is False

    def test_callback_without_the_api_clients_cookie(
        self, http: TestClient, app
    ) -> None:
        auth_url = http.get("/api/auth/url").json()["authUrl"]
        state = parse_qs(urlparse(auth_url).query)["state"][0]
        manager = app.state.oauth_manager
        browser = TestClient(app)

        with (
            patch.object(
                manager, "exchange_code", return_value=TokenSet(access_token="t")
            ),
            patch.object(
                manager,
                "fetch_profile",
                return_value=("sub-9", "owner@example.com", "Owner"),
            ),
        ):
            response = browser.get(
                "/auth/google/callback", params={"code": "c", "state": state}
            )

        assert response.status_code == 200
        assert response.json()["userId"].startswith("user_")

    def test_store_state_is_single_use(self, http: TestClient, app) -> None:
        auth_url = http.get("/api/auth/url").json()["authUrl"]
        state = parse_qs(urlparse(auth_url).query)["state"][0]
        manager = app.state.oauth_manager

        with (
            patch.object(
                manager, "exchange_code", return_value=TokenSet(access_token="t")
            ) as mock_exchange,
            patch.object(
                manager,
                "fetch_profile",
                return_value=("sub-9", "owner@example.com", "Owner"),
            ),
        ):
            first = http.get(
                "/auth/google/callback", params={"code": "c", "state": state}
            )
            second = http.get(
                "/auth/google/callback",
                params={"code": "c", "state": state},
                follow_redirects=False,
            )

        assert first.status_code == 200
        assert second.headers["location"] == "/?error=auth_failed"
        mock_exchange.assert_called_once()

    def test_store_mode_failure_is_json(self, http: TestClient) -> None:
        auth_url = http.get("/api/auth/url").json()["authUrl"]
        state = parse_qs(urlparse(auth_url).query)["state"][0]

        response = http.get(
            "/auth/google/callback", params={"error": "access_denied", "state": state}
        )

        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_auth_url_without_oauth_config(self, settings: Settings) -> None:
        app = create_app(settings.model_copy(update={"client_secret": None}))
        with TestClient(app) as http:
            response = http.get("/api/auth/url")

        assert response.status_code == 401
        assert response.json()["error"] == "OAuth not configured"

    def test_status_missing_user_id(self, http: TestClient) -> None:
        response = http.get("/api/auth/status")
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_status_unknown_user(self, http: TestClient) -> None:
        response = http.get("/api/auth/status", params={"userId": "user_unknown"})
        assert response.status_code == 404

    def test_status_known_user(self, http: TestClient, stored_user: str) -> None:
        body = http.get("/api/auth/status", params={"userId": stored_user}).json()

        assert body["success"] is True
        assert body["hasTokens"] is True
        assert body["isExpired"] is False
        assert datetime.fromisoformat(body["expiryDate"]) > datetime.now(UTC)

    def test_status_expired_user(
        self, http: TestClient, app, expired_token_set: TokenSet
    ) -> None:
        app.state.credential_store.save("user_old", expired_token_set)

        body = http.get("/api/auth/status", params={"userId": "user_old"}).json()

        assert body["isExpired"] is True


class TestDeleteTokens:
    def test_deletes_stored_credential(
        self, http: TestClient, app, stored_user: str
    ) -> None:
        response = http.delete("/api/auth/tokens", params={"userId": stored_user})

        assert response.json() == {
            "success": True,
            "message": "Stored tokens deleted",
        }
        assert app.state.credential_store.load(stored_user) is None
        status = http.get("/api/auth/status", params={"userId": stored_user})
        assert status.status_code == 404

    def test_unknown_user(self, http: TestClient) -> None:
        response = http.delete("/api/auth/tokens", params={"userId": "user_unknown"})
        assert response.status_code == 404

    def test_missing_user_id(self, http: TestClient) -> None:
        response = http.delete("/api/auth/tokens")
        assert response.status_code == 400
