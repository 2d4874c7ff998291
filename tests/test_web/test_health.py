"""Tests for the liveness endpoint."""

from datetime import datetime

from fastapi.testclient import TestClient


def test_health_anonymous(http: TestClient) -> None:
    response = http.get("/health")

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "OK"
    assert body["authenticated"] is False
    assert body["environment"] == {
        "client_id_set": True,
        "client_secret_set": True,
        "session_secret_set": True,
        "token_encryption_key_set": True,
    }
    datetime.fromisoformat(body["timestamp"])


def test_health_reveals_no_secrets(http: TestClient) -> None:
    text = http.get("/health").text

    assert "test-client-secret" not in text
    assert "test-session-secret" not in text
    assert "0f0f0f" not in text


def test_health_signed_in(signed_in: TestClient) -> None:
    assert signed_in.get("/health").json()["authenticated"] is True
