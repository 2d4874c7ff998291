"""Pytest configuration and fixtures for Gmail OAuth server tests."""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from gmail_oauth.auth.tokens import TokenSet
from gmail_oauth.config import Settings

TEST_KEY_HEX = "0f" * 32


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Fixture providing fully configured settings with a temporary token file."""
    return Settings(
        client_id="test-client-id.apps.googleusercontent.com",
        client_secret="test-client-secret",
        redirect_uri="http://localhost:3000/auth/google/callback",
        session_secret="test-session-secret",
        token_encryption_key=TEST_KEY_HEX,
        token_file=tmp_path / "tokens.json",
        delegation_grants={"owner@example.com": ["shared@example.com"]},
    )


@pytest.fixture
def fresh_token_set() -> TokenSet:
    """Fixture providing a token that expires in an hour."""
    return TokenSet(
        access_token="mock-access-token",
        refresh_token="mock-refresh-token",
        expires_at=datetime.now(UTC) + timedelta(hours=1),
        scopes=["https://www.googleapis.com/auth/gmail.readonly"],
    )


@pytest.fixture
def expired_token_set() -> TokenSet:
    """Fixture providing a token that expired an hour ago."""
    return TokenSet(
        access_token="stale-access-token",
        refresh_token="mock-refresh-token",
        expires_at=datetime.now(UTC) - timedelta(hours=1),
    )


@pytest.fixture
def sample_email() -> dict:
    """Fixture providing sample email data for testing."""
    return {
        "id": "18abc123def",
        "threadId": "18abc123def",
        "labelIds": ["INBOX", "UNREAD"],
        "snippet": "This is a test email snippet...",
        "internalDate": "1768921200000",
        "payload": {
            "headers": [
                {"name": "From", "value": "Sender Name <sender@example.com>"},
                {"name": "To", "value": "recipient@example.com"},
                {"name": "Subject", "value": "Test Email Subject"},
                {"name": "Date", "value": "Mon, 20 Jan 2026 10:00:00 -0500"},
                {"name": "Message-ID", "value": "<abc@mail.example.com>"},
            ],
            "mimeType": "text/plain",
            "body": {
                "data": "VGhpcyBpcyB0aGUgZW1haWwgYm9keSBjb250ZW50Lg==",
            },
        },
    }


@pytest.fixture
def mock_gmail_service(mocker):
    """Fixture providing a mocked Gmail API service."""
    return mocker.MagicMock()
