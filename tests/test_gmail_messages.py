"""Tests for Gmail message operations."""

from __future__ import annotations

import base64
import json
from email import message_from_bytes
from unittest.mock import MagicMock

import pytest
from googleapiclient.errors import HttpError

from gmail_oauth.gmail.messages import (
    build_raw_message,
    decode_body,
    display_sender,
    get_message,
    list_messages,
    parse_headers,
    send_raw_message,
    strip_html,
    translate_error,
)
from gmail_oauth.middleware.validator import parse_label_filter
from gmail_oauth.utils.errors import (
    AuthenticationError,
    AuthorizationError,
    GmailAPIError,
    NotFoundError,
)


def make_http_error(status: int, message: str = "boom") -> HttpError:
    content = json.dumps({"error": {"code": status, "message": message}}).encode()
    return HttpError(resp=MagicMock(status=status, reason="reason"), content=content)


def b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


def decode_raw(raw: str) -> bytes:
    return base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4))


class TestListMessagesLabelFiltering:
    """Verify label_ids are merged into the q parameter as label: filters.

    Repeated ``labelIds`` URL keys break pagination, so labels are encoded
    as ``label:X label:Y`` in the q parameter instead.
    """

    @pytest.fixture
    def mock_service(self) -> MagicMock:
        service = MagicMock()
        mock_list = MagicMock()
        mock_list.execute.return_value = {
            "messages": [{"id": "msg1", "threadId": "t1"}],
        }
        service.users().messages().list.return_value = mock_list
        return service

    def test_label_ids_merged_into_query(self, mock_service: MagicMock) -> None:
        list_messages(mock_service, label_ids=["INBOX", "UNREAD"])

        call_kwargs = mock_service.users().messages().list.call_args.kwargs
        assert "labelIds" not in call_kwargs
        assert call_kwargs["q"] == "label:INBOX label:UNREAD"

    def test_label_ids_appended_to_existing_query(
        self, mock_service: MagicMock
    ) -> None:
        list_messages(mock_service, query="is:important", label_ids=["INBOX"])

        call_kwargs = mock_service.users().messages().list.call_args.kwargs
        assert call_kwargs["q"] == "is:important label:INBOX"

    def test_label_with_spaces_is_quoted(self, mock_service: MagicMock) -> None:
        list_messages(
            mock_service, label_ids=parse_label_filter("My Label,Work/Clients")
        )

        call_kwargs = mock_service.users().messages().list.call_args.kwargs
        assert call_kwargs["q"] == 'label:"My Label" label:Work/Clients'

    def test_no_label_ids_passes_query_unchanged(self, mock_service: MagicMock) -> None:
        list_messages(mock_service, query="from:test@example.com")

        call_kwargs = mock_service.users().messages().list.call_args.kwargs
        assert call_kwargs["q"] == "from:test@example.com"

    def test_page_token_and_mailbox(self, mock_service: MagicMock) -> None:
        list_messages(
            mock_service, user_id="shared@example.com", page_token="p2", max_results=5
        )

        call_kwargs = mock_service.users().messages().list.call_args.kwargs
        assert call_kwargs["userId"] == "shared@example.com"
        assert call_kwargs["pageToken"] == "p2"
        assert call_kwargs["maxResults"] == 5

    def test_page_size_capped(self, mock_service: MagicMock) -> None:
        list_messages(mock_service, max_results=10_000)

        call_kwargs = mock_service.users().messages().list.call_args.kwargs
        assert call_kwargs["maxResults"] == 500

    def test_listing_failure_is_translated(self, mock_service: MagicMock) -> None:
        mock_service.users().messages().list.return_value.execute.side_effect = (
            make_http_error(500, "backend error")
        )
        with pytest.raises(GmailAPIError, match="backend error"):
            list_messages(mock_service)


class TestGetMessage:
    def test_metadata_headers_passed(self, mock_gmail_service: MagicMock) -> None:
        get_message(
            mock_gmail_service,
            "abc",
            format="metadata",
            metadata_headers=["From", "Subject"],
        )

        call_kwargs = mock_gmail_service.users().messages().get.call_args.kwargs
        assert call_kwargs == {
            "userId": "me",
            "id": "abc",
            "format": "metadata",
            "metadataHeaders": ["From", "Subject"],
        }

    def test_not_found(self, mock_gmail_service: MagicMock) -> None:
        mock_gmail_service.users().messages().get.return_value.execute.side_effect = (
            make_http_error(404, "Requested entity was not found.")
        )
        with pytest.raises(NotFoundError):
            get_message(mock_gmail_service, "missing")


class TestTranslateError:
    """Gmail API statuses map onto the server's exceptions."""

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (401, AuthenticationError),
            (403, AuthorizationError),
            (404, NotFoundError),
            (429, GmailAPIError),
            (500, GmailAPIError),
        ],
    )
    def test_status_mapping(self, status: int, expected: type) -> None:
        error = translate_error(make_http_error(status), "Failed")
        assert type(error) is expected

    def test_invalid_id_is_not_found(self) -> None:
        error = translate_error(make_http_error(400, "Invalid id value"), "Failed")
        assert isinstance(error, NotFoundError)

    def test_api_status_kept(self) -> None:
        error = translate_error(make_http_error(503, "unavailable"), "Failed to list")
        assert isinstance(error, GmailAPIError)
        assert error.api_status == 503
        assert error.message == "Failed to list: unavailable"

    def test_unknown_exception(self) -> None:
        error = translate_error(ConnectionError("reset"), "Failed")
        assert isinstance(error, GmailAPIError)
        assert error.details["error_type"] == "ConnectionError"

    def test_server_errors_pass_through(self) -> None:
        original = NotFoundError("gone")
        assert translate_error(original, "Failed") is original


class TestBuildRawMessage:
    """Outgoing messages are RFC 822, encoded as unpadded base64url."""

    def test_no_padding(self) -> None:
        for subject in ("a", "ab", "abc", "abcd"):
            raw = build_raw_message(["to@example.com"], subject, "body")
            assert "=" not in raw
            assert "+" not in raw and "/" not in raw

    def test_headers_and_body(self) -> None:
        raw = build_raw_message(
            ["to@example.com", "other@example.com"],
            "Hello",
            "Body text",
            sender="Shared <shared@example.com>",
            cc=["cc@example.com"],
            bcc=["bcc@example.com"],
            reply_to="reply@example.com",
        )
        message = message_from_bytes(decode_raw(raw))

        assert message["To"] == "to@example.com, other@example.com"
        assert message["Subject"] == "Hello"
        assert message["From"] == "Shared <shared@example.com>"
        assert message["Cc"] == "cc@example.com"
        assert message["Bcc"] == "bcc@example.com"
        assert message["Reply-To"] == "reply@example.com"
        assert message["MIME-Version"] == "1.0"
        assert message.get_content_type() == "text/plain"
        assert message.get_payload(decode=True).decode("utf-8") == "Body text"

    def test_html_body(self) -> None:
        raw = build_raw_message(["to@example.com"], "Hi", "<b>x</b>", html_body=True)
        assert message_from_bytes(decode_raw(raw)).get_content_type() == "text/html"

    def test_send_raw_message(self, mock_gmail_service: MagicMock) -> None:
        mock_gmail_service.users().messages().send.return_value.execute.return_value = {
            "id": "sent1"
        }

        result = send_raw_message(mock_gmail_service, "cmF3", user_id="me")

        assert result["id"] == "sent1"
        call_kwargs = mock_gmail_service.users().messages().send.call_args.kwargs
        assert call_kwargs == {"userId": "me", "body": {"raw": "cmF3"}}


class TestParseHeaders:
    def test_common_headers(self, sample_email: dict) -> None:
        headers = parse_headers(sample_email)

        assert headers["From"] == "Sender Name <sender@example.com>"
        assert headers["Subject"] == "Test Email Subject"
        assert headers["Message-ID"] == "<abc@mail.example.com>"

    def test_case_insensitive_names(self) -> None:
        message = {"payload": {"headers": [{"name": "message-id", "value": "<x@y>"}]}}
        assert parse_headers(message) == {"Message-ID": "<x@y>"}

    def test_missing_payload(self) -> None:
        assert parse_headers({}) == {}


class TestDecodeBody:
    """Body selection: text/plain, then stripped text/html, then single part."""

    def test_single_part(self, sample_email: dict) -> None:
        assert decode_body(sample_email) == "This is the email body content."

    def test_plain_preferred_over_html(self) -> None:
        message = {
            "payload": {
                "mimeType": "multipart/alternative",
                "parts": [
                    {"mimeType": "text/html", "body": {"data": b64("<p>html</p>")}},
                    {"mimeType": "text/plain", "body": {"data": b64("plain")}},
                ],
            }
        }
        assert decode_body(message) == "plain"

    def test_html_stripped_when_no_plain(self) -> None:
        message = {
            "payload": {
                "mimeType": "multipart/alternative",
                "parts": [
                    {
                        "mimeType": "text/html",
                        "body": {"data": b64("<p>Hello &amp; <b>bye</b></p>")},
                    }
                ],
            }
        }
        assert decode_body(message) == "Hello & bye"

    def test_nested_multipart(self) -> None:
        message = {
            "payload": {
                "mimeType": "multipart/mixed",
                "parts": [
                    {
                        "mimeType": "multipart/alternative",
                        "parts": [
                            {"mimeType": "text/plain", "body": {"data": b64("deep")}}
                        ],
                    },
                    {"mimeType": "application/pdf", "body": {"attachmentId": "a1"}},
                ],
            }
        }
        assert decode_body(message) == "deep"

    def test_single_part_html(self) -> None:
        message = {
            "payload": {"mimeType": "text/html", "body": {"data": b64("<i>x</i>")}}
        }
        assert decode_body(message) == "x"

    def test_empty_body(self) -> None:
        assert decode_body({"payload": {"mimeType": "text/plain", "body": {}}}) == ""


class TestDisplayHelpers:
    def test_display_sender_drops_address(self) -> None:
        assert display_sender('"Sender Name" <sender@example.com>') == "Sender Name"

    def test_display_sender_bare_address(self) -> None:
        assert display_sender("<sender@example.com>") == "<sender@example.com>"
        assert display_sender("sender@example.com") == "sender@example.com"

    def test_strip_html(self) -> None:
        assert strip_html("<div>a<br/>b</div>") == "ab"
