"""Gmail message operations.

Thin wrappers around ``users.messages`` that take the mailbox to act on
(``"me"`` or a delegated address) and translate API failures into the
server's exception hierarchy.
"""

from __future__ import annotations

import base64
import html
import logging
import re
from email.mime.text import MIMEText
from typing import Any

from googleapiclient.discovery import Resource
from googleapiclient.errors import HttpError

from gmail_oauth.utils.errors import (
    AuthenticationError,
    AuthorizationError,
    GmailAPIError,
    GmailOAuthError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

SUMMARY_HEADERS = ["From", "To", "Subject", "Date", "Message-ID"]
MAX_PAGE_SIZE = 500

_TAG_PATTERN = re.compile(r"<[^>]*>")
_ANGLE_ADDRESS_PATTERN = re.compile(r"<[^>]*>")


def translate_error(e: Exception, context: str) -> GmailOAuthError:
    """Map a Gmail API failure onto the server's exception hierarchy.

    Args:
        e: The exception raised by the API client.
        context: What was being attempted, used as the message prefix.

    Returns:
        ``AuthenticationError`` for 401, ``AuthorizationError`` for 403,
        ``NotFoundError`` for 404 (and 400 "invalid id"), ``GmailAPIError``
        otherwise.
    """
    if isinstance(e, GmailOAuthError):
        return e

    if isinstance(e, HttpError):
        status = e.resp.status
        reason = e._get_reason() if hasattr(e, "_get_reason") else str(e)
        message = f"{context}: {reason}"
        if status == 401:
            return AuthenticationError(message, details={"api_status": status})
        if status == 403:
            return AuthorizationError(message, details={"api_status": status})
        if status == 404 or (status == 400 and "invalid id" in reason.lower()):
            return NotFoundError(message, details={"api_status": status})
        return GmailAPIError(message, api_status=status)

    return GmailAPIError(f"{context}: {e}", details={"error_type": type(e).__name__})


def label_query(query: str, label_ids: list[str] | None) -> str:
    """Append ``label:X`` filters to a search query.

    Names containing spaces are quoted so Gmail reads them as one label.
    """
    if not label_ids:
        return query
    filters = " ".join(
        f'label:"{lid}"' if " " in lid else f"label:{lid}" for lid in label_ids
    )
    return f"{query} {filters}".strip()


def list_messages(
    service: Resource,
    user_id: str = "me",
    query: str = "",
    label_ids: list[str] | None = None,
    max_results: int = 20,
    page_token: str | None = None,
) -> dict[str, Any]:
    """Fetch one page of message ids.

    Label IDs are merged into ``q`` as ``label:X`` filters instead of being
    sent as repeated ``labelIds`` parameters.

    Returns:
        The raw list response (``messages``, ``nextPageToken``,
        ``resultSizeEstimate``).
    """
    params: dict[str, Any] = {
        "userId": user_id,
        "q": label_query(query, label_ids),
        "maxResults": min(max_results, MAX_PAGE_SIZE),
    }
    if page_token:
        params["pageToken"] = page_token

    try:
        response = service.users().messages().list(**params).execute()
    except Exception as e:
        logger.error("Failed to list messages for %s: %s", user_id, e)
        raise translate_error(e, "Failed to list messages") from e

    logger.debug("Listed %d messages", len(response.get("messages", [])))
    return response


def get_message(
    service: Resource,
    message_id: str,
    user_id: str = "me",
    format: str = "full",
    metadata_headers: list[str] | None = None,
) -> dict[str, Any]:
    """Get a specific message by ID."""
    params: dict[str, Any] = {"userId": user_id, "id": message_id, "format": format}
    if metadata_headers:
        params["metadataHeaders"] = metadata_headers

    try:
        message = service.users().messages().get(**params).execute()
    except Exception as e:
        logger.error("Failed to get message %s: %s", message_id, e)
        raise translate_error(e, f"Failed to get message {message_id}") from e

    logger.debug("Retrieved message %s", message_id)
    return message


def build_raw_message(
    to: list[str],
    subject: str,
    body: str,
    sender: str | None = None,
    cc: list[str] | None = None,
    bcc: list[str] | None = None,
    reply_to: str | None = None,
    html_body: bool = False,
) -> str:
    """Build an RFC 822 message encoded as unpadded base64url.

    Padding is always stripped; Gmail accepts the unpadded form and using a
    single encoding keeps every send path identical.
    """
    message = MIMEText(body, "html" if html_body else "plain", "utf-8")
    if sender:
        message["From"] = sender
    message["To"] = ", ".join(to)
    if cc:
        message["Cc"] = ", ".join(cc)
    if bcc:
        message["Bcc"] = ", ".join(bcc)
    if reply_to:
        message["Reply-To"] = reply_to
    message["Subject"] = subject

    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")


def send_raw_message(
    service: Resource,
    raw: str,
    user_id: str = "me",
    thread_id: str | None = None,
) -> dict[str, Any]:
    """Submit an encoded message to ``users.messages.send``."""
    body: dict[str, Any] = {"raw": raw}
    if thread_id:
        body["threadId"] = thread_id

    try:
        sent = service.users().messages().send(userId=user_id, body=body).execute()
    except Exception as e:
        logger.error("Failed to send message as %s: %s", user_id, e)
        raise translate_error(e, "Failed to send message") from e

    logger.info("Sent message %s as %s", sent.get("id"), user_id)
    return sent


def parse_headers(message: dict[str, Any]) -> dict[str, str]:
    """Extract common headers from a message payload.

    Keys are normalized to ``From``, ``To``, ``Cc``, ``Subject``, ``Date``
    and ``Message-ID`` regardless of the case Gmail returns.
    """
    wanted = {
        "from": "From",
        "to": "To",
        "cc": "Cc",
        "subject": "Subject",
        "date": "Date",
        "message-id": "Message-ID",
    }
    headers: dict[str, str] = {}
    payload = message.get("payload") or {}
    for header in payload.get("headers") or []:
        name = wanted.get(header.get("name", "").lower())
        if name and name not in headers:
            headers[name] = header.get("value", "")
    return headers


def display_sender(value: str) -> str:
    """Drop the ``<address>`` part of a From header, keeping the name."""
    cleaned = _ANGLE_ADDRESS_PATTERN.sub("", value).strip().strip('"')
    return cleaned or value.strip()


def strip_html(markup: str) -> str:
    """Remove tags and unescape entities. Not a sanitizer."""
    return html.unescape(_TAG_PATTERN.sub("", markup))


def _safe_base64_decode(data: str) -> str:
    """Decode base64url data, tolerating missing padding."""
    try:
        padded = data + "=" * (-len(data) % 4)
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (ValueError, UnicodeDecodeError) as e:
        logger.warning("Failed to decode base64 body data: %s", e)
        return ""


def _find_part(parts: list[dict[str, Any]], mime_type: str) -> str | None:
    for part in parts:
        if part.get("mimeType") == mime_type and part.get("body", {}).get("data"):
            return part["body"]["data"]
    for part in parts:
        if part.get("parts"):
            found = _find_part(part["parts"], mime_type)
            if found:
                return found
    return None


def decode_body(message: dict[str, Any]) -> str:
    """Decode a message body.

    Prefers ``text/plain`` anywhere in the MIME tree, then ``text/html``
    with tags stripped, then a single-part body.
    """
    payload = message.get("payload") or {}
    parts = payload.get("parts") or []

    if parts:
        plain = _find_part(parts, "text/plain")
        if plain:
            return _safe_base64_decode(plain)
        markup = _find_part(parts, "text/html")
        if markup:
            return strip_html(_safe_base64_decode(markup))

    data = (payload.get("body") or {}).get("data")
    if data:
        text = _safe_base64_decode(data)
        if payload.get("mimeType") == "text/html":
            return strip_html(text)
        return text

    return ""


__all__ = [
    "translate_error",
    "label_query",
    "list_messages",
    "get_message",
    "build_raw_message",
    "send_raw_message",
    "parse_headers",
    "display_sender",
    "strip_html",
    "decode_body",
    "SUMMARY_HEADERS",
]
