"""Gmail API client bound to one access token and one mailbox."""

from __future__ import annotations

import logging
from typing import Any

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import Resource, build

from gmail_oauth.gmail.messages import (
    SUMMARY_HEADERS,
    build_raw_message,
    decode_body,
    display_sender,
    get_message,
    list_messages,
    parse_headers,
    send_raw_message,
    translate_error,
)
from gmail_oauth.gmail.threads import get_thread, list_threads
from gmail_oauth.middleware.validator import (
    parse_sender,
    validate_message_id,
    validate_outgoing,
    validate_header_value,
    validate_recipients,
    validate_thread_id,
)
from gmail_oauth.schemas.mailbox import (
    MailboxMessage,
    MailboxMessageSummary,
    MessageFetchError,
    MessagePage,
    ThreadMessage,
)
from gmail_oauth.utils.errors import GmailOAuthError

logger = logging.getLogger(__name__)

NO_BODY = "No body content available"


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


class MailboxClient:
    """Performs mailbox operations with a single bearer token.

    The client holds no refresh logic: the token is sent as-is and the
    caller is expected to have passed it through
    ``OAuthManager.ensure_fresh`` first.

    Args:
        access_token: Bearer token for the Gmail API.
        mailbox: ``"me"`` for the token owner's mailbox, or the address of
            a mailbox the owner has delegated access to.
        service: Pre-built Gmail resource; built from the token when omitted.

    Example:
        >>> client = MailboxClient("ya29....")
        >>> page = client.list_messages(max_results=10, label_ids=["INBOX"])
    """

    def __init__(
        self,
        access_token: str,
        mailbox: str = "me",
        service: Resource | None = None,
    ) -> None:
        self._mailbox = mailbox
        if service is None:
            credentials = Credentials(token=access_token)  # type: ignore[no-untyped-call]
            service = build("gmail", "v1", credentials=credentials, cache_discovery=False)
        self._service = service

    @property
    def mailbox(self) -> str:
        return self._mailbox

    def list_messages(
        self,
        max_results: int = 20,
        label_ids: list[str] | None = None,
        page_token: str | None = None,
        query: str | None = None,
    ) -> MessagePage:
        """List one page of messages with their summary headers.

        A message whose details cannot be fetched is reported in place as
        a ``MessageFetchError``; only a failure of the listing itself is
        raised.

        Args:
            max_results: Page size.
            label_ids: Only messages carrying all of these labels.
            page_token: Continuation token from a previous page.
            query: Gmail search query.

        Returns:
            The page, in the order the listing returned the ids.

        Raises:
            GmailOAuthError: If the listing request fails.
        """
        response = list_messages(
            self._service,
            user_id=self._mailbox,
            query=query or "",
            label_ids=label_ids,
            max_results=max_results,
            page_token=page_token,
        )

        items: list[MailboxMessageSummary | MessageFetchError] = []
        for ref in response.get("messages", []):
            message_id = ref["id"]
            try:
                raw = get_message(
                    self._service,
                    message_id,
                    user_id=self._mailbox,
                    format="metadata",
                    metadata_headers=SUMMARY_HEADERS,
                )
            except GmailOAuthError as e:
                logger.warning("Skipping details for message %s: %s", message_id, e)
                items.append(MessageFetchError(id=message_id, error=e.message))
                continue
            items.append(self._summarize(raw))

        return MessagePage(
            messages=items,
            next_page_token=response.get("nextPageToken"),
            result_size_estimate=response.get("resultSizeEstimate", len(items)),
        )

    @staticmethod
    def _summarize(raw: dict[str, Any]) -> MailboxMessageSummary:
        headers = parse_headers(raw)
        summary = MailboxMessageSummary(
            id=raw["id"],
            thread_id=raw.get("threadId"),
            label_ids=_dedupe(raw.get("labelIds", [])),
            internal_date=raw.get("internalDate"),
        )
        updates: dict[str, Any] = {}
        if headers.get("From"):
            updates["sender"] = display_sender(headers["From"])
        if headers.get("Subject"):
            updates["subject"] = headers["Subject"]
        if raw.get("snippet"):
            updates["snippet"] = raw["snippet"]
        updates["to"] = headers.get("To", "")
        updates["date"] = headers.get("Date", "")
        updates["message_id_header"] = headers.get("Message-ID", "")
        return summary.model_copy(update=updates)

    def get_message(self, message_id: str) -> MailboxMessage:
        """Fetch one message with its decoded body.

        Raises:
            ValidationError: If the id is malformed.
            NotFoundError: If the message does not exist.
        """
        message_id = validate_message_id(message_id)
        raw = get_message(self._service, message_id, user_id=self._mailbox)
        headers = parse_headers(raw)

        return MailboxMessage(
            id=raw.get("id", message_id),
            thread_id=raw.get("threadId"),
            sender=headers.get("From") or "Unknown Sender",
            to=headers.get("To", ""),
            cc=headers.get("Cc", ""),
            subject=headers.get("Subject") or "No Subject",
            date=headers.get("Date", ""),
            body=decode_body(raw) or NO_BODY,
            snippet=raw.get("snippet", ""),
            label_ids=_dedupe(raw.get("labelIds", [])),
        )

    def get_thread(self, thread_id: str) -> list[ThreadMessage]:
        """Fetch every message of a thread, oldest first."""
        thread_id = validate_thread_id(thread_id)
        raw = get_thread(self._service, thread_id, user_id=self._mailbox)

        conversation = []
        for message in raw.get("messages", []):
            headers = parse_headers(message)
            conversation.append(
                ThreadMessage(
                    id=message["id"],
                    sender=display_sender(headers["From"])
                    if headers.get("From")
                    else "Unknown Sender",
                    to=headers.get("To", ""),
                    subject=headers.get("Subject") or "No Subject",
                    date=headers.get("Date", ""),
                    snippet=message.get("snippet") or "No preview available",
                )
            )
        return conversation

    def list_threads(
        self,
        max_results: int = 10,
        label_ids: list[str] | None = None,
        page_token: str | None = None,
        query: str | None = None,
    ) -> dict[str, Any]:
        """List one page of thread references.

        Returns:
            ``{"threads": [...], "next_page_token": str | None}``.
        """
        response = list_threads(
            self._service,
            user_id=self._mailbox,
            query=query or "",
            label_ids=label_ids,
            max_results=max_results,
            page_token=page_token,
        )
        return {
            "threads": response.get("threads", []),
            "next_page_token": response.get("nextPageToken"),
        }

    def send_message(
        self,
        to: str | list[str] | None,
        subject: str | None,
        body: str | None,
        sender: str | None = None,
        cc: str | list[str] | None = None,
        bcc: str | list[str] | None = None,
        reply_to: str | None = None,
        html: bool = False,
    ) -> str:
        """Send a message and return the id Gmail assigned to it.

        Every field is checked before anything is sent. When ``sender`` is
        given, the message is sent as that mailbox.

        Raises:
            ValidationError: If ``to``, ``subject`` or ``body`` is missing,
                or an address is malformed.
            GmailOAuthError: If Gmail rejects the message.
        """
        validate_outgoing(
            to if isinstance(to, str) else ", ".join(to or []), subject, body
        )
        recipients = validate_recipients(to, "to")
        cc_list = validate_recipients(cc, "cc")
        bcc_list = validate_recipients(bcc, "bcc")
        validate_header_value(reply_to, "replyTo")
        reply_to_list = validate_recipients(reply_to, "replyTo")
        validate_header_value(sender, "from")
        user_id = parse_sender(sender) if sender else self._mailbox

        raw = build_raw_message(
            to=recipients,
            subject=subject or "",
            body=body or "",
            sender=sender,
            cc=cc_list,
            bcc=bcc_list,
            reply_to=", ".join(reply_to_list) or None,
            html_body=html,
        )
        sent = send_raw_message(self._service, raw, user_id=user_id)
        return str(sent.get("id", ""))

    def get_profile(self, mailbox: str | None = None) -> dict[str, Any]:
        """Fetch the Gmail profile (address and counters) of a mailbox."""
        user_id = mailbox or self._mailbox
        try:
            return self._service.users().getProfile(userId=user_id).execute()
        except Exception as e:
            logger.error("Failed to get profile for %s: %s", user_id, e)
            raise translate_error(e, "Failed to get Gmail profile") from e


__all__ = ["MailboxClient"]
