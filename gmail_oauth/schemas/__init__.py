"""Pydantic schemas for request bodies and reshaped mailbox data."""

from gmail_oauth.schemas.mailbox import (
    MailboxMessage,
    MailboxMessageSummary,
    MessageFetchError,
    MessagePage,
    ThreadMessage,
)
from gmail_oauth.schemas.requests import DelegatedSendRequest, SendEmailRequest

__all__ = [
    # Requests
    "SendEmailRequest",
    "DelegatedSendRequest",
    # Mailbox data
    "MailboxMessageSummary",
    "MessageFetchError",
    "MailboxMessage",
    "ThreadMessage",
    "MessagePage",
]
