"""Gmail API operations module."""

from gmail_oauth.gmail.client import MailboxClient
from gmail_oauth.gmail.messages import (
    build_raw_message,
    decode_body,
    get_message,
    list_messages,
    parse_headers,
    send_raw_message,
    translate_error,
)
from gmail_oauth.gmail.threads import get_thread, list_threads

__all__ = [
    "MailboxClient",
    "list_messages",
    "get_message",
    "build_raw_message",
    "send_raw_message",
    "parse_headers",
    "decode_body",
    "translate_error",
    "list_threads",
    "get_thread",
]
