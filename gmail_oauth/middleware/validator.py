"""Input validation for route parameters and outgoing mail.

Every check raises ``ValidationError`` (HTTP 400) before any remote call is
made.
"""

from __future__ import annotations

import logging
import re
from email.utils import getaddresses, parseaddr

from gmail_oauth.utils.errors import ValidationError

logger = logging.getLogger(__name__)

# Regex patterns
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
# Delegated target mailbox: local-part@domain.tld with no whitespace
TARGET_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MESSAGE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9]+$")
THREAD_ID_PATTERN = re.compile(r"^[a-zA-Z0-9]+$")
LABEL_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-/ ]+$")

MIN_DELEGATED_MESSAGE_ID_LENGTH = 5
MAX_SUBJECT_LENGTH = 998  # RFC 5322 line limit

# Search operators that reach into Drive content
DANGEROUS_OPERATORS = [
    "has:drive",
    "has:document",
    "has:spreadsheet",
    "has:presentation",
]


def validate_email(email: str) -> str:
    """Validate a bare email address.

    Returns:
        The address, stripped.

    Raises:
        ValidationError: If the address is empty, malformed or too long.
    """
    email = email.strip()
    if not email:
        raise ValidationError("Email address cannot be empty")

    if not EMAIL_PATTERN.match(email):
        raise ValidationError(f"Invalid email format: {email}")

    if len(email) > 254:
        raise ValidationError("Email address too long (max 254 characters)")

    return email


def validate_email_list(emails: list[str]) -> list[str]:
    """Validate a list of email addresses."""
    return [validate_email(e) for e in emails]


def validate_recipients(value: str | list[str] | None, field: str) -> list[str]:
    """Validate a recipient header value.

    Accepts a single string (comma separated, ``Name <addr>`` allowed) or a
    list of them.

    Returns:
        The bare addresses, in order.
    """
    if not value:
        return []
    raw = [value] if isinstance(value, str) else list(value)
    addresses = [addr for _, addr in getaddresses(raw) if addr]
    if not addresses:
        raise ValidationError(f"No valid address in {field}", field=field)
    try:
        return validate_email_list(addresses)
    except ValidationError as e:
        raise ValidationError(e.message, field=field) from e


def validate_header_value(value: str | None, field: str) -> str | None:
    """Reject a header value that would break onto a new header line.

    Raises:
        ValidationError: If the value contains CR or LF.
    """
    if value and ("\r" in value or "\n" in value):
        raise ValidationError(f"{field} must be a single line", field=field)
    return value


def validate_target_email(target_email: str | None) -> str:
    """Validate the ``targetEmail`` of a delegated request.

    Raises:
        ValidationError: If missing or not of the form local@domain.tld.
    """
    if not target_email or not target_email.strip():
        raise ValidationError("targetEmail parameter is required", field="targetEmail")

    target_email = target_email.strip()
    if not TARGET_EMAIL_PATTERN.match(target_email):
        raise ValidationError("Invalid email format", field="targetEmail")

    return target_email


def parse_sender(sender: str) -> str:
    """Extract the address from a ``Name <addr>`` or bare ``addr`` value.

    Raises:
        ValidationError: If no valid address can be found.
    """
    _, address = parseaddr(sender or "")
    if not address:
        raise ValidationError("Invalid from address", field="from")
    try:
        return validate_email(address)
    except ValidationError as e:
        raise ValidationError(e.message, field="from") from e


def validate_message_id(message_id: str, min_length: int = 1) -> str:
    """Validate a Gmail message ID.

    Args:
        message_id: The ID to check.
        min_length: Minimum accepted length.

    Raises:
        ValidationError: If the ID is empty, too short, too long or contains
            anything other than letters and digits.
    """
    message_id = (message_id or "").strip()
    if not message_id:
        raise ValidationError("Message ID cannot be empty", field="messageId")

    if len(message_id) < min_length:
        raise ValidationError("Valid messageId is required", field="messageId")

    if not MESSAGE_ID_PATTERN.match(message_id):
        raise ValidationError(
            f"Invalid message ID format: {message_id}", field="messageId"
        )

    if len(message_id) > 64:
        raise ValidationError("Message ID too long", field="messageId")

    return message_id


def validate_thread_id(thread_id: str) -> str:
    """Validate a Gmail thread ID."""
    thread_id = (thread_id or "").strip()
    if not thread_id:
        raise ValidationError("Thread ID cannot be empty", field="threadId")

    if not THREAD_ID_PATTERN.match(thread_id):
        raise ValidationError(f"Invalid thread ID format: {thread_id}", field="threadId")

    if len(thread_id) > 64:
        raise ValidationError("Thread ID too long", field="threadId")

    return thread_id


def parse_label_filter(label_ids: str | None) -> list[str] | None:
    """Split a comma-separated label filter.

    Returns:
        The label IDs, or None when no filter was given.
    """
    if label_ids is None:
        return None
    labels = [label.strip() for label in label_ids.split(",") if label.strip()]
    for label in labels:
        if not LABEL_ID_PATTERN.match(label):
            raise ValidationError(f"Invalid label ID: {label}", field="labelIds")
    return labels or None


def sanitize_search_query(query: str | None) -> str:
    """Sanitize a Gmail search query.

    Removes Drive-related operators and normalizes whitespace.

    Raises:
        ValidationError: If the query is longer than 500 characters.
    """
    query = (query or "").strip()

    if len(query) > 500:
        raise ValidationError("Search query too long (max 500 characters)", field="q")

    for op in DANGEROUS_OPERATORS:
        if op in query.lower():
            logger.warning("Removed dangerous operator from query: %s", op)
            query = re.sub(re.escape(op), "", query, flags=re.IGNORECASE)

    return " ".join(query.split())


def validate_outgoing(to: str | None, subject: str | None, body: str | None) -> None:
    """Require the three fields every outgoing message needs.

    Raises:
        ValidationError: Naming every missing field.
    """
    missing = [
        name
        for name, value in (("to", to), ("subject", subject), ("body", body))
        if not value or not str(value).strip()
    ]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            details={"missing": missing},
        )
    if len(subject or "") > MAX_SUBJECT_LENGTH:
        raise ValidationError("Subject too long", field="subject")
    validate_header_value(subject, "subject")


__all__ = [
    "validate_email",
    "validate_email_list",
    "validate_recipients",
    "validate_header_value",
    "validate_target_email",
    "parse_sender",
    "validate_message_id",
    "validate_thread_id",
    "parse_label_filter",
    "sanitize_search_query",
    "validate_outgoing",
    "MIN_DELEGATED_MESSAGE_ID_LENGTH",
]
