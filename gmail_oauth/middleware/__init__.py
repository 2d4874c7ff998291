"""Request-side helpers: input validation and the audit trail."""

from gmail_oauth.middleware.audit_logger import AuditEntry, AuditLogger
from gmail_oauth.middleware.validator import (
    parse_label_filter,
    parse_sender,
    sanitize_search_query,
    validate_email,
    validate_email_list,
    validate_message_id,
    validate_outgoing,
    validate_recipients,
    validate_target_email,
    validate_thread_id,
)

__all__ = [
    "AuditLogger",
    "AuditEntry",
    "validate_email",
    "validate_email_list",
    "validate_recipients",
    "validate_target_email",
    "parse_sender",
    "validate_message_id",
    "validate_thread_id",
    "parse_label_filter",
    "sanitize_search_query",
    "validate_outgoing",
]
