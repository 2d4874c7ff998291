"""Reshaped Gmail API responses returned to the browser.

Field names serialize in camelCase (``threadId``, ``labelIds``) to keep the
JSON shape the dashboard script reads.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict[str, object]:
        return self.model_dump(by_alias=True)


class MailboxMessageSummary(_CamelModel):
    """One row of a message listing."""

    id: str
    thread_id: str | None = None
    sender: str = Field(default="Unknown Sender", alias="from")
    to: str = ""
    subject: str = "No Subject"
    date: str = ""
    snippet: str = "No preview available"
    message_id_header: str = Field(default="", alias="messageId")
    internal_date: str | None = None
    label_ids: list[str] = Field(default_factory=list)


class MessageFetchError(_CamelModel):
    """Placeholder for a listed message whose details could not be fetched."""

    id: str
    error: str


class MailboxMessage(_CamelModel):
    """A full message with its decoded body."""

    id: str
    thread_id: str | None = None
    sender: str = Field(default="Unknown Sender", alias="from")
    to: str = ""
    cc: str = ""
    subject: str = "No Subject"
    date: str = ""
    body: str = "No body content available"
    snippet: str = ""
    label_ids: list[str] = Field(default_factory=list)


class ThreadMessage(_CamelModel):
    """A message as shown inside a conversation."""

    id: str
    sender: str = Field(default="Unknown Sender", alias="from")
    to: str = ""
    subject: str = "No Subject"
    date: str = ""
    snippet: str = "No preview available"


class MessagePage(_CamelModel):
    """One page of a message listing, failures included in place."""

    messages: list[MailboxMessageSummary | MessageFetchError] = Field(
        default_factory=list
    )
    next_page_token: str | None = None
    result_size_estimate: int = 0

    def items_json(self) -> list[dict[str, object]]:
        return [item.to_json() for item in self.messages]


__all__ = [
    "MailboxMessageSummary",
    "MessageFetchError",
    "MailboxMessage",
    "ThreadMessage",
    "MessagePage",
]
