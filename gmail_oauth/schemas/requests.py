"""Pydantic request bodies for the send endpoints.

Fields are optional at this layer so that a missing ``to``/``subject``/body
surfaces as the server's own ``ValidationError`` envelope rather than a
framework error.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SendEmailRequest(BaseModel):
    """Body of ``POST /api/send-email``.

    The dashboard posts the text as ``message``; API clients may use
    ``body``. ``attachments`` is accepted but not forwarded.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    to: str | list[str] | None = Field(None, description="Recipient(s)")
    subject: str | None = Field(None, description="Subject line")
    body: str | None = Field(None, description="Message text")
    message: str | None = Field(None, description="Message text (dashboard form)")
    cc: str | list[str] | None = Field(None, description="CC recipients")
    bcc: str | list[str] | None = Field(None, description="BCC recipients")
    reply_to: str | None = Field(None, description="Reply-To address")
    is_html: bool = Field(False, description="Send body as text/html")
    attachments: list[Any] | None = Field(None, description="Ignored")

    @property
    def text(self) -> str | None:
        """The message text, whichever field carried it."""
        return self.body if self.body else self.message


class DelegatedSendRequest(SendEmailRequest):
    """Body of ``POST /api/delegated/send``; ``from`` names the sending mailbox."""

    sender: str | None = Field(None, alias="from", description="Sending mailbox")


__all__ = ["SendEmailRequest", "DelegatedSendRequest"]
