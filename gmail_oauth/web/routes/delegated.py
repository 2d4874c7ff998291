"""Delegated mailbox routes.

Every route acts with a stored credential (``userId``) on another mailbox
(``targetEmail``). Request input is validated before anything is sent to
Google; the credential is then refreshed if needed and the delegation is
verified before the mailbox call itself.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any

from fastapi import APIRouter, Query, Request

from gmail_oauth.auth.tokens import CredentialRecord, is_expired
from gmail_oauth.gmail.client import MailboxClient
from gmail_oauth.middleware.validator import (
    MIN_DELEGATED_MESSAGE_ID_LENGTH,
    parse_label_filter,
    parse_sender,
    sanitize_search_query,
    validate_header_value,
    validate_message_id,
    validate_outgoing,
    validate_recipients,
    validate_target_email,
)
from gmail_oauth.schemas.requests import DelegatedSendRequest
from gmail_oauth.utils.errors import GmailOAuthError, ValidationError
from gmail_oauth.web.dependencies import (
    load_record,
    make_client,
    refresh_record,
    run_operation,
)
from gmail_oauth.web.responses import build_success_response, error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/delegated", tags=["delegated"])


async def _delegated_client(
    request: Request, user_id: str, record: CredentialRecord, target: str
) -> tuple[CredentialRecord, MailboxClient]:
    """Refresh the credential and verify it may act on ``target``."""
    record = await refresh_record(request, user_id, record)
    client = make_client(request, record.token_set.access_token, target)
    verifier = request.app.state.delegation_verifier
    await asyncio.to_thread(verifier.verify, record, target, client)
    return record, client


def _delegated_response(
    record: CredentialRecord, target: str, data: Any
) -> dict[str, Any]:
    return build_success_response(
        authenticatedAs=record.email, accessing=target, data=data
    )


@router.get("/inbox")
async def delegated_inbox(
    request: Request,
    user_id: str | None = Query(None, alias="userId"),
    target_email: str | None = Query(None, alias="targetEmail"),
    max_results: int | None = Query(None, alias="maxResults", ge=1, le=500),
    page_token: str | None = Query(None, alias="pageToken"),
    label_ids: str | None = Query(None, alias="labelIds"),
    q: str | None = Query(None),
):
    """List one page of the target mailbox."""
    settings = request.app.state.settings
    try:
        record = await load_record(request, user_id)
        target = validate_target_email(target_email)
        labels = parse_label_filter(label_ids)
        query = sanitize_search_query(q)
        record, client = await _delegated_client(request, user_id, record, target)
        page = await run_operation(
            request,
            "delegated_inbox",
            {"maxResults": max_results, "labelIds": labels, "q": query},
            client.list_messages,
            max_results or settings.delegated_max_results,
            labels,
            page_token,
            query,
            actor=user_id,
            mailbox=target,
        )
    except GmailOAuthError as e:
        return error_response(e)

    return _delegated_response(record, target, page.to_json())


@router.get("/emails/{message_id}")
async def delegated_email(
    request: Request,
    message_id: str,
    user_id: str | None = Query(None, alias="userId"),
    target_email: str | None = Query(None, alias="targetEmail"),
):
    """Fetch one message from the target mailbox."""
    try:
        record = await load_record(request, user_id)
        target = validate_target_email(target_email)
        message_id = validate_message_id(
            message_id, min_length=MIN_DELEGATED_MESSAGE_ID_LENGTH
        )
        record, client = await _delegated_client(request, user_id, record, target)
        message = await run_operation(
            request,
            "delegated_email",
            {"messageId": message_id},
            client.get_message,
            message_id,
            actor=user_id,
            mailbox=target,
        )
    except GmailOAuthError as e:
        return error_response(e)

    return _delegated_response(record, target, message.to_json())


@router.get("/threads")
async def delegated_threads(
    request: Request,
    user_id: str | None = Query(None, alias="userId"),
    target_email: str | None = Query(None, alias="targetEmail"),
    max_results: int | None = Query(None, alias="maxResults", ge=1, le=500),
    page_token: str | None = Query(None, alias="pageToken"),
    label_ids: str | None = Query(None, alias="labelIds"),
):
    """List one page of threads in the target mailbox."""
    settings = request.app.state.settings
    try:
        record = await load_record(request, user_id)
        target = validate_target_email(target_email)
        labels = parse_label_filter(label_ids)
        record, client = await _delegated_client(request, user_id, record, target)
        threads = await run_operation(
            request,
            "delegated_threads",
            {"maxResults": max_results, "labelIds": labels},
            client.list_threads,
            max_results or settings.delegated_max_results,
            labels,
            page_token,
            actor=user_id,
            mailbox=target,
        )
    except GmailOAuthError as e:
        return error_response(e)

    return _delegated_response(
        record,
        target,
        {
            "threads": threads["threads"],
            "nextPageToken": threads["next_page_token"],
        },
    )


@router.post("/send")
async def delegated_send(
    request: Request,
    payload: DelegatedSendRequest,
    user_id: str | None = Query(None, alias="userId"),
    target_email: str | None = Query(None, alias="targetEmail"),
):
    """Send a message as the target mailbox.

    The ``from`` address must be the target mailbox itself.
    """
    try:
        record = await load_record(request, user_id)
        target = validate_target_email(target_email)
        validate_outgoing(
            payload.to if isinstance(payload.to, str) else ", ".join(payload.to or []),
            payload.subject,
            payload.text,
        )
        if not payload.sender or not payload.sender.strip():
            raise ValidationError(
                "Missing required fields: from", details={"missing": ["from"]}
            )
        validate_header_value(payload.sender, "from")
        validate_header_value(payload.reply_to, "replyTo")
        validate_recipients(payload.reply_to, "replyTo")
        if parse_sender(payload.sender).lower() != target.lower():
            raise ValidationError(
                "From email must match the delegated mailbox", field="from"
            )

        record, client = await _delegated_client(request, user_id, record, target)
        message_id = await run_operation(
            request,
            "delegated_send",
            {"to": payload.to, "subject": payload.subject, "body": payload.text},
            partial(
                client.send_message,
                to=payload.to,
                subject=payload.subject,
                body=payload.text,
                sender=payload.sender,
                cc=payload.cc,
                bcc=payload.bcc,
                reply_to=payload.reply_to,
                html=payload.is_html,
            ),
            actor=user_id,
            mailbox=target,
        )
    except GmailOAuthError as e:
        return error_response(e)

    return build_success_response(
        authenticatedAs=record.email,
        accessing=target,
        message="Email sent successfully as delegate",
        sentAs=payload.sender,
        messageId=message_id,
    )


@router.get("/delegation-status")
async def delegation_status(
    request: Request,
    user_id: str | None = Query(None, alias="userId"),
    target_email: str | None = Query(None, alias="targetEmail"),
):
    """Report whether the stored credential may act on ``targetEmail``."""
    try:
        record = await load_record(request, user_id)
        target = validate_target_email(target_email)
        token_expired = is_expired(record.token_set)
        record = await refresh_record(request, user_id, record)
        client = make_client(request, record.token_set.access_token, target)
        verifier = request.app.state.delegation_verifier
        status = await asyncio.to_thread(verifier.status, record, target, client)
    except GmailOAuthError as e:
        return error_response(e)

    return build_success_response(
        authenticatedAs=record.email,
        delegationStatus={
            "hasAccess": status["has_access"],
            "message": status["reason"],
            "targetEmail": target,
        },
        tokenExpired=token_expired,
    )


__all__ = ["router"]
