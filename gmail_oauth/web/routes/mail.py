"""Mailbox routes for the signed-in browser session."""

from __future__ import annotations

import logging
from functools import partial

from fastapi import APIRouter, Depends, Query, Request

from gmail_oauth.auth.session import caller_summary
from gmail_oauth.auth.tokens import AuthenticatedCaller
from gmail_oauth.middleware.validator import (
    parse_label_filter,
    sanitize_search_query,
    validate_message_id,
    validate_thread_id,
)
from gmail_oauth.schemas.requests import SendEmailRequest
from gmail_oauth.utils.errors import GmailOAuthError
from gmail_oauth.web.dependencies import make_client, require_caller, run_operation
from gmail_oauth.web.responses import build_success_response, error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["mailbox"])


@router.get("/emails")
async def list_emails(
    request: Request,
    max_results: int | None = Query(None, alias="maxResults", ge=1, le=500),
    label_ids: str | None = Query("INBOX", alias="labelIds"),
    page_token: str | None = Query(None, alias="pageToken"),
    q: str | None = Query(None),
    caller: AuthenticatedCaller = Depends(require_caller),
):
    """List one page of the caller's messages with summary headers."""
    settings = request.app.state.settings
    try:
        labels = parse_label_filter(label_ids)
        query = sanitize_search_query(q)
        client = make_client(request, caller.token_set.access_token)
        page = await run_operation(
            request,
            "list_emails",
            {"maxResults": max_results, "labelIds": labels, "q": query},
            client.list_messages,
            max_results or settings.default_max_results,
            labels,
            page_token,
            query,
            actor=caller.email,
        )
    except GmailOAuthError as e:
        return error_response(e)

    logger.info("Fetched %d emails for %s", len(page.messages), caller.email)
    return build_success_response(
        emails=page.items_json(), nextPageToken=page.next_page_token
    )


@router.get("/emails/{message_id}")
async def get_email(
    request: Request,
    message_id: str,
    caller: AuthenticatedCaller = Depends(require_caller),
):
    """Fetch one message with its decoded body."""
    try:
        message_id = validate_message_id(message_id)
        client = make_client(request, caller.token_set.access_token)
        message = await run_operation(
            request,
            "get_email",
            {"messageId": message_id},
            client.get_message,
            message_id,
            actor=caller.email,
        )
    except GmailOAuthError as e:
        return error_response(e)

    return build_success_response(email=message.to_json())


@router.get("/conversations/{thread_id}")
async def get_conversation(
    request: Request,
    thread_id: str,
    caller: AuthenticatedCaller = Depends(require_caller),
):
    """Fetch every message of a thread, oldest first."""
    try:
        thread_id = validate_thread_id(thread_id)
        client = make_client(request, caller.token_set.access_token)
        conversation = await run_operation(
            request,
            "get_conversation",
            {"threadId": thread_id},
            client.get_thread,
            thread_id,
            actor=caller.email,
        )
    except GmailOAuthError as e:
        return error_response(e)

    return build_success_response(
        conversation=[message.to_json() for message in conversation]
    )


@router.post("/send-email")
async def send_email(
    request: Request,
    payload: SendEmailRequest,
    caller: AuthenticatedCaller = Depends(require_caller),
):
    """Send a message from the caller's own mailbox."""
    try:
        client = make_client(request, caller.token_set.access_token)
        message_id = await run_operation(
            request,
            "send_email",
            {"to": payload.to, "subject": payload.subject, "body": payload.text},
            partial(
                client.send_message,
                to=payload.to,
                subject=payload.subject,
                body=payload.text,
                cc=payload.cc,
                bcc=payload.bcc,
                reply_to=payload.reply_to,
                html=payload.is_html,
            ),
            actor=caller.email,
        )
    except GmailOAuthError as e:
        return error_response(e)

    logger.info("Email sent by %s", caller.email)
    return build_success_response(
        messageId=message_id, message="Email sent successfully"
    )


@router.get("/profile")
async def profile(
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
):
    """Return the signed-in user and their Gmail profile."""
    try:
        client = make_client(request, caller.token_set.access_token)
        gmail_profile = await run_operation(
            request, "get_profile", {}, client.get_profile, actor=caller.email
        )
    except GmailOAuthError as e:
        return error_response(e)

    return build_success_response(
        user=caller_summary(caller),
        gmailProfile=gmail_profile,
        permissions={"canRead": True, "canSend": True, "canModify": True},
    )


__all__ = ["router"]
