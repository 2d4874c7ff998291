"""Gmail thread operations."""

from __future__ import annotations

import logging
from typing import Any

from googleapiclient.discovery import Resource

from gmail_oauth.gmail.messages import MAX_PAGE_SIZE, label_query, translate_error

logger = logging.getLogger(__name__)


def list_threads(
    service: Resource,
    user_id: str = "me",
    query: str = "",
    label_ids: list[str] | None = None,
    max_results: int = 10,
    page_token: str | None = None,
) -> dict[str, Any]:
    """Fetch one page of threads matching query and labels."""
    # labelIds would be repeated URL keys; send them as label: filters in q
    params: dict[str, Any] = {
        "userId": user_id,
        "q": label_query(query, label_ids),
        "maxResults": min(max_results, MAX_PAGE_SIZE),
    }
    if page_token:
        params["pageToken"] = page_token

    try:
        response = service.users().threads().list(**params).execute()
    except Exception as e:
        logger.error("Failed to list threads for %s: %s", user_id, e)
        raise translate_error(e, "Failed to list threads") from e

    logger.debug("Listed %d threads", len(response.get("threads", [])))
    return response


def get_thread(
    service: Resource, thread_id: str, user_id: str = "me", format: str = "metadata"
) -> dict[str, Any]:
    """Get a thread with all its messages, in the order Gmail returns them."""
    try:
        thread = (
            service.users()
            .threads()
            .get(userId=user_id, id=thread_id, format=format)
            .execute()
        )
    except Exception as e:
        logger.error("Failed to get thread %s: %s", thread_id, e)
        raise translate_error(e, f"Failed to get thread {thread_id}") from e

    msg_count = len(thread.get("messages", []))
    logger.debug("Retrieved thread %s with %d messages", thread_id, msg_count)
    return thread


__all__ = ["list_threads", "get_thread"]
