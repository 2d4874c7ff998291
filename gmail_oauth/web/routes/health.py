"""Liveness endpoint."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Request

from gmail_oauth.web.dependencies import get_session

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request):
    """Report liveness and which configuration values are present."""
    settings = request.app.state.settings
    return {
        "status": "OK",
        "timestamp": datetime.now(UTC).isoformat(),
        "authenticated": get_session(request).is_authenticated(),
        "environment": settings.presence(),
    }


__all__ = ["router"]
