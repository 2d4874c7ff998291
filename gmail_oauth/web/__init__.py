"""Web surface: FastAPI app, routers and response envelopes."""

from gmail_oauth.web.app import create_app

__all__ = ["create_app"]
