"""HTTP routers, one module per surface."""

from gmail_oauth.web.routes import auth, delegated, health, mail, pages

__all__ = ["auth", "delegated", "health", "mail", "pages"]
