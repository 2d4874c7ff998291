"""HTML pages: the sign-in landing page and the mailbox dashboard.

The dashboard is a thin shell; everything it shows is loaded from the JSON
routes by the inline script.
"""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse
from starlette.templating import Jinja2Templates

from gmail_oauth.web.dependencies import get_session

router = APIRouter(tags=["pages"])

_TEMPLATES_DIR = str(Path(__file__).resolve().parent.parent / "templates")
templates = Jinja2Templates(directory=_TEMPLATES_DIR)


@router.get("/")
async def landing(request: Request, error: str | None = None):
    """Sign-in page; signed-in users go straight to the dashboard."""
    if get_session(request).is_authenticated():
        return RedirectResponse(url="/dashboard", status_code=302)

    settings = request.app.state.settings
    return templates.TemplateResponse(
        request=request,
        name="landing.html",
        context={
            "error": error,
            "client_id_set": bool(settings.client_id),
            "client_secret_set": bool(settings.client_secret),
            "redirect_uri": settings.redirect_uri,
        },
    )


@router.get("/dashboard")
async def dashboard(request: Request):
    """Mailbox dashboard for the signed-in user."""
    caller = get_session(request).caller
    if caller is None:
        return RedirectResponse(url="/", status_code=302)

    return templates.TemplateResponse(
        request=request,
        name="dashboard.html",
        context={
            "name": caller.display_name or caller.email,
            "email": caller.email,
        },
    )


__all__ = ["router"]
