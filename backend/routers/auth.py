"""Google OAuth endpoints -- authorization redirect and callback."""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from services.config import Settings, get_settings
from services.deps import get_callback_handler
from services.google_oauth import OAuthCallbackHandler, build_authorization_url

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ---------------------------------------------------------------------------
# 1. GET /api/auth/google  -- 302 to Google's consent screen
# ---------------------------------------------------------------------------
@router.get("/google")
async def redirect_to_google(settings: Settings = Depends(get_settings)):
    return RedirectResponse(url=build_authorization_url(settings.oauth), status_code=302)


# ---------------------------------------------------------------------------
# 2. GET /api/auth/google/callback  -- 302 back to the frontend
# ---------------------------------------------------------------------------
@router.get("/google/callback")
async def google_callback(
    code: str | None = Query(default=None),
    error: str | None = Query(default=None),
    handler: OAuthCallbackHandler = Depends(get_callback_handler),
):
    outcome = await handler.handle_callback(code, error=error)
    return RedirectResponse(url=outcome.url, status_code=302)
