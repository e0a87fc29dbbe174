"""Google OAuth 2.0 authorization-code flow and token refresh.

The flow:
  1. ``build_authorization_url`` -- where ``GET /api/auth/google`` sends the
     browser. Asks for offline access with ``prompt=consent`` so Google issues
     a refresh token on every consent.
  2. ``OAuthCallbackHandler.handle_callback`` -- exchanges the returned code,
     fetches the userinfo profile, upserts the credential record and decides
     where to send the browser next.
  3. ``TokenRefresher.refresh`` -- trades a stored refresh token for a new
     access token. Used by the request executor on a 401.

Both token endpoint calls are form-encoded. Token values are never logged.
"""

import logging
from dataclasses import dataclass
from urllib.parse import quote as url_quote
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from models.schemas import CredentialRecord, GoogleProfile, TokenGrant
from services.config import OAuthConfig
from services.credential_store import CredentialStore
from services.errors import (
    CalendarConnectError,
    MissingAuthorizationCode,
    ProfileFetchFailed,
    RefreshFailed,
    TokenExchangeFailed,
)

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USER_INFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"

SCOPES = (
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
)

_FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


def build_authorization_url(config: OAuthConfig) -> str:
    config.require_authorization()
    params = {
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "response_type": "code",
        "scope": " ".join(SCOPES),
        "access_type": "offline",
        "prompt": "consent",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


async def _post_token_form(client: httpx.AsyncClient, data: dict) -> TokenGrant:
    """POST to the token endpoint; raises ValueError on any unusable response."""
    try:
        resp = await client.post(GOOGLE_TOKEN_URL, data=data, headers=_FORM_HEADERS)
    except httpx.HTTPError as exc:
        raise ValueError(f"token endpoint unreachable: {exc}") from exc
    if not resp.is_success:
        raise ValueError(f"token endpoint returned {resp.status_code}: {_error_summary(resp)}")
    try:
        return TokenGrant(**resp.json())
    except (ValueError, TypeError, ValidationError) as exc:
        raise ValueError(f"token endpoint returned an unusable body: {exc}") from exc


def _error_summary(resp: httpx.Response) -> str:
    # Google puts the useful bit in "error"; never echo the full body (it may hold tokens).
    try:
        body = resp.json()
    except ValueError:
        return "non-JSON body"
    if isinstance(body, dict):
        return str(body.get("error", "unknown_error"))
    return "unknown_error"


async def exchange_code(client: httpx.AsyncClient, config: OAuthConfig, code: str) -> TokenGrant:
    config.require_token_exchange()
    try:
        return await _post_token_form(
            client,
            {
                "code": code,
                "client_id": config.client_id,
                "client_secret": config.client_secret,
                "redirect_uri": config.redirect_uri,
                "grant_type": "authorization_code",
            },
        )
    except ValueError as exc:
        raise TokenExchangeFailed(details=str(exc)) from exc


async def fetch_profile(client: httpx.AsyncClient, access_token: str) -> GoogleProfile:
    try:
        resp = await client.get(GOOGLE_USER_INFO_URL, headers={"Authorization": f"Bearer {access_token}"})
    except httpx.HTTPError as exc:
        raise ProfileFetchFailed(details=str(exc)) from exc
    if not resp.is_success:
        raise ProfileFetchFailed(details=f"userinfo returned {resp.status_code}")
    try:
        return GoogleProfile(**resp.json())
    except (ValueError, TypeError, ValidationError) as exc:
        raise ProfileFetchFailed(details=f"userinfo response incomplete: {exc}") from exc


class TokenRefresher:
    def __init__(self, client: httpx.AsyncClient, config: OAuthConfig):
        self._client = client
        self._config = config

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Single POST with grant_type=refresh_token. No retry."""
        self._config.require_client_credentials()
        try:
            return await _post_token_form(
                self._client,
                {
                    "client_id": self._config.client_id,
                    "client_secret": self._config.client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        except ValueError as exc:
            logger.warning("Token refresh rejected: %s", exc)
            raise RefreshFailed(details=str(exc)) from exc


# ---------------------------------------------------------------------------
# Callback
# ---------------------------------------------------------------------------

@dataclass
class RedirectOutcome:
    url: str
    success: bool
    record: CredentialRecord | None = None


class OAuthCallbackHandler:
    def __init__(self, client: httpx.AsyncClient, config: OAuthConfig, store: CredentialStore):
        self._client = client
        self._config = config
        self._store = store

    def success_url(self, record: CredentialRecord) -> str:
        return (
            f"{self._config.frontend_url}/auth/callback"
            f"?userId={url_quote(record.id, safe='')}"
            f"&email={url_quote(record.email, safe='')}"
            f"&name={url_quote(record.name or '', safe='')}"
        )

    def failure_url(self) -> str:
        return f"{self._config.frontend_url}?error=auth_failed"

    async def handle_callback(self, code: str | None, error: str | None = None) -> RedirectOutcome:
        """Finish the authorization-code flow.

        Raises ``MissingAuthorizationCode`` or ``ConfigurationError``; every
        provider or storage failure after that becomes a failure redirect.
        """
        if error:
            logger.warning("Google OAuth provider error: %s", error)
            return RedirectOutcome(url=self.failure_url(), success=False)
        if not code:
            raise MissingAuthorizationCode()
        self._config.require_token_exchange()

        try:
            grant = await exchange_code(self._client, self._config, code)
            profile = await fetch_profile(self._client, grant.access_token)
            record = self._store.upsert(
                profile.sub,
                email=profile.email,
                name=profile.name,
                access_token=grant.access_token,
                refresh_token=grant.refresh_token,
            )
        except CalendarConnectError as exc:
            logger.error("Error during Google OAuth callback: %s (%s)", exc.message, exc.details)
            return RedirectOutcome(url=self.failure_url(), success=False)
        except Exception:
            logger.exception("Failed to persist Google credentials")
            return RedirectOutcome(url=self.failure_url(), success=False)

        if not grant.refresh_token and not record.refresh_token:
            logger.warning("No refresh token on record %s; expiry will require re-consent", record.id)
        logger.info("Google OAuth complete for record %s", record.id)
        return RedirectOutcome(url=self.success_url(record), success=True, record=record)
