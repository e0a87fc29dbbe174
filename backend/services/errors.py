"""Error taxonomy shared by the OAuth flow, the executor and the routers.

Every failure the backend can report is one of these. Routers never build
error payloads by hand: ``server.py`` registers a handler that renders any
``CalendarConnectError`` as ``{"error": ..., "details": ...}`` with the
class' status code.
"""

from typing import Any


class CalendarConnectError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        # executor states passed through before the failure, when raised from a request
        self.transitions: list = []
        super().__init__(self.message)

    def to_payload(self) -> dict:
        payload: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigurationError(CalendarConnectError):
    status_code = 500
    default_message = "Google OAuth configuration is missing"


# ---------------------------------------------------------------------------
# Caller input
# ---------------------------------------------------------------------------

class MissingAuthorizationCode(CalendarConnectError):
    status_code = 400
    default_message = "Authorization code not provided"


class InvalidRequest(CalendarConnectError):
    status_code = 400
    default_message = "Invalid request"


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class NotAuthenticated(CalendarConnectError):
    status_code = 401
    default_message = "User not authenticated or access token missing"


class AuthenticationExpired(CalendarConnectError):
    status_code = 401
    default_message = "Access token expired. Please re-authenticate."


# ---------------------------------------------------------------------------
# Provider credential operations
# ---------------------------------------------------------------------------

class TokenExchangeFailed(CalendarConnectError):
    status_code = 502
    default_message = "Failed to exchange authorization code for tokens"


class ProfileFetchFailed(CalendarConnectError):
    status_code = 502
    default_message = "Failed to fetch Google user profile"


class RefreshFailed(CalendarConnectError):
    status_code = 401
    default_message = "Access token expired and refresh failed. Please re-authenticate."


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

class CredentialStoreError(CalendarConnectError):
    status_code = 500
    default_message = "Credential storage is unavailable"


# ---------------------------------------------------------------------------
# Everything else the provider can do to us
# ---------------------------------------------------------------------------

class UpstreamError(CalendarConnectError):
    status_code = 500
    default_message = "Google Calendar request failed"

    def __init__(self, message: str | None = None, details: Any = None, upstream_status: int | None = None):
        super().__init__(message, details)
        self.upstream_status = upstream_status
