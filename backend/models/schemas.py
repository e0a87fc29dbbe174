"""Pydantic request/response models for all API endpoints."""

from datetime import datetime, timezone

from pydantic import BaseModel, TypeAdapter, ValidationError

from services.errors import InvalidRequest

ISO_FORMAT_HINT = "Invalid date format. Use ISO 8601 format (e.g., 2025-07-30T14:00:00.000Z)"


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

class CredentialRecord(BaseModel):
    id: str
    google_id: str
    email: str
    name: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TokenGrant(BaseModel):
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    scope: str | None = None
    token_type: str | None = None


class GoogleProfile(BaseModel):
    sub: str
    email: str
    name: str | None = None


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------

class EventCreateRequest(BaseModel):
    # Everything optional so a missing field is reported as a 400 with our
    # own message rather than a 422 from FastAPI.
    title: str | None = None
    description: str | None = None
    start: str | None = None
    end: str | None = None

    def validate_window(self) -> tuple[datetime, datetime]:
        if not (self.title or "").strip() or not self.start or not self.end:
            raise InvalidRequest("Missing required fields: title, start, and end are required")

        start_dt = parse_instant(self.start)
        end_dt = parse_instant(self.end)
        if start_dt is None or end_dt is None:
            raise InvalidRequest(ISO_FORMAT_HINT)

        if end_dt <= start_dt:
            raise InvalidRequest("End time must be after start time")
        return start_dt, end_dt

    def to_event_body(self) -> dict:
        return {
            "summary": self.title,
            "description": self.description or "",
            "start": {"dateTime": self.start},
            "end": {"dateTime": self.end},
        }


class EventCreatedResponse(BaseModel):
    message: str
    eventId: str | None = None
    htmlLink: str | None = None
    event: dict


class EventListResponse(BaseModel):
    message: str
    events: list[dict]


_INSTANT = TypeAdapter(datetime)


def parse_instant(value: str) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    try:
        dt = _INSTANT.validate_python(value.strip())
    except ValidationError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
