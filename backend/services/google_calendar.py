"""Google Calendar v3 operations on the user's primary calendar."""

from datetime import datetime, timezone
from typing import Callable

from models.schemas import EventCreateRequest
from services.errors import UpstreamError
from services.executor import AuthenticatedExecutor, ExecutionResult, RequestSpec

GOOGLE_CALENDAR_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"
MAX_LIST_RESULTS = 20


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _rfc3339(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CalendarService:
    def __init__(self, executor: AuthenticatedExecutor, clock: Callable[[], datetime] = _utcnow):
        self._executor = executor
        self._clock = clock

    async def create_event(self, user_id: str, req: EventCreateRequest) -> ExecutionResult:
        spec = RequestSpec(method="POST", url=GOOGLE_CALENDAR_EVENTS_URL, json=req.to_event_body())
        try:
            return await self._executor.execute(user_id, spec, validate=req.validate_window)
        except UpstreamError as exc:
            exc.message = "Failed to create calendar event"
            raise

    async def list_upcoming(self, user_id: str) -> list[dict]:
        spec = RequestSpec(
            method="GET",
            url=GOOGLE_CALENDAR_EVENTS_URL,
            params={
                "timeMin": _rfc3339(self._clock()),
                "maxResults": MAX_LIST_RESULTS,
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )
        try:
            result = await self._executor.execute(user_id, spec)
        except UpstreamError as exc:
            exc.message = "Failed to fetch calendar events"
            raise
        return result.json().get("items", [])
