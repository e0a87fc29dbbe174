"""Calendar endpoints (Google Calendar integration) -- acting on behalf of X-User-ID."""

from fastapi import APIRouter, Depends, Header

from models.schemas import EventCreateRequest, EventCreatedResponse, EventListResponse
from services.deps import get_calendar_service
from services.errors import InvalidRequest
from services.google_calendar import CalendarService

router = APIRouter(prefix="/api/calendar", tags=["calendar"])


def _require_user_id(x_user_id: str | None = Header(default=None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise InvalidRequest("User ID is required")
    return x_user_id.strip()


@router.post("/event", status_code=201, response_model=EventCreatedResponse)
async def create_calendar_event(
    req: EventCreateRequest,
    user_id: str = Depends(_require_user_id),
    calendar: CalendarService = Depends(get_calendar_service),
):
    result = await calendar.create_event(user_id, req)
    data = result.json()
    message = "Event created successfully"
    if result.refreshed:
        message += " (with refreshed token)"
    return EventCreatedResponse(message=message, eventId=data.get("id"), htmlLink=data.get("htmlLink"), event=data)


@router.get("/events", response_model=EventListResponse)
async def get_calendar_events(
    user_id: str = Depends(_require_user_id),
    calendar: CalendarService = Depends(get_calendar_service),
):
    events = await calendar.list_upcoming(user_id)
    return EventListResponse(message="Events retrieved successfully", events=events)
