"""
Calendar adapter: Google Calendar API v3 wrapper.

Events on the caller's primary calendar, plus conflict detection:
any opaque, non-cancelled event overlapping a window counts.
"""

from typing import Any

from adapters.services import execute, get_calendar_service
from logging_config import log_api_call, log_api_result
from models import Identity
from retry import with_retry

CALENDAR_ID = "primary"

# Calendar API hard limit per page
MAX_PAGE_SIZE = 2500


def _parse_event(data: dict[str, Any]) -> dict[str, Any]:
    """Calendar event trimmed to the fields callers use."""
    # Meet link from conferenceData or legacy hangoutLink
    meet_link = data.get("hangoutLink")
    for entry_point in data.get("conferenceData", {}).get("entryPoints", []):
        if entry_point.get("entryPointType") == "video":
            meet_link = entry_point.get("uri")
            break

    return {
        "id": data.get("id", ""),
        "summary": data.get("summary", "(No title)"),
        "start": data.get("start", {}),
        "end": data.get("end", {}),
        "status": data.get("status"),
        "location": data.get("location"),
        "description": data.get("description"),
        "htmlLink": data.get("htmlLink"),
        "attendees": [
            {
                "email": a.get("email", ""),
                "displayName": a.get("displayName"),
                "responseStatus": a.get("responseStatus", "needsAction"),
            }
            for a in data.get("attendees", [])
        ],
        "organizer": data.get("organizer", {}).get("email"),
        "meetLink": meet_link,
    }


def _blocks_time(event: dict[str, Any], exclude_event_id: str | None) -> bool:
    """Whether an event occupies its slot for conflict purposes."""
    if exclude_event_id and event.get("id") == exclude_event_id:
        return False
    if event.get("status") == "cancelled":
        return False
    # "Show as available" events never conflict
    return event.get("transparency") != "transparent"


class GoogleCalendarBackend:
    """Calendar backend on the caller's primary calendar."""

    @with_retry(max_attempts=3, delay_ms=1000)
    async def list_events(self, identity: Identity, params: dict[str, Any]) -> dict[str, Any]:
        """
        One page of events ordered by start time.

        Args:
            params: timeMin, timeMax, q, maxResults, pageToken (all optional)

        Returns:
            {"items": [...], "nextPageToken": str | None}
        """
        service = get_calendar_service(identity)
        kwargs: dict[str, Any] = {
            "calendarId": CALENDAR_ID,
            "singleEvents": True,
            "orderBy": "startTime",
            "maxResults": min(params.get("maxResults") or 250, MAX_PAGE_SIZE),
        }
        for key in ("timeMin", "timeMax", "q", "pageToken"):
            if params.get(key):
                kwargs[key] = params[key]
        log_api_call("calendar", "events.list", **kwargs)

        response = await execute(service.events().list(**kwargs))
        events = [_parse_event(item) for item in response.get("items", [])]
        log_api_result("calendar", "events.list", len(events))
        return {"items": events, "nextPageToken": response.get("nextPageToken")}

    @with_retry(max_attempts=3, delay_ms=1000)
    async def get_event(self, identity: Identity, event_id: str) -> dict[str, Any]:
        service = get_calendar_service(identity)
        log_api_call("calendar", "events.get", eventId=event_id)
        data = await execute(service.events().get(calendarId=CALENDAR_ID, eventId=event_id))
        return _parse_event(data)

    @with_retry(max_attempts=3, delay_ms=1000)
    async def create_event(self, identity: Identity, event: dict[str, Any]) -> dict[str, Any]:
        service = get_calendar_service(identity)
        log_api_call("calendar", "events.insert", summary=event.get("summary"))
        data = await execute(
            service.events().insert(calendarId=CALENDAR_ID, body=event, sendUpdates="all")
        )
        return _parse_event(data)

    @with_retry(max_attempts=3, delay_ms=1000)
    async def update_event(
        self, identity: Identity, event_id: str, updates: dict[str, Any]
    ) -> dict[str, Any]:
        service = get_calendar_service(identity)
        log_api_call("calendar", "events.patch", eventId=event_id, fields=sorted(updates))
        data = await execute(
            service.events().patch(
                calendarId=CALENDAR_ID, eventId=event_id, body=updates, sendUpdates="all"
            )
        )
        return _parse_event(data)

    @with_retry(max_attempts=3, delay_ms=1000)
    async def delete_event(self, identity: Identity, event_id: str) -> dict[str, Any]:
        service = get_calendar_service(identity)
        log_api_call("calendar", "events.delete", eventId=event_id)
        await execute(
            service.events().delete(calendarId=CALENDAR_ID, eventId=event_id, sendUpdates="all")
        )
        return {"deleted": True, "eventId": event_id}

    @with_retry(max_attempts=3, delay_ms=1000)
    async def check_conflicts(
        self, identity: Identity, start: str, end: str, exclude_event_id: str | None = None
    ) -> list[dict[str, Any]]:
        """Events overlapping [start, end), excluding `exclude_event_id`."""
        service = get_calendar_service(identity)
        log_api_call("calendar", "events.list", timeMin=start, timeMax=end, purpose="conflicts")
        response = await execute(
            service.events().list(
                calendarId=CALENDAR_ID,
                timeMin=start,
                timeMax=end,
                singleEvents=True,
                orderBy="startTime",
                maxResults=MAX_PAGE_SIZE,
            )
        )
        conflicts = [
            _parse_event(item)
            for item in response.get("items", [])
            if _blocks_time(item, exclude_event_id)
        ]
        log_api_result("calendar", "events.list", len(conflicts))
        return conflicts
