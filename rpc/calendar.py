"""
Calendar RPC: `POST /api/rpc/calendar`.

Operations: list, get, create, update, delete, checkConflicts.

create/update accept checkConflicts: overlapping events block the write
with 409 unless force is set, in which case the write proceeds and the
conflicts are reported alongside the event.
"""

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from models import (
    ConciergeError,
    ConflictWindow,
    ErrorKind,
    EventWriteParams,
    invalid_param,
)
from rpc.core import Dispatcher, RpcContext, parse_page_query
from rpc.normalizer import CALENDAR_ROOT_KEYS
from validation import coerce_bool, optional_string, require_string, string_list

TIME_FORMAT_EXAMPLE = {"dateTime": "2025-03-14T15:00:00", "timeZone": "Europe/Prague"}

CREATE_FORMAT = {
    "summary": "Team sync",
    "start": "2025-03-14T15:00:00",
    "end": "2025-03-14T15:30:00",
    "timeZone": "Europe/Prague",
}


# =============================================================================
# PARSING
# =============================================================================

def _event_time(value: Any, field: str, time_zone: str | None) -> dict[str, Any]:
    """A start/end given as a string or as a {dateTime|date, timeZone} object."""
    if isinstance(value, str) and value.strip():
        time: dict[str, Any] = {"dateTime": value.strip()}
        if time_zone:
            time["timeZone"] = time_zone
        return time
    if isinstance(value, dict) and (value.get("dateTime") or value.get("date")):
        time = {k: v for k, v in value.items() if v is not None}
        if time_zone and "dateTime" in time and not time.get("timeZone"):
            time["timeZone"] = time_zone
        return time
    raise invalid_param(
        f"Invalid {field}: use an ISO date-time string or {{dateTime, timeZone}}",
        code="INVALID_TIME_FORMAT",
        expected_format=TIME_FORMAT_EXAMPLE,
    )


def _strict_event_time(value: Any, field: str) -> dict[str, Any]:
    """Update times must carry both dateTime and an explicit timeZone."""
    if (
        not isinstance(value, dict)
        or not isinstance(value.get("dateTime"), str)
        or not value["dateTime"].strip()
        or not isinstance(value.get("timeZone"), str)
        or not value["timeZone"].strip()
    ):
        raise invalid_param(
            f"updates.{field} must include both dateTime and timeZone",
            code="INVALID_TIME_FORMAT",
            expected_format=TIME_FORMAT_EXAMPLE,
        )
    return {**value, "dateTime": value["dateTime"].strip(), "timeZone": value["timeZone"].strip()}


def _attendees(value: Any) -> list[dict[str, Any]]:
    if isinstance(value, list) and all(isinstance(a, dict) for a in value):
        return [a for a in value if a.get("email")]
    return [{"email": email} for email in string_list(value, "attendees")]


def _parse_create(params: Mapping[str, Any]) -> EventWriteParams:
    summary = optional_string(params, "summary") or optional_string(params, "title")
    missing = [
        name for name, value in (
            ("summary", summary), ("start", params.get("start")), ("end", params.get("end"))
        ) if not value
    ]
    if missing:
        raise invalid_param(
            f"Missing required fields: {', '.join(missing)}", expected_format=CREATE_FORMAT
        )

    time_zone = optional_string(params, "timeZone")
    event: dict[str, Any] = {
        "summary": summary,
        "start": _event_time(params["start"], "start", time_zone),
        "end": _event_time(params["end"], "end", time_zone),
    }
    for key in ("description", "location"):
        value = optional_string(params, key)
        if value:
            event[key] = value
    if params.get("attendees"):
        event["attendees"] = _attendees(params["attendees"])
    if isinstance(params.get("reminders"), dict):
        event["reminders"] = params["reminders"]

    return EventWriteParams(
        event=event,
        check_conflicts=coerce_bool(params.get("checkConflicts")),
        force=coerce_bool(params.get("force")),
    )


def _parse_update(params: Mapping[str, Any]) -> tuple[str, EventWriteParams]:
    event_id = require_string(params, "eventId")
    updates = params.get("updates")
    if not isinstance(updates, dict) or not updates:
        raise invalid_param(
            "Missing required field: updates (a non-empty object)",
            expected_format={"eventId": "abc123", "updates": {"summary": "New title"}},
        )
    updates = dict(updates)
    for field in ("start", "end"):
        if field in updates:
            updates[field] = _strict_event_time(updates[field], field)
    return event_id, EventWriteParams(
        event=updates,
        event_id=event_id,
        check_conflicts=coerce_bool(params.get("checkConflicts")),
        force=coerce_bool(params.get("force")),
    )


def _bound(time: Mapping[str, Any]) -> str:
    """
    RFC 3339 instant for a start/end object, as events.list requires.

    A local dateTime takes its offset from timeZone (UTC when absent);
    all-day dates start at midnight UTC.
    """
    if not time.get("dateTime"):
        return f"{time['date']}T00:00:00Z"
    value = str(time["dateTime"])
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise invalid_param(
            f"Invalid dateTime: {value}",
            code="INVALID_TIME_FORMAT",
            expected_format=TIME_FORMAT_EXAMPLE,
        )
    if parsed.tzinfo is not None:
        return value
    try:
        zone = ZoneInfo(time["timeZone"]) if time.get("timeZone") else timezone.utc
    except (ZoneInfoNotFoundError, ValueError):
        raise invalid_param(
            f"Unknown timeZone: {time['timeZone']}",
            code="INVALID_TIME_FORMAT",
            expected_format=TIME_FORMAT_EXAMPLE,
        )
    return parsed.replace(tzinfo=zone).isoformat()


def _parse_window(params: Mapping[str, Any]) -> ConflictWindow:
    missing = [k for k in ("start", "end") if not params.get(k)]
    if missing:
        raise invalid_param(f"Missing required fields: {', '.join(missing)}")
    time_zone = optional_string(params, "timeZone")
    return ConflictWindow(
        start=_bound(_event_time(params["start"], "start", time_zone)),
        end=_bound(_event_time(params["end"], "end", time_zone)),
        exclude_event_id=optional_string(params, "excludeEventId"),
    )


# =============================================================================
# HANDLERS
# =============================================================================

async def list_events(ctx: RpcContext, params: dict[str, Any]) -> dict[str, Any]:
    """One page of events, or a capped aggregate with a snapshot token."""
    query = parse_page_query(params, {
        "timeMin": optional_string(params, "timeMin"),
        "timeMax": optional_string(params, "timeMax"),
        "q": optional_string(params, "query") or optional_string(params, "q"),
    })

    async def fetch(page: dict[str, Any]) -> dict[str, Any]:
        return await ctx.backends.calendar.list_events(ctx.identity, page)

    envelope = await ctx.engine.run(
        fetch, query, cap=ctx.limits.aggregate_cap_calendar, caller=ctx.identity.key
    )
    return envelope.to_dict()


async def _get(ctx: RpcContext, params: dict[str, Any]) -> Any:
    return await ctx.backends.calendar.get_event(ctx.identity, require_string(params, "eventId"))


async def _write_checked(
    ctx: RpcContext,
    write: EventWriteParams,
    window: Callable[[], Awaitable[ConflictWindow]],
    mutate: Callable[[], Awaitable[dict[str, Any]]],
) -> dict[str, Any]:
    """Run the conflict check (if asked), then the mutation."""
    if not write.check_conflicts:
        return await mutate()

    bounds = await window()
    conflicts = await ctx.backends.calendar.check_conflicts(
        ctx.identity, bounds.start, bounds.end, bounds.exclude_event_id
    )
    if conflicts and not write.force:
        raise ConciergeError(
            ErrorKind.CONFLICT,
            f"Conflict detected: {len(conflicts)} overlapping event(s). "
            "Pick another time or set force: true to proceed anyway.",
            code="CALENDAR_CONFLICT",
            extras={
                "blocked": True,
                "checkedConflicts": True,
                "conflictsCount": len(conflicts),
                "conflicts": conflicts,
            },
        )

    event = await mutate()
    result: dict[str, Any] = {
        "event": event,
        "checkedConflicts": True,
        "conflictsCount": len(conflicts),
        "conflicts": conflicts,
        "conflictsAccepted": bool(conflicts),
    }
    if conflicts:
        result["note"] = "Event saved despite conflicts (force=true)"
    return result


async def _create(ctx: RpcContext, params: dict[str, Any]) -> Any:
    write = _parse_create(params)

    async def window() -> ConflictWindow:
        return ConflictWindow(start=_bound(write.event["start"]), end=_bound(write.event["end"]))

    async def mutate() -> dict[str, Any]:
        return await ctx.backends.calendar.create_event(ctx.identity, write.event)

    return await _write_checked(ctx, write, window, mutate)


async def _update(ctx: RpcContext, params: dict[str, Any]) -> Any:
    event_id, write = _parse_update(params)

    async def window() -> ConflictWindow:
        start = write.event.get("start")
        end = write.event.get("end")
        if start is None or end is None:
            current = await ctx.backends.calendar.get_event(ctx.identity, event_id)
            start = start or current.get("start") or {}
            end = end or current.get("end") or {}
        if not (start.get("dateTime") or start.get("date")) or not (
            end.get("dateTime") or end.get("date")
        ):
            raise invalid_param("Cannot check conflicts: event has no start/end")
        return ConflictWindow(start=_bound(start), end=_bound(end), exclude_event_id=event_id)

    async def mutate() -> dict[str, Any]:
        return await ctx.backends.calendar.update_event(ctx.identity, event_id, write.event)

    return await _write_checked(ctx, write, window, mutate)


async def _delete(ctx: RpcContext, params: dict[str, Any]) -> Any:
    return await ctx.backends.calendar.delete_event(
        ctx.identity, require_string(params, "eventId")
    )


async def _check_conflicts(ctx: RpcContext, params: dict[str, Any]) -> Any:
    window = _parse_window(params)
    conflicts = await ctx.backends.calendar.check_conflicts(
        ctx.identity, window.start, window.end, window.exclude_event_id
    )
    return {
        "hasConflicts": bool(conflicts),
        "conflictsCount": len(conflicts),
        "conflicts": conflicts,
    }


calendar_rpc = Dispatcher(
    domain="calendar",
    handlers={
        "list": list_events,
        "get": _get,
        "create": _create,
        "update": _update,
        "delete": _delete,
        "checkConflicts": _check_conflicts,
    },
    root_keys=CALENDAR_ROOT_KEYS,
)
