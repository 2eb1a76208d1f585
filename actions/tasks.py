"""
Tasks facades: create, modify, delete.

Task and list ids are accepted under several aliases; due dates are
normalized to RFC 3339 before they reach Google Tasks.
"""

from typing import Any, Mapping

from models import TASK_ID_ALIASES, TASK_LIST_ID_ALIASES, TaskRef, invalid_param
from rpc.core import RpcContext
from validation import first_present, normalize_due_date, trimmed

from .base import Action

UPDATE_FIELDS = ("status", "title", "notes", "due")
TASK_STATUSES = frozenset({"needsAction", "completed"})

MODIFY_FORMAT = {
    "taskListId": "string",
    "taskId": "string",
    "status": "completed|needsAction?",
    "title": "string?",
    "notes": "string?",
    "due": "RFC3339 timestamp?",
}


def _task_ref(payload: Mapping[str, Any], op: str, expected: dict[str, str]) -> TaskRef:
    list_id = trimmed(first_present(payload, TASK_LIST_ID_ALIASES))
    task_id = trimmed(first_present(payload, TASK_ID_ALIASES))
    if not list_id or not task_id:
        raise invalid_param(f"{op} requires taskListId and taskId", expected_format=expected)
    return TaskRef(task_list_id=list_id, task_id=task_id)


def build_update_payload(payload: Mapping[str, Any]) -> dict[str, Any]:
    """
    Merge `updates` with the top-level update fields (top level wins).

    Example:
        >>> build_update_payload({"updates": {"title": "a"}, "due": "2025-01-31"})
        {'title': 'a', 'due': '2025-01-31T00:00:00.000Z'}
    """
    nested = payload.get("updates")
    if nested is not None and not isinstance(nested, dict):
        raise invalid_param("Field 'updates' must be an object")
    updates = dict(nested or {})
    for key in UPDATE_FIELDS:
        if payload.get(key) is not None:
            updates[key] = payload[key]
    if "due" in updates:
        updates["due"] = normalize_due_date(updates["due"])
    status = updates.get("status")
    if status is not None and status not in TASK_STATUSES:
        raise invalid_param(
            f"Invalid status: {status}. Use 'completed' or 'needsAction'",
            expected_format=MODIFY_FORMAT,
        )
    return updates


async def create(ctx: RpcContext, payload: dict[str, Any] | None) -> dict[str, Any]:
    payload = payload or {}
    title = trimmed(payload.get("title"))
    if not title:
        raise invalid_param("Missing required field: title")

    task_payload: dict[str, Any] = {"title": title}
    if trimmed(payload.get("notes")):
        task_payload["notes"] = payload["notes"]
    due = normalize_due_date(payload.get("due"))
    if due:
        task_payload["due"] = due
    list_id = trimmed(first_present(payload, TASK_LIST_ID_ALIASES))
    if list_id:
        task_payload["taskListId"] = list_id

    task = await ctx.backends.tasks.create_task(ctx.identity, task_payload)
    return {"task": task, "message": "Task created successfully"}


async def modify(ctx: RpcContext, payload: dict[str, Any] | None) -> dict[str, Any]:
    payload = payload or {}
    ref = _task_ref(payload, "modify", MODIFY_FORMAT)
    updates = build_update_payload(payload)
    if not updates:
        raise invalid_param(
            "modify requires at least one update field", expected_format=MODIFY_FORMAT
        )
    task = await ctx.backends.tasks.update_task(
        ctx.identity, ref.task_list_id, ref.task_id, updates
    )
    return {"task": task, "message": "Task updated successfully"}


async def delete(ctx: RpcContext, payload: dict[str, Any] | None) -> dict[str, Any]:
    ref = _task_ref(payload or {}, "delete", {"taskListId": "string", "taskId": "string"})
    await ctx.backends.tasks.delete_task(ctx.identity, ref.task_list_id, ref.task_id)
    return {"message": "Task deleted successfully"}


TASK_ACTIONS: Mapping[str, Action] = {
    "create": Action("tasks", "create", create, "TASK_CREATE_FAILED"),
    "modify": Action("tasks", "modify", modify, "TASK_MODIFY_FAILED"),
    "delete": Action("tasks", "delete", delete, "TASK_DELETE_FAILED"),
}
