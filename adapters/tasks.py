"""
Tasks adapter: Google Tasks API v1 wrapper.

Lists tasks across every task list; mutations address a task by
(taskListId, taskId). New tasks land on the first list unless one is named.
"""

from typing import Any

from adapters.services import execute, get_tasks_service
from logging_config import log_api_call, log_api_result
from models import MAX_TASK_RESULTS, Identity, error_from_code
from retry import with_retry

# Filters forwarded from the caller to tasks.list
LIST_FILTERS = ("showCompleted", "showHidden", "dueMin", "dueMax", "pageToken")


def _parse_task(data: dict[str, Any], task_list: dict[str, Any]) -> dict[str, Any]:
    """Parse a task from Tasks API response, tagged with its list."""
    return {
        "id": data.get("id", ""),
        "title": data.get("title", ""),
        "status": data.get("status", "needsAction"),
        "due": data.get("due"),
        "notes": data.get("notes"),
        "updated": data.get("updated"),
        "completed": data.get("completed"),
        "parent": data.get("parent"),
        "taskListId": task_list.get("id"),
        "taskListTitle": task_list.get("title"),
    }


class GoogleTasksBackend:
    """Tasks backend across all of the caller's task lists."""

    async def _task_lists(self, service: Any) -> list[dict[str, Any]]:
        response = await execute(service.tasklists().list(maxResults=MAX_TASK_RESULTS))
        return response.get("items", [])

    @with_retry(max_attempts=3, delay_ms=1000)
    async def list_tasks(self, identity: Identity, params: dict[str, Any]) -> dict[str, Any]:
        """
        Tasks from every list (or only `taskListId` when given).

        Expects params already validated by the dispatcher (see TaskListParams).

        Returns:
            {"tasks": [...], "taskLists": [{id, title}], "count": int}
        """
        service = get_tasks_service(identity)
        log_api_call("tasks", "tasks.list", **params)

        task_lists = await self._task_lists(service)
        wanted = params.get("taskListId")
        if wanted:
            task_lists = [tl for tl in task_lists if tl.get("id") == wanted]

        kwargs: dict[str, Any] = {
            "maxResults": min(int(params.get("maxResults") or MAX_TASK_RESULTS), MAX_TASK_RESULTS),
        }
        for key in LIST_FILTERS:
            if params.get(key) is not None:
                kwargs[key] = params[key]

        tasks: list[dict[str, Any]] = []
        for task_list in task_lists:
            response = await execute(service.tasks().list(tasklist=task_list["id"], **kwargs))
            tasks.extend(_parse_task(item, task_list) for item in response.get("items", []))

        log_api_result("tasks", "tasks.list", len(tasks))
        return {
            "tasks": tasks,
            "taskLists": [{"id": tl.get("id"), "title": tl.get("title")} for tl in task_lists],
            "count": len(tasks),
        }

    @with_retry(max_attempts=3, delay_ms=1000)
    async def create_task(self, identity: Identity, payload: dict[str, Any]) -> dict[str, Any]:
        service = get_tasks_service(identity)
        body = {k: v for k, v in payload.items() if k != "taskListId"}
        log_api_call("tasks", "tasks.insert", title=body.get("title"))

        task_lists = await self._task_lists(service)
        list_id = payload.get("taskListId")
        target = next((tl for tl in task_lists if tl.get("id") == list_id), None) if list_id else (
            task_lists[0] if task_lists else None
        )
        if target is None:
            raise error_from_code(
                "TASK_NOT_FOUND",
                f"Task list not found: {list_id}" if list_id else "No task list available",
            )

        data = await execute(service.tasks().insert(tasklist=target["id"], body=body))
        return _parse_task(data, target)

    @with_retry(max_attempts=3, delay_ms=1000)
    async def update_task(
        self, identity: Identity, task_list_id: str, task_id: str, updates: dict[str, Any]
    ) -> dict[str, Any]:
        service = get_tasks_service(identity)
        body = dict(updates)
        # Reopening needs the completion timestamp cleared
        if body.get("status") == "needsAction":
            body["completed"] = None
        log_api_call("tasks", "tasks.patch", tasklist=task_list_id, task=task_id)
        data = await execute(
            service.tasks().patch(tasklist=task_list_id, task=task_id, body=body)
        )
        return _parse_task(data, {"id": task_list_id})

    @with_retry(max_attempts=3, delay_ms=1000)
    async def delete_task(self, identity: Identity, task_list_id: str, task_id: str) -> None:
        service = get_tasks_service(identity)
        log_api_call("tasks", "tasks.delete", tasklist=task_list_id, task=task_id)
        await execute(service.tasks().delete(tasklist=task_list_id, task=task_id))
