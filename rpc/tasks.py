"""
Tasks RPC: `POST /api/rpc/tasks`.

Only `list` is served here. Every mutation (and `get`) answers 410 with
the facade endpoints and a concrete example call.
"""

from typing import Any, Mapping

from models import MAX_TASK_RESULTS, TASK_LIST_ID_ALIASES, TaskListParams, invalid_param
from rpc.core import Dispatcher, RpcContext
from rpc.deprecation import TASKS_REDIRECTS
from rpc.normalizer import TASKS_ROOT_KEYS
from validation import coerce_bool, first_present, optional_int, optional_string, trimmed


def _optional_flag(params: Mapping[str, Any], key: str) -> bool | None:
    # Absent flags keep the Tasks API defaults
    value = params.get(key)
    return None if value is None or value == "" else coerce_bool(value)


def _parse_list(params: Mapping[str, Any]) -> TaskListParams:
    list_id = first_present(params, TASK_LIST_ID_ALIASES)
    if list_id is not None and not isinstance(list_id, str):
        raise invalid_param("Field 'taskListId' must be a string")

    max_results = optional_int(params, "maxResults")
    if max_results is not None:
        max_results = min(max(max_results, 1), MAX_TASK_RESULTS)

    return TaskListParams(
        task_list_id=trimmed(list_id),
        max_results=MAX_TASK_RESULTS if max_results is None else max_results,
        show_completed=_optional_flag(params, "showCompleted"),
        show_hidden=_optional_flag(params, "showHidden"),
        due_min=optional_string(params, "dueMin"),
        due_max=optional_string(params, "dueMax"),
        page_token=optional_string(params, "pageToken"),
    )


async def _list(ctx: RpcContext, params: dict[str, Any]) -> Any:
    query = _parse_list(params)
    return await ctx.backends.tasks.list_tasks(ctx.identity, query.to_params())


tasks_rpc = Dispatcher(
    domain="tasks",
    handlers={"list": _list},
    root_keys=TASKS_ROOT_KEYS,
    redirects=TASKS_REDIRECTS,
)
