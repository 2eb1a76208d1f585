"""
Request normalizer: any inbound RPC body to OperationRequest.

LLM clients send parameters nested under `params`, flattened at the
root, or both. Allow-listed root keys are merged over the nested
params (root wins). Nothing is fabricated: when neither source supplies
anything, params stays None.
"""

from typing import Any

from models import OperationRequest, invalid_param

# Root-level keys forwarded into params, per domain
MAIL_ROOT_KEYS = frozenset({
    "query", "q", "maxResults", "pageToken", "aggregate", "snapshotToken", "ignoreSnapshot",
    "ids", "id", "searchQuery", "format",
    "to", "subject", "body", "cc", "bcc", "threadId", "draftId", "toSelf", "confirmSelfSend",
    "messageId", "replyAll", "actions", "add", "remove",
    "mode", "attachmentId", "maxKb", "maxRows", "delimiter",
    "list", "resolve", "modify", "create",
})

CALENDAR_ROOT_KEYS = frozenset({
    "timeMin", "timeMax", "query", "q", "maxResults", "pageToken", "aggregate",
    "snapshotToken", "ignoreSnapshot",
    "eventId", "updates", "summary", "title", "start", "end", "timeZone", "description",
    "location", "attendees", "reminders", "checkConflicts", "force", "excludeEventId",
})

CONTACTS_ROOT_KEYS = frozenset({
    "name", "email", "phone", "realestate", "realEstate", "notes", "query",
    "contacts", "entries", "emails", "rowIds", "strategy",
})

TASKS_ROOT_KEYS = frozenset({
    "taskListId", "tasklistId", "listId", "list_id", "taskId", "task_id",
    "title", "notes", "due", "status", "updates",
    "maxResults", "pageToken", "showCompleted", "showHidden", "dueMin", "dueMax",
})


def normalize_request(body: Any, root_keys: frozenset[str]) -> OperationRequest:
    """
    Collapse nested and root-level params into one `{op, params}`.

    Raises:
        ConciergeError: 400 INVALID_PARAM when the body is not an object
            or `op` is missing.

    Example:
        >>> normalize_request({"op": "send", "params": {"to": "a@x"}, "to": "b@x"}, MAIL_ROOT_KEYS)
        OperationRequest(op='send', params={'to': 'b@x'})
    """
    if not isinstance(body, dict):
        raise invalid_param("Request body must be a JSON object")

    op = body.get("op")
    if not op:
        raise invalid_param("Missing required field: op")
    if not isinstance(op, str):
        raise invalid_param("Field 'op' must be a string")

    nested = body.get("params")
    params: dict[str, Any] | None = dict(nested) if isinstance(nested, dict) else None

    for key, value in body.items():
        if key in ("op", "params") or key not in root_keys:
            continue
        if params is None:
            params = {}
        params[key] = value

    return OperationRequest(op=op.strip(), params=params)
