"""
Mutation-deprecation redirects.

Contacts and tasks mutations moved to dedicated facade endpoints. The
RPC dispatchers consult these tables before any validation and answer
410 Gone with the replacement paths instead of touching a backend.
"""

from types import MappingProxyType
from typing import Mapping

from models import ConciergeError, ErrorKind, MigrationRedirect

CONTACTS_ENDPOINTS: Mapping[str, str] = MappingProxyType({
    "update": "/api/contacts/actions/modify",
    "delete": "/api/contacts/actions/delete",
    "bulkDelete": "/api/contacts/actions/bulkDelete",
})

TASKS_ENDPOINTS: Mapping[str, str] = MappingProxyType({
    "create": "/api/tasks/actions/create",
    "modify": "/api/tasks/actions/modify",
    "delete": "/api/tasks/actions/delete",
})

CONTACTS_MUTATION_DISABLED = "CONTACTS_RPC_MUTATION_DISABLED"
TASKS_MUTATION_DISABLED = "TASKS_RPC_MUTATION_DISABLED"


def _tasks(hint: str) -> MigrationRedirect:
    return MigrationRedirect(code=TASKS_MUTATION_DISABLED, endpoints=TASKS_ENDPOINTS, hint=hint)


CONTACTS_REDIRECTS: Mapping[str, MigrationRedirect] = MappingProxyType({
    op: MigrationRedirect(code=CONTACTS_MUTATION_DISABLED, endpoints=CONTACTS_ENDPOINTS)
    for op in ("update", "delete", "bulkDelete")
})

TASKS_REDIRECTS: Mapping[str, MigrationRedirect] = MappingProxyType({
    "get": _tasks(
        'POST /api/rpc/tasks { op: "list" } and pick the task by id'
    ),
    "create": _tasks(
        'POST /api/tasks/actions/create { title: "Call the bank", notes: "...", due: "2025-01-31" }'
    ),
    "update": _tasks(
        'POST /api/tasks/actions/modify { taskListId: "...", taskId: "...", title: "New title" }'
    ),
    "delete": _tasks(
        'POST /api/tasks/actions/delete { taskListId: "...", taskId: "..." }'
    ),
    "complete": _tasks(
        'POST /api/tasks/actions/modify { taskListId: "...", taskId: "...", status: "completed" }'
    ),
    "reopen": _tasks(
        'POST /api/tasks/actions/modify { taskListId: "...", taskId: "...", status: "needsAction" }'
    ),
})


def redirect_error(domain: str, op: str, redirect: MigrationRedirect) -> ConciergeError:
    """The 410 error for a disabled operation."""
    extras: dict[str, object] = {"endpoints": dict(redirect.endpoints)}
    if redirect.hint:
        extras["hint"] = redirect.hint
    return ConciergeError(
        ErrorKind.DEPRECATED_OPERATION,
        f"Operation '{op}' is no longer available via /api/rpc/{domain}. "
        "Use the dedicated endpoint listed in 'endpoints'.",
        code=redirect.code,
        extras=extras,
    )
