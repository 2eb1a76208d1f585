"""
Type definitions for concierge.

Dataclasses defining the contracts between layers:
- The RPC normalizer produces OperationRequest from raw JSON bodies
- Dispatchers parse params into one typed object per operation
- Backends return plain JSON-able mappings
- The shaping layer wraps list results in ListEnvelope

These types make the normalizer→dispatcher→backend contract explicit.
"""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


# ============================================================================
# ERROR TYPES
# ============================================================================

class ErrorKind(Enum):
    """Categories of errors for consistent handling."""
    INVALID_INPUT = "invalid_input"          # Missing or malformed params
    AUTH_REQUIRED = "auth_required"          # Credential expired or missing
    PERMISSION_DENIED = "permission_denied"  # Upstream refused access
    NOT_FOUND = "not_found"                  # Resource doesn't exist
    CONFLICT = "conflict"                    # Scheduling or uniqueness conflict
    DEPRECATED_OPERATION = "deprecated_operation"  # Moved to a dedicated endpoint
    RATE_LIMITED = "rate_limited"            # Quota or heavy-call gate
    NOT_IMPLEMENTED = "not_implemented"      # Known-missing sub-operation
    UPSTREAM = "upstream"                    # Google API or network failure (500)
    INTERNAL = "internal"                    # Unexpected error


KIND_STATUS: Mapping[ErrorKind, int] = MappingProxyType({
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.AUTH_REQUIRED: 401,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.DEPRECATED_OPERATION: 410,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.INTERNAL: 500,
    ErrorKind.NOT_IMPLEMENTED: 501,
    ErrorKind.UPSTREAM: 500,
})

STATUS_TITLES: Mapping[int, str] = MappingProxyType({
    400: "Bad request",
    401: "Authentication required",
    403: "Forbidden",
    404: "Not found",
    409: "Conflict",
    410: "Gone",
    429: "Too many requests",
    500: "Internal server error",
    501: "Not implemented",
})

_STATUS_KIND = {
    status: kind for kind, status in KIND_STATUS.items() if kind is not ErrorKind.UPSTREAM
}

# Machine codes with a fixed status. Codes not listed fall back to their kind.
ERROR_CATALOG: Mapping[str, int] = MappingProxyType({
    "INVALID_PARAM": 400,
    "INVALID_TIME_FORMAT": 400,
    "CONFIRM_SELF_SEND_REQUIRED": 400,
    "INVALID_SNAPSHOT_TOKEN": 400,
    "DEDUPE_STRATEGY_UNSUPPORTED": 400,
    "CONTACT_NAME_AND_EMAIL_REQUIRED": 400,
    "CONTACT_IDENTIFIER_REQUIRED": 400,
    "CONTACT_BULK_TARGET_REQUIRED": 400,
    "AUTH_REQUIRED": 401,
    "GOOGLE_UNAUTHORIZED": 401,
    "REAUTH_REQUIRED": 401,
    "GOOGLE_FORBIDDEN": 403,
    "CONTACT_NOT_FOUND": 404,
    "TASK_NOT_FOUND": 404,
    "CALENDAR_CONFLICT": 409,
    "AMBIGUOUS_DELETE": 409,
    "CONTACTS_RPC_MUTATION_DISABLED": 410,
    "TASKS_RPC_MUTATION_DISABLED": 410,
    "GOOGLE_QUOTA_EXCEEDED": 429,
    "AGGREGATE_RATE_LIMITED": 429,
    "UNDEFINED_RESULT": 500,
    "NOT_IMPLEMENTED": 501,
    "GOOGLE_API_ERROR": 500,
})

# Codes that always mean the caller must re-authenticate
AUTH_CODES = frozenset({"AUTH_REQUIRED", "GOOGLE_UNAUTHORIZED", "REAUTH_REQUIRED"})


class ConciergeError(Exception):
    """
    Structured error for consistent handling across layers.

    Adapters raise these on API failures (converted by @with_retry).
    Dispatchers raise them on validation failures.
    The error translator turns them into HTTP responses.

    Inherits from Exception so it can be raised.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        requires_reauth: bool = False,
        extras: dict[str, Any] | None = None,
        status_code: int | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code or kind.name
        self.details = details or {}
        self.requires_reauth = requires_reauth
        self.extras = extras or {}
        self.status_code = status_code
        self.retryable = retryable

    @property
    def status(self) -> int:
        """HTTP status this error maps to when nothing overrides it."""
        if self.status_code is not None:
            return self.status_code
        return KIND_STATUS[self.kind]

    def to_dict(self) -> dict[str, Any]:
        """Convert to the `{ok: false, ...}` response body."""
        body: dict[str, Any] = {
            "ok": False,
            "error": STATUS_TITLES.get(self.status, "Error"),
            "message": self.message,
            "code": self.code,
        }
        if self.details:
            body["details"] = self.details
        if self.requires_reauth:
            body["requiresReauth"] = True
        body.update(self.extras)
        return body


def invalid_param(
    message: str,
    code: str = "INVALID_PARAM",
    expected_format: Any = None,
    details: dict[str, Any] | None = None,
) -> ConciergeError:
    """Build a 400 validation error. `expected_format` is echoed as `expectedFormat`."""
    extras = {"expectedFormat": expected_format} if expected_format is not None else None
    return ConciergeError(
        ErrorKind.INVALID_INPUT, message, code=code, details=details, extras=extras
    )


def error_from_code(
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    extras: dict[str, Any] | None = None,
) -> ConciergeError:
    """
    Build an error whose status comes from ERROR_CATALOG.

    Unknown codes become INTERNAL (500).
    """
    status = ERROR_CATALOG.get(code, 500)
    kind = _STATUS_KIND.get(status, ErrorKind.INTERNAL)
    return ConciergeError(
        kind,
        message,
        code=code,
        details=details,
        extras=extras,
        requires_reauth=code in AUTH_CODES,
        status_code=status,
    )


# ============================================================================
# REQUEST / RESPONSE TYPES
# ============================================================================

@dataclass(frozen=True)
class Identity:
    """The authenticated caller: a delegated Google access token."""
    access_token: str
    email: str | None = None

    @property
    def key(self) -> str:
        """Stable, non-reversible identifier for logs and per-caller limits."""
        return hashlib.sha256(self.access_token.encode("utf-8")).hexdigest()[:16]


@dataclass
class OperationRequest:
    """
    Canonical `{op, params}` shape produced by the normalizer.

    params is None when the caller supplied neither a nested params object
    nor any forwardable root-level key.
    """
    op: str
    params: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.params is None:
            return {"op": self.op}
        return {"op": self.op, "params": self.params}


@dataclass
class RpcResponse:
    """Status + JSON body (+ headers) returned by every dispatcher."""
    status: int
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def success(cls, data: Any) -> "RpcResponse":
        return cls(status=200, body={"ok": True, "data": data})


@dataclass(frozen=True)
class MigrationRedirect:
    """Static `410 Gone` descriptor pointing a disabled RPC mutation at its facade."""
    code: str
    endpoints: Mapping[str, str]
    hint: str | None = None


@dataclass
class Snapshot:
    """Stored aggregate query, keyed by an opaque token."""
    token: str
    query: dict[str, Any]
    data: dict[str, Any]
    timestamp: float


@dataclass
class ListEnvelope:
    """
    Uniform list response.

    Single-page mode fills items/has_more/next_page_token.
    Aggregate mode also fills pages_consumed/partial/snapshot_token.
    """
    items: list[Any]
    has_more: bool
    next_page_token: str | None = None
    aggregate: bool = False
    pages_consumed: int = 0
    partial: bool = False
    truncated: bool = False
    snapshot_token: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if not self.aggregate:
            return {
                "items": self.items,
                "hasMore": self.has_more,
                "nextPageToken": self.next_page_token,
            }
        return {
            "items": self.items,
            "totalExact": len(self.items),
            "hasMore": self.has_more,
            "partial": self.partial,
            "truncated": self.truncated,
            "pagesConsumed": self.pages_consumed,
            "snapshotToken": self.snapshot_token,
        }


# ============================================================================
# PAGINATION PARAMS
# ============================================================================

@dataclass
class PageQuery:
    """Paging controls shared by every list operation."""
    filters: dict[str, Any]            # Domain query (q, timeMin, ...)
    max_results: int | None = None
    page_token: str | None = None
    aggregate: bool = False
    snapshot_token: str | None = None
    ignore_snapshot: bool = False


# ============================================================================
# MAIL PARAMS
# ============================================================================

@dataclass
class MessageDraft:
    """Outgoing message fields. Optional fields are forwarded only when set."""
    to: str
    subject: str
    body: str
    cc: str | None = None
    bcc: str | None = None
    thread_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"to": self.to, "subject": self.subject, "body": self.body}
        if self.cc:
            payload["cc"] = self.cc
        if self.bcc:
            payload["bcc"] = self.bcc
        if self.thread_id:
            payload["threadId"] = self.thread_id
        return payload


@dataclass
class ReadParams:
    ids: list[str]
    search_query: str | None
    format: str = "full"


@dataclass
class SendDraftParams:
    """Send an existing draft."""
    draft_id: str


@dataclass
class SendMessageParams:
    """Send a new message built from to + subject + body."""
    message: MessageDraft
    to_self: bool = False
    confirm_self_send: bool = False


@dataclass
class UpdateDraftParams:
    draft_id: str
    message: MessageDraft


@dataclass
class ReplyParams:
    message_id: str
    body: str
    reply_all: bool = False
    cc: str | None = None


@dataclass
class ModifyParams:
    ids: list[str]
    add: list[str]
    remove: list[str]


@dataclass
class AttachmentPreviewParams:
    message_id: str
    attachment_id: str
    mode: str
    max_kb: int = 256
    max_rows: int = 200
    delimiter: str = "auto"


@dataclass
class LabelsParams:
    """One of list/resolve/modify/create, selected by `action`."""
    action: str
    names: list[str] = field(default_factory=list)
    ids: list[str] = field(default_factory=list)
    add: list[str] = field(default_factory=list)
    remove: list[str] = field(default_factory=list)
    create: dict[str, Any] = field(default_factory=dict)


# ============================================================================
# CALENDAR PARAMS
# ============================================================================

@dataclass
class EventWriteParams:
    """Create (event_id None) or update (event_id set) of a calendar event."""
    event: dict[str, Any]
    event_id: str | None = None
    check_conflicts: bool = False
    force: bool = False


@dataclass
class ConflictWindow:
    start: str
    end: str
    exclude_event_id: str | None = None


# ============================================================================
# CONTACTS TYPES
# ============================================================================

@dataclass
class Contact:
    """One row of the contacts spreadsheet (Name|Email|Notes|RealEstate|Phone)."""
    name: str
    email: str
    notes: str = ""
    real_estate: str = ""
    phone: str = ""
    row_index: int | None = None  # 1-based sheet row, header is row 1

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "email": self.email,
            "notes": self.notes,
            "realEstate": self.real_estate,
            "phone": self.phone,
        }
        if self.row_index is not None:
            data["rowIndex"] = self.row_index
        return data


@dataclass
class BulkDeleteTarget:
    """Either emails or row ids; `mode` names which."""
    mode: str
    emails: list[str] = field(default_factory=list)
    row_ids: list[int] = field(default_factory=list)


# ============================================================================
# TASKS TYPES
# ============================================================================

@dataclass
class TaskRef:
    task_list_id: str
    task_id: str


# Field names callers use for the same ids
TASK_LIST_ID_ALIASES = ("taskListId", "tasklistId", "listId", "list_id")
TASK_ID_ALIASES = ("taskId", "task_id", "id")

# Tasks API page size ceiling
MAX_TASK_RESULTS = 100


@dataclass
class TaskListParams:
    """Validated filters for a tasks listing; task_list_id narrows to one list."""
    task_list_id: str | None = None
    max_results: int = MAX_TASK_RESULTS
    show_completed: bool | None = None
    show_hidden: bool | None = None
    due_min: str | None = None
    due_max: str | None = None
    page_token: str | None = None

    def to_params(self) -> dict[str, Any]:
        params = {
            "taskListId": self.task_list_id,
            "maxResults": self.max_results,
            "showCompleted": self.show_completed,
            "showHidden": self.show_hidden,
            "dueMin": self.due_min,
            "dueMax": self.due_max,
            "pageToken": self.page_token,
        }
        return {k: v for k, v in params.items() if v is not None}
