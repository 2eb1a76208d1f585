"""
Error translator: one decision table for every domain.

Order matters:
1. re-authentication needed → 401 with requiresReauth
2. conflict → 409, attached conflicts/alternatives preserved
3. explicit status on the error → passed through
4. anything else → 500 with the domain's default code

Unexpected exceptions are logged with their traceback and answered with
a generic message; tracebacks never reach the response body.
"""

from typing import Mapping
from types import MappingProxyType

from logging_config import logger
from models import (
    AUTH_CODES,
    KIND_STATUS,
    STATUS_TITLES,
    ConciergeError,
    ErrorKind,
    RpcResponse,
)

DEFAULT_CODES: Mapping[str, str] = MappingProxyType({
    "mail": "MAIL_RPC_FAILED",
    "calendar": "CALENDAR_RPC_FAILED",
    "contacts": "CONTACTS_RPC_FAILED",
    "tasks": "TASKS_RPC_FAILED",
})

GENERIC_MESSAGE = "The request could not be completed. Please try again."


def _needs_reauth(error: ConciergeError) -> bool:
    return (
        error.requires_reauth
        or error.kind is ErrorKind.AUTH_REQUIRED
        or error.code in AUTH_CODES
    )


def translate_error(exc: BaseException, default_code: str) -> RpcResponse:
    """Map any exception to an `{ok: false, ...}` response."""
    if not isinstance(exc, ConciergeError):
        logger.error(f"Unhandled error ({default_code}): {exc!r}", exc_info=exc)
        return RpcResponse(
            status=500,
            body={
                "ok": False,
                "error": STATUS_TITLES[500],
                "message": GENERIC_MESSAGE,
                "code": default_code,
            },
        )

    body = exc.to_dict()

    if _needs_reauth(exc):
        status = 401
        body["requiresReauth"] = True
    elif exc.kind is ErrorKind.CONFLICT:
        status = 409
    elif exc.status_code is not None:
        status = exc.status_code
    elif exc.kind in (ErrorKind.INTERNAL, ErrorKind.UPSTREAM):
        logger.error(f"{exc.code}: {exc.message}")
        status = 500
        body["code"] = default_code if exc.kind is ErrorKind.INTERNAL else exc.code
        body["message"] = GENERIC_MESSAGE if exc.kind is ErrorKind.INTERNAL else exc.message
    else:
        status = KIND_STATUS[exc.kind]

    body["error"] = STATUS_TITLES.get(status, "Error")
    return RpcResponse(status=status, body=body)
