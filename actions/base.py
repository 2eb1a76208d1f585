"""
Facade plumbing shared by the contacts and tasks actions.

Each facade takes a flat JSON body, returns an `{ok: true, ...}` body,
and shares the RPC error translator.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from logging_config import log_rpc
from models import RpcResponse, invalid_param
from rpc.core import RpcContext
from rpc.errors import translate_error

ActionHandler = Callable[[RpcContext, dict[str, Any] | None], Awaitable[dict[str, Any]]]


def action_payload(body: Any) -> dict[str, Any] | None:
    """
    Flatten a facade body. Root keys win over a nested `params` object.

    Returns None when the caller sent nothing at all.
    """
    if body is None:
        return None
    if not isinstance(body, dict):
        raise invalid_param("Request body must be a JSON object")
    nested = body.get("params")
    payload = dict(nested) if isinstance(nested, dict) else {}
    payload.update((k, v) for k, v in body.items() if k != "params")
    return payload or None


@dataclass(frozen=True)
class Action:
    """One facade endpoint: a handler plus the code used for unexpected failures."""
    domain: str
    name: str
    handler: ActionHandler
    default_code: str

    async def __call__(self, body: Any, ctx: RpcContext) -> RpcResponse:
        try:
            result = await self.handler(ctx, action_payload(body))
            response = RpcResponse(status=200, body={"ok": True, **result})
        except Exception as exc:
            response = translate_error(exc, self.default_code)
        log_rpc(f"{self.domain}.actions", self.name, response.status, ctx.identity.key)
        return response
