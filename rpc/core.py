"""
Dispatcher core shared by the four RPC domains.

A Dispatcher owns a closed table of operation handlers plus the
redirect table for disabled mutations. Each call is one independent
transaction: normalize, redirect-or-dispatch, wrap, translate errors.
"""

import asyncio
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterable, Mapping, TypeVar

from backends import Backends
from limits_config import Limits
from logging_config import log_rpc
from models import (
    Identity,
    MigrationRedirect,
    PageQuery,
    RpcResponse,
    error_from_code,
    invalid_param,
)
from rpc.deprecation import redirect_error
from rpc.errors import DEFAULT_CODES, translate_error
from rpc.normalizer import normalize_request
from shaping.aggregation import AggregationEngine
from validation import coerce_bool, optional_int, trimmed

T = TypeVar("T")


@dataclass
class RpcContext:
    """Everything a handler may touch for one request."""
    identity: Identity
    backends: Backends
    limits: Limits
    engine: AggregationEngine
    idempotency_key: str | None = None


Handler = Callable[[RpcContext, dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class Dispatcher:
    domain: str
    handlers: Mapping[str, Handler]
    root_keys: frozenset[str]
    redirects: Mapping[str, MigrationRedirect] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def operations(self) -> frozenset[str]:
        """Every op name this domain recognizes, disabled ones included."""
        return frozenset(self.handlers) | frozenset(self.redirects)

    async def __call__(self, body: Any, ctx: RpcContext) -> RpcResponse:
        op: str | None = None
        try:
            request = normalize_request(body, self.root_keys)
            op = request.op

            # Disabled mutations short-circuit before any validation
            redirect = self.redirects.get(op)
            if redirect is not None:
                raise redirect_error(self.domain, op, redirect)

            handler = self.handlers.get(op)
            if handler is None:
                raise invalid_param(
                    f"Unknown operation: {op}. "
                    f"Supported: {', '.join(sorted(self.handlers))}"
                )

            result = await handler(ctx, request.params if request.params is not None else {})
            if result is None:
                raise error_from_code(
                    "UNDEFINED_RESULT",
                    f"Operation '{op}' produced no result. Check the required parameters.",
                    details={"op": op},
                )
            response = RpcResponse.success(result)
        except Exception as exc:
            response = translate_error(exc, DEFAULT_CODES[self.domain])

        log_rpc(self.domain, op, response.status, ctx.identity.key)
        return response


async def gather_bounded(calls: Iterable[Callable[[], Awaitable[T]]], limit: int) -> list[T]:
    """
    Await every call with at most `limit` in flight.

    Results come back in input order. The first failure propagates.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def run(call: Callable[[], Awaitable[T]]) -> T:
        async with semaphore:
            return await call()

    return list(await asyncio.gather(*(run(call) for call in calls)))


def parse_page_query(params: Mapping[str, Any], filters: dict[str, Any]) -> PageQuery:
    """Paging controls common to every list operation."""
    return PageQuery(
        filters={k: v for k, v in filters.items() if v is not None},
        max_results=optional_int(params, "maxResults"),
        page_token=trimmed(params.get("pageToken")),
        aggregate=coerce_bool(params.get("aggregate")),
        snapshot_token=trimmed(params.get("snapshotToken")),
        ignore_snapshot=coerce_bool(params.get("ignoreSnapshot")),
    )
