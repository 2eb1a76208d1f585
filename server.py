#!/usr/bin/env python3
"""
Concierge HTTP server

Backend-for-frontend between a conversational client and Google
Workspace (Gmail, Calendar, Tasks, a Sheets-backed contacts list).

Surfaces:
- POST /api/rpc/{mail,calendar,contacts,tasks}: one `{op, params}` endpoint per domain
- POST /api/contacts/actions/*, /api/tasks/actions/*: dedicated mutation facades
- GET /api/gmail/search, /api/calendar/events: list endpoints with ETag / 304
- GET|DELETE /api/debug/snapshots: snapshot diagnostics (opt-in)

Architecture:
- rpc/: normalizer, dispatchers, redirects, error translator
- actions/: mutation facades
- shaping/: aggregation engine, snapshots, ETags
- adapters/: thin Google API wrappers
- server.py: routing, auth extraction, response writing (this file)
"""

import asyncio
import contextlib
import os
from typing import Any, AsyncIterator, Awaitable, Callable

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from actions import ACTIONS
from backends import Backends
from limits_config import Limits
from logging_config import logger
from models import ConciergeError, ErrorKind, Identity, RpcResponse, invalid_param
from rpc import DISPATCHERS, RpcContext
from rpc.calendar import list_events
from rpc.errors import DEFAULT_CODES, translate_error
from rpc.mail import search
from shaping import AggregationEngine, SnapshotStore, WindowGate, check_etag_match, compute_etag
from shaping.aggregation import AggregateGate

IDEMPOTENCY_HEADER = "Idempotency-Key"
IDEMPOTENCY_BODY_KEY = "idempotency_key"
USER_EMAIL_HEADER = "X-User-Email"

# Query-string flags and numbers for the GET list endpoints
LIST_QUERY_KEYS = (
    "query", "q", "maxResults", "pageToken", "aggregate", "snapshotToken", "ignoreSnapshot",
    "timeMin", "timeMax",
)


def google_backends() -> Backends:
    """Google implementations of every backend."""
    from adapters.calendar import GoogleCalendarBackend
    from adapters.contacts import SheetsContactsBackend
    from adapters.gmail import GmailBackend
    from adapters.tasks import GoogleTasksBackend

    return Backends(
        mail=GmailBackend(),
        calendar=GoogleCalendarBackend(),
        contacts=SheetsContactsBackend(),
        tasks=GoogleTasksBackend(),
    )


def _debug_routes_enabled() -> bool:
    return os.environ.get("CONCIERGE_DEBUG_ROUTES", "").strip().lower() in ("1", "true", "yes")


# =============================================================================
# REQUEST HELPERS
# =============================================================================

def _identity(request: Request) -> Identity:
    """Bearer token (+ optional caller email) from the request headers."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise ConciergeError(
            ErrorKind.AUTH_REQUIRED,
            "Missing bearer token. Please sign in again.",
            code="AUTH_REQUIRED",
            requires_reauth=True,
        )
    email = request.headers.get(USER_EMAIL_HEADER, "").strip() or None
    return Identity(access_token=token.strip(), email=email)


async def _json_body(request: Request) -> Any:
    """Parsed JSON body, or None for an empty body."""
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return await request.json()
    except ValueError:
        raise invalid_param("Request body is not valid JSON")


def _context(request: Request, identity: Identity, body: Any = None) -> RpcContext:
    state = request.app.state
    key = request.headers.get(IDEMPOTENCY_HEADER)
    if not key and isinstance(body, dict) and isinstance(body.get(IDEMPOTENCY_BODY_KEY), str):
        key = body[IDEMPOTENCY_BODY_KEY]
    return RpcContext(
        identity=identity,
        backends=state.backends,
        limits=state.limits,
        engine=state.engine,
        idempotency_key=key.strip() if key and key.strip() else None,
    )


def _write(response: RpcResponse, ctx: RpcContext | None = None) -> JSONResponse:
    headers = dict(response.headers)
    if ctx is not None and ctx.idempotency_key:
        headers[IDEMPOTENCY_HEADER] = ctx.idempotency_key
        logger.debug(f"Idempotency-Key {ctx.idempotency_key} -> {response.status}")
    return JSONResponse(response.body, status_code=response.status, headers=headers)


def _with_etag(request: Request, response: RpcResponse) -> Response:
    """304 when If-None-Match matches the payload's ETag, else the payload with its ETag."""
    if response.status != 200:
        return _write(response)
    etag = compute_etag(response.body)
    if check_etag_match(request.headers.get("If-None-Match"), etag):
        return Response(status_code=304, headers={"ETag": etag})
    return JSONResponse(response.body, headers={"ETag": etag})


# =============================================================================
# ROUTES
# =============================================================================

def _rpc_route(domain: str) -> Callable[[Request], Awaitable[Response]]:
    dispatcher = DISPATCHERS[domain]

    async def endpoint(request: Request) -> Response:
        try:
            identity = _identity(request)
            body = await _json_body(request)
        except ConciergeError as exc:
            return _write(translate_error(exc, DEFAULT_CODES[domain]))
        ctx = _context(request, identity, body)
        return _write(await dispatcher(body, ctx), ctx)

    return endpoint


def _action_route(domain: str, name: str) -> Callable[[Request], Awaitable[Response]]:
    action = ACTIONS[domain][name]

    async def endpoint(request: Request) -> Response:
        try:
            identity = _identity(request)
            body = await _json_body(request)
        except ConciergeError as exc:
            return _write(translate_error(exc, action.default_code))
        ctx = _context(request, identity, body)
        return _write(await action(body, ctx), ctx)

    return endpoint


def _list_route(
    domain: str, handler: Callable[[RpcContext, dict[str, Any]], Awaitable[dict[str, Any]]]
) -> Callable[[Request], Awaitable[Response]]:

    async def endpoint(request: Request) -> Response:
        try:
            ctx = _context(request, _identity(request))
            params = {k: request.query_params[k] for k in LIST_QUERY_KEYS
                      if k in request.query_params}
            response = RpcResponse.success(await handler(ctx, params))
        except Exception as exc:
            response = translate_error(exc, DEFAULT_CODES[domain])
        return _with_etag(request, response)

    return endpoint


async def snapshot_diagnostics(request: Request) -> Response:
    return JSONResponse({"ok": True, "data": request.app.state.snapshots.diagnostics()})


async def snapshot_flush(request: Request) -> Response:
    removed = request.app.state.snapshots.flush()
    logger.info(f"Snapshot store flushed ({removed} entries)")
    return JSONResponse({"ok": True, "data": {"flushed": removed}})


async def health(request: Request) -> Response:
    return JSONResponse({"status": "ok", "snapshots": len(request.app.state.snapshots)})


# =============================================================================
# APPLICATION
# =============================================================================

def create_app(
    backends: Backends | None = None,
    limits: Limits | None = None,
    snapshots: SnapshotStore | None = None,
    gate: AggregateGate | None = None,
    debug_routes: bool | None = None,
) -> Starlette:
    """
    Build the ASGI app. Every collaborator is injectable for tests.

    Defaults: Google backends, limits from the environment, a fresh
    snapshot store, and a per-caller window gate on aggregate listings.
    """
    limits = limits or Limits.from_env()
    snapshots = snapshots or SnapshotStore(ttl_seconds=limits.snapshot_ttl_seconds)
    gate = gate or WindowGate(limits.rl_max_heavy_per_ip, limits.heavy_window_seconds)
    if debug_routes is None:
        debug_routes = _debug_routes_enabled()

    routes = [Route("/health", health, methods=["GET"])]
    routes += [
        Route(f"/api/rpc/{domain}", _rpc_route(domain), methods=["POST"])
        for domain in DISPATCHERS
    ]
    routes += [
        Route(f"/api/{domain}/actions/{name}", _action_route(domain, name), methods=["POST"])
        for domain, actions in ACTIONS.items()
        for name in actions
    ]
    routes += [
        Route("/api/gmail/search", _list_route("mail", search), methods=["GET"]),
        Route("/api/calendar/events", _list_route("calendar", list_events), methods=["GET"]),
    ]
    if debug_routes:
        routes += [
            Route("/api/debug/snapshots", snapshot_diagnostics, methods=["GET"]),
            Route("/api/debug/snapshots", snapshot_flush, methods=["DELETE"]),
        ]

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        sweeper = asyncio.create_task(snapshots.run_sweeper(limits.snapshot_sweep_seconds))
        try:
            yield
        finally:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper

    app = Starlette(routes=routes, lifespan=lifespan)
    app.state.backends = backends or google_backends()
    app.state.limits = limits
    app.state.snapshots = snapshots
    app.state.engine = AggregationEngine(snapshots=snapshots, limits=limits, gate=gate)
    return app
