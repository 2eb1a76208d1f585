"""
Shared test helpers for concierge.

Centralizes mock wiring patterns that repeat across test files.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock, seal

from backends import Backends
from limits_config import Limits
from models import Identity
from rpc.core import RpcContext
from shaping import AggregationEngine, AllowAllGate, SnapshotStore


def mock_api_chain(
    mock_service: MagicMock,
    chain: str,
    response: Any = None,
    *,
    side_effect: Any = None,
) -> MagicMock:
    """Set up a mock Google API response for a chained call.

    Navigates the MagicMock attribute chain and sets return_value (or side_effect)
    on the final method. Returns the final mock method for adding assertions.

    Args:
        mock_service: The mocked service object (from @patch)
        chain: Dot-separated chain. Each part except the last is treated as
               a callable method (traversed via .return_value).
               Examples: "users.messages.get.execute", "events.list.execute",
                         "spreadsheets.values.get.execute"
        response: The return value for the final method
        side_effect: Alternative to response; sets side_effect instead

    Examples:
        mock_api_chain(service, "events.get.execute", {"id": "e1"})
        # equivalent to: service.events().get().execute.return_value = {"id": "e1"}
    """
    parts = chain.split(".")
    obj = mock_service
    for part in parts[:-1]:
        obj = getattr(obj, part).return_value
    final = getattr(obj, parts[-1])
    if side_effect is not None:
        final.side_effect = side_effect
    elif response is not None:
        final.return_value = response
    return final


def seal_service(mock_service: MagicMock) -> None:
    """Seal a mock service after all mock_api_chain() calls.

    Prevents MagicMock from silently creating new attributes when
    production code renames an API method.
    """
    seal(mock_service)


def http_error(status: int, message: str = "error") -> Exception:
    """Exception shaped like googleapiclient.errors.HttpError."""
    exc = Exception(message)
    exc.resp = MagicMock()  # type: ignore[attr-defined]
    exc.resp.status = status  # type: ignore[attr-defined]
    return exc


def mock_backends() -> Backends:
    """Backends whose every method is an AsyncMock."""
    return Backends(
        mail=AsyncMock(),
        calendar=AsyncMock(),
        contacts=AsyncMock(),
        tasks=AsyncMock(),
    )


def make_context(
    backends: Backends | None = None,
    limits: Limits | None = None,
    snapshots: SnapshotStore | None = None,
    identity: Identity | None = None,
    gate: Any = None,
) -> RpcContext:
    """RpcContext wired with mocks and an always-open aggregate gate."""
    limits = limits or Limits.from_budget()
    snapshots = snapshots or SnapshotStore(ttl_seconds=limits.snapshot_ttl_seconds)
    return RpcContext(
        identity=identity or Identity(access_token="test-token", email="me@example.com"),
        backends=backends or mock_backends(),
        limits=limits,
        engine=AggregationEngine(snapshots=snapshots, limits=limits, gate=gate or AllowAllGate()),
    )


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
