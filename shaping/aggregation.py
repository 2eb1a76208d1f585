"""
Aggregation engine: single pages or capped multi-page listings.

Drives a domain's one-page list primitive either once (default) or in a
loop until a per-domain cap or upstream exhaustion, and returns a
ListEnvelope. Aggregate runs pass through a gate first and mint a
snapshot token for the query they ran.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol

from limits_config import Limits
from models import ConciergeError, ErrorKind, ListEnvelope, PageQuery, error_from_code
from shaping.snapshots import SnapshotStore

# page params -> {items_key: [...], "nextPageToken": str | None}
PageFetcher = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


class AggregateGate(Protocol):
    """Decides whether a heavy (aggregate) call may run."""

    def permit(self, caller: str) -> bool: ...


class AllowAllGate:
    """Gate that never refuses."""

    def permit(self, caller: str) -> bool:
        return True


class WindowGate:
    """
    Sliding-window counter per caller.

    At most max_calls permitted calls per window_seconds for each caller key.
    """

    def __init__(
        self,
        max_calls: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._calls: dict[str, deque[float]] = {}

    def permit(self, caller: str) -> bool:
        now = self._clock()
        calls = self._calls.setdefault(caller, deque())
        while calls and now - calls[0] >= self.window_seconds:
            calls.popleft()
        if len(calls) >= self.max_calls:
            return False
        calls.append(now)
        return True


@dataclass
class AggregationEngine:
    """Shared by the mail and calendar list paths."""
    snapshots: SnapshotStore
    limits: Limits
    gate: AggregateGate = field(default_factory=AllowAllGate)

    def page_size(self, requested: int | None) -> int:
        """Caller's page size clamped to [1, page_size_max]; default when unset."""
        if requested is None:
            return self.limits.page_size_default
        return max(1, min(requested, self.limits.page_size_max))

    async def run(
        self,
        fetch: PageFetcher,
        query: PageQuery,
        cap: int,
        caller: str,
        items_key: str = "items",
    ) -> ListEnvelope:
        """
        Resolve a snapshot token (if any), then list one page or aggregate.

        Raises:
            ConciergeError: 400 INVALID_SNAPSHOT_TOKEN for unknown/expired tokens,
                429 AGGREGATE_RATE_LIMITED when the gate refuses.
        """
        filters = dict(query.filters)

        if query.snapshot_token and not query.ignore_snapshot:
            snapshot = self.snapshots.get(query.snapshot_token)
            if snapshot is None:
                raise error_from_code(
                    "INVALID_SNAPSHOT_TOKEN",
                    "Invalid or expired snapshot token. Please start a new query.",
                    details={"hint": "Repeat the request without snapshotToken"},
                )
            return await self.aggregate(
                fetch, dict(snapshot.query), cap, caller, items_key, snapshot.token
            )

        if not query.aggregate:
            return await self.single_page(fetch, filters, query, items_key)
        return await self.aggregate(fetch, filters, cap, caller, items_key)

    async def single_page(
        self,
        fetch: PageFetcher,
        filters: dict[str, Any],
        query: PageQuery,
        items_key: str = "items",
    ) -> ListEnvelope:
        page = await fetch({
            **filters,
            "maxResults": self.page_size(query.max_results),
            "pageToken": query.page_token,
        })
        next_token = page.get("nextPageToken") or None
        return ListEnvelope(
            items=list(page.get(items_key) or []),
            has_more=bool(next_token),
            next_page_token=next_token,
        )

    async def aggregate(
        self,
        fetch: PageFetcher,
        filters: dict[str, Any],
        cap: int,
        caller: str,
        items_key: str = "items",
        snapshot_token: str | None = None,
    ) -> ListEnvelope:
        """
        Fetch fixed-size pages until `cap` items or the last page.

        The result never holds more than `cap` items. partial/hasMore are
        set when results were left behind: either upstream had another page
        when the cap was reached, or the last page overshot the cap.
        """
        if not self.gate.permit(caller):
            raise ConciergeError(
                ErrorKind.RATE_LIMITED,
                "Too many aggregate requests. Retry later or use single pages.",
                code="AGGREGATE_RATE_LIMITED",
                retryable=True,
            )

        items: list[Any] = []
        page_token: str | None = None
        pages = 0
        has_next = False

        while True:
            page = await fetch({
                **filters,
                "maxResults": self.limits.page_size_default,
                "pageToken": page_token,
            })
            pages += 1
            items.extend(page.get(items_key) or [])
            page_token = page.get("nextPageToken") or None
            has_next = page_token is not None
            if len(items) >= cap or not has_next:
                break

        truncated = len(items) > cap
        if truncated:
            del items[cap:]
        left_behind = len(items) >= cap and (has_next or truncated)

        if snapshot_token is None:
            snapshot_token = self.snapshots.create(filters, {"aggregate": True})

        return ListEnvelope(
            items=items,
            has_more=left_behind,
            aggregate=True,
            pages_consumed=pages,
            partial=left_behind,
            truncated=truncated,
            snapshot_token=snapshot_token,
        )
