"""
Snapshot store: short-lived handles for aggregate queries.

A snapshot remembers the query parameters (never the results) behind an
aggregate listing so a caller can repeat "the same logical query" after
the upstream page tokens are spent. One store is built at startup and
shared through the request context; expiry is enforced on lookup and by
a background sweep.
"""

import asyncio
import secrets
import time
from typing import Any, Callable

from logging_config import logger
from models import Snapshot

# Diagnostics never list more than this many entries
DIAGNOSTICS_MAX_ENTRIES = 20


class SnapshotStore:
    """
    Process-local, token-keyed snapshot cache with a fixed TTL.

    Single-key mutations use dict.pop(key, None) so a lookup that finds an
    expired entry and a concurrent sweep can both delete it without error.
    """

    def __init__(
        self,
        ttl_seconds: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, Snapshot] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, snapshot: Snapshot, now: float) -> bool:
        return now - snapshot.timestamp > self.ttl_seconds

    def create(self, query: dict[str, Any], data: dict[str, Any] | None = None) -> str:
        """Store a query and return its new opaque token."""
        token = secrets.token_hex(16)
        self._entries[token] = Snapshot(
            token=token,
            query=dict(query),
            data=dict(data or {}),
            timestamp=self._clock(),
        )
        return token

    def get(self, token: str | None) -> Snapshot | None:
        """Live snapshot for a token, or None when unknown or expired."""
        if not token:
            return None
        snapshot = self._entries.get(token)
        if snapshot is None:
            return None
        if self._expired(snapshot, self._clock()):
            self._entries.pop(token, None)
            return None
        return snapshot

    def sweep(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        expired = [t for t, s in list(self._entries.items()) if self._expired(s, now)]
        removed = 0
        for token in expired:
            if self._entries.pop(token, None) is not None:
                removed += 1
        return removed

    def flush(self) -> int:
        """Drop every entry. Returns how many were removed."""
        removed, self._entries = self._entries, {}
        return len(removed)

    def diagnostics(self) -> dict[str, Any]:
        """Operational view: counts and the oldest entries, tokens truncated."""
        now = self._clock()
        ttl_ms = int(self.ttl_seconds * 1000)
        entries = sorted(self._entries.values(), key=lambda s: s.timestamp)
        return {
            "active": len(entries),
            "ttlMs": ttl_ms,
            "entries": [
                {
                    "tokenPreview": s.token[:8],
                    "ageMs": int((now - s.timestamp) * 1000),
                    "expiresInMs": max(0, ttl_ms - int((now - s.timestamp) * 1000)),
                    "hasData": bool(s.data),
                }
                for s in entries[:DIAGNOSTICS_MAX_ENTRIES]
            ],
        }

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Sweep forever. Started as a task from the app lifespan."""
        while True:
            await asyncio.sleep(interval_seconds)
            removed = self.sweep()
            if removed:
                logger.debug(f"Snapshot sweep removed {removed} expired entries")
