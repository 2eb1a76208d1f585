"""
Tests for the snapshot store.
"""

import pytest

from shaping.snapshots import DIAGNOSTICS_MAX_ENTRIES, SnapshotStore

from tests.helpers import FakeClock


class TestSnapshotStore:

    def test_create_and_get(self, snapshots: SnapshotStore) -> None:
        token = snapshots.create({"query": "is:unread"})
        snapshot = snapshots.get(token)
        assert snapshot is not None
        assert snapshot.query == {"query": "is:unread"}
        assert len(snapshots) == 1

    def test_stored_query_is_a_copy(self, snapshots: SnapshotStore) -> None:
        query = {"query": "a"}
        token = snapshots.create(query)
        query["query"] = "b"
        assert snapshots.get(token).query == {"query": "a"}

    def test_tokens_are_unique(self, snapshots: SnapshotStore) -> None:
        assert snapshots.create({}) != snapshots.create({})

    def test_unknown_token(self, snapshots: SnapshotStore) -> None:
        assert snapshots.get("nope") is None
        assert snapshots.get(None) is None

    def test_expired_on_lookup(self, snapshots: SnapshotStore, clock: FakeClock) -> None:
        token = snapshots.create({"q": 1})
        clock.advance(119)
        assert snapshots.get(token) is not None
        clock.advance(2)
        assert snapshots.get(token) is None
        assert len(snapshots) == 0

    def test_sweep_removes_only_expired(self, snapshots: SnapshotStore, clock: FakeClock) -> None:
        old = snapshots.create({"q": "old"})
        clock.advance(100)
        fresh = snapshots.create({"q": "fresh"})
        clock.advance(30)
        assert snapshots.sweep() == 1
        assert snapshots.get(old) is None
        assert snapshots.get(fresh) is not None

    def test_flush(self, snapshots: SnapshotStore) -> None:
        snapshots.create({})
        snapshots.create({})
        assert snapshots.flush() == 2
        assert len(snapshots) == 0

    def test_diagnostics(self, snapshots: SnapshotStore, clock: FakeClock) -> None:
        token = snapshots.create({"q": 1}, {"aggregate": True})
        clock.advance(20)
        diag = snapshots.diagnostics()
        assert diag["active"] == 1
        assert diag["ttlMs"] == 120_000
        entry = diag["entries"][0]
        assert entry["tokenPreview"] == token[:8]
        assert entry["ageMs"] == 20_000
        assert entry["expiresInMs"] == 100_000
        assert entry["hasData"] is True

    def test_diagnostics_bounded(self, snapshots: SnapshotStore) -> None:
        for _ in range(DIAGNOSTICS_MAX_ENTRIES + 5):
            snapshots.create({})
        diag = snapshots.diagnostics()
        assert diag["active"] == DIAGNOSTICS_MAX_ENTRIES + 5
        assert len(diag["entries"]) == DIAGNOSTICS_MAX_ENTRIES

    @pytest.mark.asyncio
    async def test_sweeper_runs(self, clock: FakeClock, monkeypatch) -> None:
        store = SnapshotStore(ttl_seconds=1.0, clock=clock)
        store.create({})
        clock.advance(5)
        calls = []

        async def fake_sleep(seconds: float) -> None:
            calls.append(seconds)
            if len(calls) > 1:
                raise RuntimeError("stop")

        monkeypatch.setattr("shaping.snapshots.asyncio.sleep", fake_sleep)
        with pytest.raises(RuntimeError):
            await store.run_sweeper(60)
        assert len(store) == 0
        assert calls == [60, 60]
