"""
Shared pytest fixtures for concierge tests.

Backends are AsyncMocks; nothing here talks to Google.
"""

import pytest

from backends import Backends
from limits_config import Limits
from models import Identity
from rpc.core import RpcContext
from shaping import SnapshotStore

from tests.helpers import FakeClock, make_context, mock_backends


@pytest.fixture
def limits() -> Limits:
    """Limits derived from the default budget (600 calls / 15 min)."""
    return Limits.from_budget()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def snapshots(clock: FakeClock) -> SnapshotStore:
    return SnapshotStore(ttl_seconds=120.0, clock=clock)


@pytest.fixture
def identity() -> Identity:
    return Identity(access_token="test-token", email="me@example.com")


@pytest.fixture
def backends() -> Backends:
    return mock_backends()


@pytest.fixture
def ctx(backends: Backends, limits: Limits, snapshots: SnapshotStore, identity: Identity) -> RpcContext:
    """RpcContext over mocked backends."""
    return make_context(backends=backends, limits=limits, snapshots=snapshots, identity=identity)
