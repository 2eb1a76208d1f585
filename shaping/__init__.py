"""
Shaping: response policies applied after a backend call.

- etag: content fingerprints for If-None-Match / 304
- snapshots: short-lived query handles for aggregate listings
- aggregation: single-page or capped multi-page list envelopes
"""

from .etag import compute_etag, check_etag_match
from .snapshots import SnapshotStore
from .aggregation import AggregationEngine, AllowAllGate, WindowGate

__all__ = [
    "compute_etag", "check_etag_match", "SnapshotStore",
    "AggregationEngine", "AllowAllGate", "WindowGate",
]
