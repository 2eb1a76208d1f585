"""
Request limits - Single Source of Truth

Every page size, cap and TTL is derived from one request budget
(calls per 15 minutes) so the limits stay proportional when the
budget changes. All values can be overridden from the environment.
"""

import math
import os
from dataclasses import dataclass


DEFAULT_REQUEST_BUDGET_15M = 600


def _env_int(name: str, default: int) -> int:
    """Read a positive integer from the environment, falling back on bad input."""
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class Limits:
    """Derived limits. Build with from_budget() or from_env()."""
    request_budget_15m: int
    rl_max_per_ip: int
    rl_max_heavy_per_ip: int
    page_size_default: int
    page_size_max: int
    batch_read_max_ids: int
    batch_read_concurrency: int = 3
    aggregate_cap_mail: int = 2000
    aggregate_cap_calendar: int = 4000
    snapshot_ttl_seconds: float = 120.0
    snapshot_sweep_seconds: float = 60.0
    heavy_window_seconds: float = 15 * 60.0

    @classmethod
    def from_budget(cls, budget: int = DEFAULT_REQUEST_BUDGET_15M, **overrides: object) -> "Limits":
        """
        Derive limits from a 15-minute request budget.

        With the default budget of 600: 150 heavy calls, pages of 100 (max 200),
        50 ids per batch read.
        """
        values: dict[str, object] = {
            "request_budget_15m": budget,
            "rl_max_per_ip": budget,
            "rl_max_heavy_per_ip": math.ceil(budget / 4),
            "page_size_default": min(100, math.ceil(budget / 6)),
            "page_size_max": min(200, math.ceil(budget / 3)),
            "batch_read_max_ids": max(1, min(50, budget // 12)),
        }
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]

    @classmethod
    def from_env(cls) -> "Limits":
        """Read REQUEST_BUDGET_15M and the per-limit overrides."""
        budget = _env_int("REQUEST_BUDGET_15M", DEFAULT_REQUEST_BUDGET_15M)
        return cls.from_budget(
            budget,
            batch_read_concurrency=_env_int("BATCH_READ_CONCURRENCY", 3),
            aggregate_cap_mail=_env_int("AGGREGATE_CAP_MAIL", 2000),
            aggregate_cap_calendar=_env_int("AGGREGATE_CAP_CAL", 4000),
            snapshot_ttl_seconds=float(_env_int("SNAPSHOT_TTL_SECONDS", 120)),
        )
