"""
ETag computation for conditional GETs.

The fingerprint is an md5 over canonical JSON (sorted keys, compact
separators), so key order in the payload never changes the result.
Per-call handles such as `snapshotToken` are left out of the
fingerprint: two aggregate runs over the same data share an ETag.
"""

import hashlib
import json
from typing import Any

# Keys minted fresh on every response, not part of the content
VOLATILE_KEYS = frozenset({"snapshotToken"})


def canonical_json(payload: Any) -> str:
    """Serialize with sorted keys and no insignificant whitespace."""
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def _content(payload: Any) -> Any:
    if isinstance(payload, dict):
        return {k: _content(v) for k, v in payload.items() if k not in VOLATILE_KEYS}
    if isinstance(payload, list):
        return [_content(item) for item in payload]
    return payload


def compute_etag(payload: Any) -> str:
    """Strong, quoted ETag for a JSON-able payload."""
    data = canonical_json(_content(payload)).encode("utf-8")
    digest = hashlib.md5(data, usedforsecurity=False)
    return f'"{digest.hexdigest()}"'


def check_etag_match(if_none_match: str | None, current_etag: str | None) -> bool:
    """
    True when an If-None-Match header matches the current ETag.

    Accepts a comma-separated list, weak validators (W/"...") and "*".
    An empty header or empty ETag never matches.
    """
    if not if_none_match or not current_etag:
        return False
    for candidate in if_none_match.split(","):
        candidate = candidate.strip()
        if candidate == "*":
            return True
        if candidate.startswith("W/"):
            candidate = candidate[2:]
        if candidate == current_etag:
            return True
    return False
