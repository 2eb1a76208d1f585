"""
Input validation and value normalization utilities.

Handles:
- Trimming and requiring string fields from loosely-typed params
- Numeric and boolean coercion for fields declared numeric/boolean
- Field-name aliases (listId vs taskListId, realestate vs realEstate)
- Task due-date normalization to RFC 3339
- Gmail query sanitizing

All failures raise ConciergeError (400 INVALID_PARAM) via invalid_param().
"""

import re
from typing import Any, Iterable, Mapping

from models import invalid_param

# =============================================================================
# PATTERNS
# =============================================================================

DATE_ONLY_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
NUMERIC_PATTERN = re.compile(r'^-?\d+$')

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})


# =============================================================================
# STRINGS
# =============================================================================

def trimmed(value: Any) -> str | None:
    """Strip a string; empty or non-string values become None."""
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def require_string(params: Mapping[str, Any], key: str, trim: bool = True) -> str:
    """
    Return a mandatory non-empty string field.

    With trim=False the value is returned as supplied, but must still
    contain something other than whitespace.
    """
    value = params.get(key)
    if value is None:
        raise invalid_param(f"Missing required field: {key}")
    if not isinstance(value, str):
        raise invalid_param(f"Field '{key}' must be a string")
    if not value.strip():
        raise invalid_param(f"Field '{key}' must not be empty")
    return value.strip() if trim else value


def optional_string(params: Mapping[str, Any], key: str) -> str | None:
    """Trimmed optional string; None when absent or blank."""
    value = params.get(key)
    if value is not None and not isinstance(value, str):
        raise invalid_param(f"Field '{key}' must be a string")
    return trimmed(value)


def missing_fields(params: Mapping[str, Any], keys: Iterable[str]) -> list[str]:
    """Names of keys that are absent or blank after trim."""
    missing = []
    for key in keys:
        value = params.get(key)
        if isinstance(value, str):
            if not value.strip():
                missing.append(key)
        elif value is None:
            missing.append(key)
    return missing


# =============================================================================
# COERCION
# =============================================================================

def coerce_int(value: Any, field: str) -> int:
    """
    Coerce a numeric-looking value to int.

    Accepts ints and digit strings ("5", " 12 "). Rejects bools, floats
    with a fraction, and anything else.
    """
    if isinstance(value, bool):
        raise invalid_param(f"Field '{field}' must be a number")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and NUMERIC_PATTERN.match(value.strip()):
        return int(value.strip())
    raise invalid_param(f"Field '{field}' must be a number")


def optional_int(params: Mapping[str, Any], key: str) -> int | None:
    value = params.get(key)
    if value is None or value == "":
        return None
    return coerce_int(value, key)


def coerce_bool(value: Any) -> bool:
    """Truthiness for flags that may arrive as strings from query params."""
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def string_list(value: Any, field: str) -> list[str]:
    """
    Normalize a list-of-strings field.

    A bare string is treated as a one-element list. Items are trimmed and
    blanks dropped. Non-string items are rejected.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise invalid_param(f"Field '{field}' must be an array of strings")
    items: list[str] = []
    for item in value:
        if isinstance(item, (int, float)) and not isinstance(item, bool):
            item = str(item)
        if not isinstance(item, str):
            raise invalid_param(f"Field '{field}' must be an array of strings")
        if item.strip():
            items.append(item.strip())
    return items


def first_present(params: Mapping[str, Any], aliases: Iterable[str]) -> Any:
    """Value of the first alias present with a non-null value."""
    for alias in aliases:
        value = params.get(alias)
        if value is not None:
            return value
    return None


# =============================================================================
# DATES
# =============================================================================

def normalize_due_date(value: Any) -> str | None:
    """
    Normalize a task due date to RFC 3339 as Google Tasks expects.

    Example:
        >>> normalize_due_date("2024-05-01")
        '2024-05-01T00:00:00.000Z'
        >>> normalize_due_date("2024-05-01T09:30:00")
        '2024-05-01T09:30:00.000Z'
    """
    text = trimmed(value)
    if text is None:
        return None
    if DATE_ONLY_PATTERN.match(text):
        return f"{text}T00:00:00.000Z"
    if text.endswith("Z") or "+" in text:
        return text
    if "T" not in text:
        return f"{text}T00:00:00.000Z"
    if "." not in text:
        return f"{text}.000Z"
    return f"{text}Z"


# =============================================================================
# SEARCH QUERY SANITIZING
# =============================================================================

def sanitize_gmail_query(query: str) -> str:
    """
    Sanitize user input for Gmail search queries.

    Gmail search supports operators (from:, subject:, is:, etc.) which users
    should be able to use. We only strip control characters and null bytes
    that could cause issues.

    Example:
        >>> sanitize_gmail_query("from:alice subject:meeting")
        'from:alice subject:meeting'
    """
    if not query:
        return query

    # Strip control characters (ASCII 0-31 except tab, newline, carriage return)
    # and DEL (127). Gmail handles these poorly.
    return ''.join(
        ch for ch in query
        if ch in '\t\n\r' or (ord(ch) >= 32 and ord(ch) != 127)
    ).strip()
