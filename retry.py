"""
Retry decorator with exponential backoff for Google API calls.

Adapters wrap each call with @with_retry. Transient failures (network,
429, 5xx, ConciergeError.retryable) are retried; everything else fails
on the first attempt. The final failure leaves as a ConciergeError so
the error translator only ever sees the closed error type.
"""

import asyncio
import inspect
import time
from functools import wraps
from typing import TypeVar, Callable, Any, ParamSpec, Awaitable, cast

from logging_config import logger, log_retry
from models import ConciergeError, ErrorKind

T = TypeVar("T")
P = ParamSpec("P")


RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (ConnectionError, TimeoutError)

# 429 plus the 5xx codes Google documents as transient
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

# status -> (kind, code, retryable); 401 and 403 are handled separately
_STATUS_ERRORS: dict[int, tuple[ErrorKind, str, bool]] = {
    400: (ErrorKind.INVALID_INPUT, "GOOGLE_BAD_REQUEST", False),
    404: (ErrorKind.NOT_FOUND, "NOT_FOUND", False),
    409: (ErrorKind.CONFLICT, "CONFLICT", False),
    429: (ErrorKind.RATE_LIMITED, "GOOGLE_QUOTA_EXCEEDED", True),
}

_QUOTA_MARKERS = ("quota", "rate limit")


def _get_http_status(exception: Exception) -> int | None:
    """
    HTTP status of a failed call, if the exception carries one.

    googleapiclient's HttpError exposes it as resp.status; requests-style
    errors as status_code.
    """
    resp = getattr(exception, "resp", None)
    for status in (getattr(resp, "status", None), getattr(exception, "status_code", None)):
        if isinstance(status, int):
            return status
    return None


def _should_retry(exception: Exception) -> bool:
    if isinstance(exception, ConciergeError):
        return exception.retryable
    if isinstance(exception, RETRYABLE_EXCEPTIONS):
        return True
    return _get_http_status(exception) in RETRYABLE_STATUS_CODES


def _convert_to_concierge_error(exception: Exception) -> ConciergeError:
    """Map a raw client exception onto the ConciergeError taxonomy."""
    if isinstance(exception, ConciergeError):
        return exception

    message = str(exception)
    status = _get_http_status(exception)

    if status == 401:
        return ConciergeError(
            ErrorKind.AUTH_REQUIRED,
            "Google authorization expired or was revoked. Please sign in again.",
            code="GOOGLE_UNAUTHORIZED",
            requires_reauth=True,
        )
    if status == 403:
        # Google reports per-user quota exhaustion as 403
        if any(marker in message.lower() for marker in _QUOTA_MARKERS):
            return ConciergeError(
                ErrorKind.RATE_LIMITED, message, code="GOOGLE_QUOTA_EXCEEDED", retryable=True
            )
        return ConciergeError(ErrorKind.PERMISSION_DENIED, message, code="GOOGLE_FORBIDDEN")
    if status in _STATUS_ERRORS:
        kind, code, retryable = _STATUS_ERRORS[status]
        return ConciergeError(kind, message, code=code, retryable=retryable)
    if status is not None and status >= 500:
        return ConciergeError(ErrorKind.UPSTREAM, message, code="GOOGLE_API_ERROR", retryable=True)

    if isinstance(exception, RETRYABLE_EXCEPTIONS):
        return ConciergeError(ErrorKind.UPSTREAM, message, code="NETWORK_ERROR", retryable=True)

    return ConciergeError(ErrorKind.INTERNAL, message, code="INTERNAL_ERROR")


def _next_wait_ms(
    func_name: str,
    exc: Exception,
    attempt: int,
    max_attempts: int,
    delay_ms: int,
    backoff_multiplier: float,
) -> int | None:
    """Backoff before the next attempt, or None when the failure is final."""
    if not _should_retry(exc) or attempt >= max_attempts - 1:
        logger.error(f"{func_name} failed after {attempt + 1} attempts: {exc}")
        return None
    wait_ms = int(delay_ms * (backoff_multiplier ** attempt))
    log_retry(attempt + 1, max_attempts, wait_ms, str(exc))
    return wait_ms


def with_retry(
    max_attempts: int = 3,
    delay_ms: int = 1000,
    backoff_multiplier: float = 2.0,
    convert_errors: bool = True,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Retry decorator with exponential backoff. Works on sync and async callables.

    Args:
        max_attempts: Maximum number of attempts (first call included)
        delay_ms: Initial delay in milliseconds
        backoff_multiplier: Multiplier for exponential backoff
        convert_errors: Convert exceptions to ConciergeError on final failure

    Example:
        @with_retry(max_attempts=3, delay_ms=1000)
        async def list_labels(self, identity):
            ...
    """

    def _give_up(exc: Exception) -> Exception | None:
        """Replacement exception to raise, or None to re-raise exc as is."""
        if not convert_errors:
            return None
        converted = _convert_to_concierge_error(exc)
        return None if converted is exc else converted

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(max_attempts):
                try:
                    return await cast(Awaitable[T], func(*args, **kwargs))
                except Exception as e:
                    wait_ms = _next_wait_ms(
                        func.__name__, e, attempt, max_attempts, delay_ms, backoff_multiplier
                    )
                    if wait_ms is None:
                        replacement = _give_up(e)
                        if replacement is None:
                            raise
                        raise replacement from e
                    await asyncio.sleep(wait_ms / 1000)
            raise AssertionError("unreachable")

        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    wait_ms = _next_wait_ms(
                        func.__name__, e, attempt, max_attempts, delay_ms, backoff_multiplier
                    )
                    if wait_ms is None:
                        replacement = _give_up(e)
                        if replacement is None:
                            raise
                        raise replacement from e
                    time.sleep(wait_ms / 1000)
            raise AssertionError("unreachable")

        if inspect.iscoroutinefunction(func):
            return cast(Callable[P, T], async_wrapper)
        return cast(Callable[P, T], sync_wrapper)

    return decorator
