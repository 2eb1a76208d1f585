"""
Logging configuration for concierge.

One "concierge" logger, configured once by the CLI (or left alone in tests).
Adapters log Google calls at DEBUG, dispatchers log one line per RPC.
The normalizer and shaping helpers should NOT log (they're pure functions).

Parameter values are shortened and email addresses masked before they
reach the log: request bodies carry message text and contact details.
"""

import logging
import re
import sys

logger = logging.getLogger("concierge")

MAX_PARAM_CHARS = 60
_EMAIL = re.compile(r"([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+)")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Configure the concierge logger and route uvicorn's loggers through it.

    Safe to call twice: the stderr handler is only attached once.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    numeric = getattr(logging, level.upper())
    logger.setLevel(numeric)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(handler)
        logger.propagate = False

    # Access logs would repeat every RPC line
    logging.getLogger("uvicorn.access").setLevel(max(numeric, logging.WARNING))


def redact(value: object) -> str:
    """Shorten a value for logging and mask the local part of addresses."""
    text = _EMAIL.sub(r"\1***@\2", str(value))
    if len(text) > MAX_PARAM_CHARS:
        return text[:MAX_PARAM_CHARS - 3] + "..."
    return text


def log_api_call(service: str, method: str, **params: object) -> None:
    """Log a Google API call with its non-empty parameters."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    param_str = ", ".join(f"{k}={redact(v)}" for k, v in params.items() if v is not None)
    logger.debug(f"API: {service}.{method}({param_str})")


def log_api_result(service: str, method: str, result_count: int | None = None) -> None:
    if result_count is None:
        logger.debug(f"API: {service}.{method} completed")
    else:
        logger.debug(f"API: {service}.{method} returned {result_count} results")


def log_retry(attempt: int, max_attempts: int, delay_ms: int, reason: str) -> None:
    logger.warning(f"Retry {attempt}/{max_attempts} in {delay_ms}ms: {redact(reason)}")


def log_rpc(domain: str, op: str | None, status: int, caller: str | None = None) -> None:
    """One line per dispatched call; 5xx at ERROR so they stand out."""
    level = logging.ERROR if status >= 500 else logging.INFO
    logger.log(level, f"RPC: {domain}.{op or '?'} -> {status} (caller={caller or '-'})")
