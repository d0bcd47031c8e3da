"""Bounded retry with exponential backoff for I/O boundary calls."""

from __future__ import annotations

import socket
import time
import urllib.error
from typing import Callable, TypeVar

from . import console

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504, 529})


def is_transient_status(status: int | None) -> bool:
    return status in RETRYABLE_STATUS_CODES


def is_transient_error(exc: BaseException) -> bool:
    """Rate limits, server errors, connection resets, and timeouts."""
    status = getattr(exc, "status", None)
    if status is None:
        status = getattr(exc, "code", None)
    if isinstance(status, int) and is_transient_status(status):
        return True
    if isinstance(exc, (ConnectionResetError, TimeoutError, socket.timeout)):
        return True
    if isinstance(exc, urllib.error.URLError) and not isinstance(exc, urllib.error.HTTPError):
        return isinstance(exc.reason, (ConnectionResetError, TimeoutError, socket.timeout))
    return False


def with_retry(
    fn: Callable[[], T],
    *,
    is_retryable: Callable[[BaseException], bool] = is_transient_error,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    label: str = "API call",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call fn, retrying retryable failures with delays of base_delay * 2**n.

    Non-retryable errors raise immediately; the last error is re-raised once
    max_attempts is exhausted.
    """
    attempts = max(1, max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except Exception as exc:
            if not is_retryable(exc) or attempt == attempts:
                raise
            delay = base_delay * (2 ** (attempt - 1))
            console.warn(
                f"{label} failed (attempt {attempt}/{attempts}), retrying in {delay:.1f}s: {exc}"
            )
            sleep(delay)

    # The loop must either return or raise.
    raise RuntimeError("with_retry loop exited unexpectedly")
