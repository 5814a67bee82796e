"""Bounded retry with a fixed delay between attempts."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from .errors import TransportError

log = logging.getLogger("obook.retry")

T = TypeVar("T")

MAX_RETRY_COUNT = 15
RETRY_DELAY = 2.0


def is_transient(exc: BaseException) -> bool:
    """False for a client error that will not change on retry (4xx other than 429)."""
    status = getattr(exc, "status_code", None)
    if status is None:
        return True
    return not (400 <= status < 500) or status == 429


def retry(
    operation: Callable[[], T],
    attempts: int = MAX_RETRY_COUNT,
    delay: float = RETRY_DELAY,
    exceptions: tuple[type[BaseException], ...] = (TransportError,),
    retryable: Callable[[BaseException], bool] = is_transient,
) -> T:
    """Call *operation* until it succeeds or *attempts* calls have failed.

    Sleeps *delay* seconds between attempts (not after the last one) and
    re-raises the last error once the budget is spent.  Exceptions outside
    *exceptions* propagate immediately, as do listed ones that
    *retryable* rejects (by default a 404 or other non-429 4xx response).
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except exceptions as exc:
            if not retryable(exc):
                log.warning("not retrying: %s", exc)
                raise
            if attempt >= attempts:
                log.error("giving up after %d attempts: %s", attempts, exc)
                raise
            log.warning("attempt %d/%d failed: %s", attempt, attempts, exc)
            time.sleep(delay)

    raise RuntimeError(f"Failed after {attempts} attempts")
