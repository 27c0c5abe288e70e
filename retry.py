"""Exponential backoff for calls to the external data sources."""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Optional, TypeVar

import httpx

from config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS = {429, 500, 502, 503, 504}
RETRYABLE_MARKERS = ("429", "500", "RESOURCE_EXHAUSTED", "Rpc failed", "xhr error")


def is_retryable(exc: BaseException) -> bool:
    """Rate limits, server errors and transport failures are worth retrying."""

    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS
    if isinstance(exc, httpx.TransportError):
        return True
    status = getattr(exc, "status_code", None) or getattr(exc, "code", None)
    if status in (429, 500):
        return True
    message = str(exc)
    return any(marker in message for marker in RETRYABLE_MARKERS)


def call_with_retry(
    fn: Callable[[], T],
    *,
    max_attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
    jitter: Optional[float] = None,
    retryable: Callable[[BaseException], bool] = is_retryable,
    sleep: Callable[[float], Any] = time.sleep,
    label: str = "request",
) -> T:
    """Call ``fn`` until it succeeds or the attempts run out.

    The delay starts at ``base_delay`` seconds and doubles after every failure,
    plus up to ``jitter`` random seconds. Non-retryable errors and the error of
    the final attempt are re-raised unchanged.
    """

    attempts = settings.get("retry_max_attempts") if max_attempts is None else max_attempts
    delay = settings.get("retry_base_delay") if base_delay is None else base_delay
    jitter_s = settings.get("retry_jitter") if jitter is None else jitter
    attempts = max(1, int(attempts))

    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except Exception as exc:
            if attempt >= attempts or not retryable(exc):
                raise
            wait = delay + random.uniform(0, jitter_s)
            logger.warning(
                "%s failed (retryable): %s. Retrying in %.1fs (attempt %d/%d)",
                label,
                exc,
                wait,
                attempt,
                attempts,
            )
            sleep(wait)
            delay *= 2
    raise RuntimeError("unreachable")  # pragma: no cover
