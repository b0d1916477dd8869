"""
retry.py — Bounded Retry with Fixed Backoff for Outbound Calls

Partner and Shopify calls are retried on transport errors (connection
failures, timeouts) and on 5xx responses. Client errors (4xx) and semantic
failures are never retried.
"""

import logging
import time
from typing import Callable, TypeVar

import httpx

T = TypeVar("T")

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

log = logging.getLogger(__name__)


def is_retryable(error: Exception) -> bool:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(error, httpx.TransportError)


def call_with_retry(fn: Callable[[], T], attempts: int = 3, delay: float = 1.0, label: str = "call") -> T:
    """
    Calls `fn` up to `attempts` times, sleeping `delay` seconds between attempts.

    Args:
        fn (Callable): Zero-argument callable performing the request.
        attempts (int): Total number of attempts; 1 disables retrying.
        delay (float): Fixed pause between attempts in seconds.
        label (str): Name used in log messages.

    Returns:
        The return value of `fn`.

    Raises:
        httpx.HTTPError: The last error, once attempts are used up or the error is not retryable.
    """
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except httpx.HTTPError as e:
            if attempt == attempts or not is_retryable(e):
                raise
            log.warning(f"{label}: attempt {attempt}/{attempts} failed ({type(e).__name__}: {e}). Retrying in {delay}s.")
            time.sleep(delay)
    raise RuntimeError("call_with_retry requires attempts >= 1")
