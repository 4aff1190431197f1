"""Retry decision and backoff for specification fetches.

* :func:`should_retry` -- is a failed attempt worth repeating?
* :func:`compute_backoff` -- how long to wait before the next attempt.

Client errors (``4xx`` other than 408/429) are never retried: a missing
or forbidden document will not appear by asking again within one poll.
"""

from __future__ import annotations

import random

import httpx

# HTTP status codes that are safe to retry.
RETRYABLE_STATUSES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})

# Network-level exceptions that warrant a retry.
RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


def should_retry(
    status_code: int | None,
    exception: Exception | None,
    attempt: int,
    max_attempts: int,
) -> bool:
    """Decide whether a fetch attempt should be repeated.

    Parameters
    ----------
    status_code:
        Response status, or ``None`` if no response arrived.
    exception:
        The raised exception, or ``None`` if a response arrived.
    attempt:
        Current attempt number (0-indexed).
    max_attempts:
        Total attempts allowed, the first one included.

    Returns
    -------
    bool
    """
    if attempt + 1 >= max_attempts:
        return False
    if exception is not None:
        return isinstance(exception, RETRYABLE_EXCEPTIONS)
    if status_code is not None:
        return status_code in RETRYABLE_STATUSES
    return False


def compute_backoff(
    attempt: int,
    base: float = 1.0,
    maximum: float = 30.0,
    jitter: bool = True,
    retry_after: float | None = None,
) -> float:
    """Return the delay in seconds before the next attempt.

    A server-provided ``Retry-After`` wins (still capped at *maximum*);
    otherwise the delay is ``base * 2**attempt`` capped at *maximum*.  With
    *jitter* the delay is scaled to 50-100 % of its value.
    """
    if retry_after is not None:
        delay = min(retry_after, maximum)
    else:
        delay = min(base * (2 ** attempt), maximum)

    if jitter:
        delay *= 0.5 + random.random() * 0.5

    return delay


def parse_retry_after(response: httpx.Response) -> float | None:
    """Extract ``Retry-After`` in seconds, or ``None`` when absent or not numeric."""
    raw = response.headers.get("retry-after")
    if raw is None:
        return None
    try:
        return max(0.0, float(raw))
    except (ValueError, TypeError):
        return None
