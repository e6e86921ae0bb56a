"""HTTP retry/backoff for outbound provider calls."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential backoff with up to 50% jitter; zero base means no wait."""
    delay = min(max_delay, base_delay * (2**attempt))
    if delay <= 0:
        return 0.0
    return delay + random.uniform(0, delay / 2)


def retry_after_seconds(response: httpx.Response, max_delay: float) -> float | None:
    """Seconds from a numeric Retry-After header, capped at max_delay."""
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return max(0.0, min(seconds, max_delay))


async def request_with_retries(
    request_fn: Callable[[], Awaitable[httpx.Response]],
    *,
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    retry_statuses: frozenset[int] | set[int] | None = None,
) -> httpx.Response:
    """
    Run request_fn until it returns a non-retryable response or attempts run out.

    Transport errors are retried and re-raised after the last attempt. The last
    retryable response is returned as-is so the caller can map its status.
    """
    statuses = retry_statuses or DEFAULT_RETRY_STATUSES
    attempts = max(1, max_attempts)

    for attempt in range(attempts):
        last_attempt = attempt == attempts - 1
        try:
            response = await request_fn()
        except httpx.RequestError as exc:
            if last_attempt:
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                "HTTP request failed (attempt %d/%d), retrying in %.2fs: %s",
                attempt + 1,
                attempts,
                delay,
                exc,
            )
        else:
            if response.status_code not in statuses or last_attempt:
                return response
            delay = retry_after_seconds(response, max_delay)
            if delay is None:
                delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                "HTTP request returned %s (attempt %d/%d), retrying in %.2fs",
                response.status_code,
                attempt + 1,
                attempts,
                delay,
            )
        if delay:
            await asyncio.sleep(delay)
