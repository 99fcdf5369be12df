"""Request pacing and bounded-concurrency helpers."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class RateLimiter:
    """Paces GET requests so concurrent callers never exceed a rate.

    Every call reserves the next free time slot before it fires, so slots are
    handed out in a monotonically increasing sequence no matter how many
    callers are waiting. A 429 response pushes every future slot past the
    backoff window as well.

    Usage:
        limiter = RateLimiter(100, client)
        response = await limiter.get("https://registry.npmjs.org/left-pad")
    """

    MAX_RETRIES = 3
    RETRY_BASE_SECONDS = 60.0

    def __init__(
        self,
        requests_per_minute: int,
        client: httpx.AsyncClient,
        *,
        max_retries: int = MAX_RETRIES,
        retry_base_seconds: float = RETRY_BASE_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the limiter.

        Args:
            requests_per_minute: Target request rate.
            client: Shared httpx client used to send requests.
            max_retries: Retries after a 429 before giving up.
            retry_base_seconds: Backoff unit when no Retry-After header is sent.
            sleep: Awaitable sleep, injectable for tests.
            clock: Monotonic clock in seconds, injectable for tests.
        """
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive")
        self.min_delay = 60.0 / requests_per_minute
        self.max_retries = max_retries
        self.retry_base_seconds = retry_base_seconds
        self._client = client
        self._sleep = sleep
        self._clock = clock
        self._next_slot = 0.0

    def _reserve_slot(self) -> float:
        """Claim the next slot and return how long the caller must wait."""
        now = self._clock()
        slot = max(now, self._next_slot)
        self._next_slot = slot + self.min_delay
        return slot - now

    def _retry_wait(self, response: httpx.Response, attempt: int) -> float:
        retry_after = response.headers.get("retry-after")
        base = self.retry_base_seconds
        if retry_after:
            try:
                base = float(retry_after)
            except ValueError:
                pass
        return attempt * base

    async def get(self, url: str, **kwargs) -> httpx.Response:
        """Send a rate-limited GET request.

        Args:
            url: Request URL.
            **kwargs: Passed through to ``httpx.AsyncClient.get``.

        Returns:
            The response. After exhausting retries on 429 the last 429
            response is returned.

        Raises:
            httpx.HTTPError: Transport errors are never swallowed.
        """
        wait = self._reserve_slot()
        if wait > 0:
            await self._sleep(wait)

        response = await self._client.get(url, **kwargs)

        attempt = 0
        while response.status_code == 429 and attempt < self.max_retries:
            attempt += 1
            wait = self._retry_wait(response, attempt)
            logger.warning(f"Rate limited, waiting {wait:.0f}s (attempt {attempt}/{self.max_retries})...")
            self._next_slot = max(self._next_slot, self._clock() + wait + self.min_delay)
            await self._sleep(wait)
            response = await self._client.get(url, **kwargs)

        return response


async def parallel_map(
    items: Sequence[T],
    concurrency: int,
    fn: Callable[[T, int], Awaitable[R]],
) -> list[R]:
    """Run ``fn(item, index)`` over items with a fixed worker pool.

    Results keep input order regardless of completion order. If any call
    raises, the exception propagates out of this function.

    Args:
        items: Inputs to process.
        concurrency: Maximum number of calls in flight.
        fn: Async function called with each item and its index.

    Returns:
        List of results, one per item.
    """
    if not items:
        return []

    results: list = [None] * len(items)
    next_index = 0

    async def worker() -> None:
        nonlocal next_index
        while next_index < len(items):
            i = next_index
            next_index += 1
            results[i] = await fn(items[i], i)

    workers = max(1, min(concurrency, len(items)))
    await asyncio.gather(*(worker() for _ in range(workers)))
    return results


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into consecutive lists of at most ``size`` elements."""
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def estimate_runtime(count: int) -> str:
    """Rough wall-clock estimate for a run over ``count`` candidates."""
    seconds = count * 1.1 + count * 0.5 + min(count, 500) * 0.8
    minutes = math.ceil(seconds / 60)
    if minutes <= 1:
        return "~30 sec"
    return f"~{minutes} min"
