"""Tests for request pacing and the worker pool."""

import asyncio

import httpx
import pytest

from e18e_analyzer.utils.rate_limiter import RateLimiter, chunked, estimate_runtime, parallel_map


class SleepRecorder:
    """Fake sleep that records waits; the clock stays at zero."""

    def __init__(self):
        self.waits: list[float] = []

    async def sleep(self, seconds: float) -> None:
        self.waits.append(seconds)

    def clock(self) -> float:
        return 0.0


def ok_client(handler=None) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler or (lambda request: httpx.Response(200))))


class TestRateLimiter:
    """Test slot reservation and 429 backoff."""

    @pytest.mark.asyncio
    async def test_sequential_requests_are_spaced(self):
        """Should hand out slots one minimum delay apart."""
        recorder = SleepRecorder()
        async with ok_client() as client:
            limiter = RateLimiter(60, client, sleep=recorder.sleep, clock=recorder.clock)
            for _ in range(3):
                await limiter.get("https://example.test/")

        assert recorder.waits == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_concurrent_callers_get_distinct_slots(self):
        """Should never give two concurrent callers the same slot."""
        recorder = SleepRecorder()
        async with ok_client() as client:
            limiter = RateLimiter(120, client, sleep=recorder.sleep, clock=recorder.clock)
            await asyncio.gather(*(limiter.get("https://example.test/") for _ in range(4)))

        assert sorted(recorder.waits) == [0.5, 1.0, 1.5]

    @pytest.mark.asyncio
    async def test_retry_after_header_is_honored(self):
        """Should wait Retry-After seconds and push later slots past the backoff."""
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(429, headers={"Retry-After": "2"})
            return httpx.Response(200)

        recorder = SleepRecorder()
        async with ok_client(handler) as client:
            limiter = RateLimiter(60, client, sleep=recorder.sleep, clock=recorder.clock)
            response = await limiter.get("https://example.test/")
            await limiter.get("https://example.test/")

        assert response.status_code == 200
        assert len(calls) == 3
        # backoff of 2s, then the next slot lands after backoff + min delay
        assert recorder.waits == [2.0, 3.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        """Should return the last 429 after linear backoff retries."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429)

        recorder = SleepRecorder()
        async with ok_client(handler) as client:
            limiter = RateLimiter(
                60,
                client,
                max_retries=2,
                retry_base_seconds=10,
                sleep=recorder.sleep,
                clock=recorder.clock,
            )
            response = await limiter.get("https://example.test/")

        assert response.status_code == 429
        assert len(calls) == 3
        assert recorder.waits == [10, 20]

    @pytest.mark.asyncio
    async def test_transport_errors_propagate(self):
        """Should not swallow connection errors."""

        def handler(request):
            raise httpx.ConnectError("boom", request=request)

        recorder = SleepRecorder()
        async with ok_client(handler) as client:
            limiter = RateLimiter(60, client, sleep=recorder.sleep, clock=recorder.clock)
            with pytest.raises(httpx.ConnectError):
                await limiter.get("https://example.test/")

    def test_rejects_non_positive_rate(self):
        """Should refuse a zero request rate."""
        with pytest.raises(ValueError):
            RateLimiter(0, None)


class TestParallelMap:
    """Test the bounded worker pool."""

    @pytest.mark.asyncio
    async def test_results_keep_input_order(self):
        """Should return results in input order even when later items finish first."""

        async def fn(item, index):
            await asyncio.sleep(0.001 * (5 - index))
            return item * 10

        assert await parallel_map([1, 2, 3, 4, 5], 3, fn) == [10, 20, 30, 40, 50]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        """Should never run more than `concurrency` calls at once."""
        in_flight = 0
        peak = 0

        async def fn(item, index):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1
            return item

        await parallel_map(list(range(10)), 2, fn)
        assert peak == 2

    @pytest.mark.asyncio
    async def test_exceptions_propagate(self):
        """Should raise the worker's exception."""

        async def fn(item, index):
            if item == 3:
                raise RuntimeError("bad item")
            return item

        with pytest.raises(RuntimeError, match="bad item"):
            await parallel_map([1, 2, 3, 4], 2, fn)

    @pytest.mark.asyncio
    async def test_empty_input(self):
        """Should return an empty list without calling fn."""

        async def fn(item, index):
            raise AssertionError("not called")

        assert await parallel_map([], 4, fn) == []


def test_chunked_splits_evenly_with_remainder():
    assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunked([], 3) == []


def test_estimate_runtime():
    assert estimate_runtime(10) == "~30 sec"
    assert estimate_runtime(1000) == "~34 min"
