"""
Tests for the sliding window rate limiter.

A fake clock makes sleeps instantaneous and observable.
"""

import asyncio

import pytest

from regwatch.crawler.rate_limiter import (
    DomainWindow,
    RateLimitConfig,
    SlidingWindowRateLimiter,
)
from tests.fakes import FakeClock


def _limiter(clock: FakeClock, config: RateLimitConfig | None = None, **kwargs):
    return SlidingWindowRateLimiter(
        config or RateLimitConfig(),
        clock=clock,
        sleep=clock.sleep,
        rng=lambda low, high: low,
        **kwargs,
    )


class TestRateLimitConfig:
    """Tests for RateLimitConfig validation."""

    def test_defaults(self):
        config = RateLimitConfig()

        assert config.requests_per_minute == 30
        assert (config.min_delay_seconds, config.max_delay_seconds) == (1.0, 3.0)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"requests_per_minute": 0},
            {"min_delay_seconds": -1.0},
            {"min_delay_seconds": 5.0, "max_delay_seconds": 2.0},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            RateLimitConfig(**kwargs)


class TestDomainWindow:
    """Tests for window purging."""

    def test_purge_drops_old_entries(self):
        window = DomainWindow()
        window.timestamps.extend([0.0, 30.0, 59.0])

        window.purge(60.0)

        assert list(window.timestamps) == [30.0, 59.0]


class TestWaitForSlot:
    """Tests for delay computation and recording."""

    @pytest.mark.asyncio
    async def test_jitter_within_bounds(self):
        """Under budget, the wait is drawn from [min, max]."""
        clock = FakeClock()
        seen = []

        def rng(low, high):
            seen.append((low, high))
            return 2.25

        limiter = SlidingWindowRateLimiter(
            RateLimitConfig(min_delay_seconds=1.0, max_delay_seconds=3.0),
            clock=clock,
            sleep=clock.sleep,
            rng=rng,
        )

        waited = await limiter.wait_for_slot("www.sec.gov")

        assert waited == 2.25
        assert seen == [(1.0, 3.0)]
        assert clock.sleeps == [2.25]

    @pytest.mark.asyncio
    async def test_min_delay_floor(self):
        """A caller-supplied floor, such as a Crawl-delay, wins over shorter jitter."""
        clock = FakeClock()
        limiter = _limiter(clock)

        assert await limiter.wait_for_slot("www.sec.gov", min_delay=10.0) == 10.0
        assert await limiter.wait_for_slot("www.sec.gov", min_delay=0.0) == 1.0
        assert clock.sleeps == [10.0, 1.0]

    @pytest.mark.asyncio
    async def test_records_request_after_wait(self):
        clock = FakeClock()
        limiter = _limiter(clock)

        await limiter.wait_for_slot("www.sec.gov")

        assert limiter.request_count("www.sec.gov") == 1
        assert limiter._windows["www.sec.gov"].timestamps[0] == clock.now

    @pytest.mark.asyncio
    async def test_budget_exhausted_waits_for_oldest(self):
        """The (N+1)th request waits until the first leaves the window."""
        clock = FakeClock()
        limiter = _limiter(
            clock,
            RateLimitConfig(requests_per_minute=3, min_delay_seconds=1.0, max_delay_seconds=1.0),
        )

        for _ in range(3):
            await limiter.wait_for_slot("www.sec.gov")
        first_request = limiter._windows["www.sec.gov"].timestamps[0]

        waited = await limiter.wait_for_slot("www.sec.gov")

        assert waited == 58.0
        assert clock.now - first_request == 60.0
        assert limiter.request_count("www.sec.gov") == 3

    @pytest.mark.asyncio
    async def test_budget_wait_floored_at_min_delay(self):
        clock = FakeClock()
        limiter = _limiter(
            clock,
            RateLimitConfig(requests_per_minute=1, min_delay_seconds=5.0, max_delay_seconds=5.0),
        )
        await limiter.wait_for_slot("a.gov")
        clock.advance(59.0)

        waited = await limiter.wait_for_slot("a.gov")

        assert waited == 5.0

    @pytest.mark.asyncio
    async def test_window_never_exceeds_budget(self):
        clock = FakeClock()
        limiter = _limiter(
            clock,
            RateLimitConfig(requests_per_minute=5, min_delay_seconds=0.0, max_delay_seconds=0.0),
        )

        for _ in range(20):
            await limiter.wait_for_slot("a.gov")
            assert limiter.request_count("a.gov") <= 5

    @pytest.mark.asyncio
    async def test_domains_independent(self):
        clock = FakeClock()
        limiter = _limiter(
            clock,
            RateLimitConfig(requests_per_minute=1, min_delay_seconds=0.0, max_delay_seconds=0.0),
        )

        await limiter.wait_for_slot("a.gov")
        waited = await limiter.wait_for_slot("b.gov")

        assert waited == 0.0

    @pytest.mark.asyncio
    async def test_domain_case_insensitive(self):
        clock = FakeClock()
        limiter = _limiter(clock)

        await limiter.wait_for_slot("WWW.SEC.GOV")

        assert limiter.request_count("www.sec.gov") == 1

    @pytest.mark.asyncio
    async def test_override_applies(self):
        clock = FakeClock()
        limiter = _limiter(
            clock,
            overrides={"www.sec.gov": RateLimitConfig(10, 2.0, 4.0)},
        )

        assert await limiter.wait_for_slot("www.sec.gov") == 2.0
        assert await limiter.wait_for_slot("www.ftc.gov") == 1.0

    @pytest.mark.asyncio
    async def test_concurrent_waits_serialized(self):
        """Concurrent callers on one domain still respect the budget."""
        clock = FakeClock()
        limiter = _limiter(
            clock,
            RateLimitConfig(requests_per_minute=2, min_delay_seconds=0.0, max_delay_seconds=0.0),
        )

        await asyncio.gather(*(limiter.wait_for_slot("a.gov") for _ in range(4)))

        assert limiter.get_stats()["domains"]["a.gov"]["total_requests"] == 4
        assert clock.sleeps == [60.0]


class TestStats:
    """Tests for stats and reset."""

    @pytest.mark.asyncio
    async def test_stats(self):
        clock = FakeClock()
        limiter = _limiter(clock)
        await limiter.wait_for_slot("a.gov")
        await limiter.wait_for_slot("b.gov")

        stats = limiter.get_stats()

        assert stats["total_domains"] == 2
        assert stats["total_requests"] == 2
        assert stats["domains"]["a.gov"]["requests_per_minute"] == 30

    @pytest.mark.asyncio
    async def test_reset(self):
        clock = FakeClock()
        limiter = _limiter(clock)
        await limiter.wait_for_slot("a.gov")
        await limiter.wait_for_slot("b.gov")

        limiter.reset("a.gov")
        assert limiter.request_count("a.gov") == 0
        assert limiter.request_count("b.gov") == 1

        limiter.reset()
        assert limiter.get_stats()["total_domains"] == 0
