"""
Rate limiting for regulatory crawling.

Enforces a per-domain requests-per-minute budget over a rolling 60 second
window and spaces requests with a random politeness delay.
"""

import asyncio
import random
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from regwatch.utils.logging import get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 60.0


@dataclass(frozen=True)
class RateLimitConfig:
    """
    Request budget for one domain.

    Attributes:
        requests_per_minute: Requests allowed inside the rolling window
        min_delay_seconds: Lower bound of the random delay, and floor of budget waits
        max_delay_seconds: Upper bound of the random delay
    """

    requests_per_minute: int = 30
    min_delay_seconds: float = 1.0
    max_delay_seconds: float = 3.0

    def __post_init__(self) -> None:
        if self.requests_per_minute < 1:
            raise ValueError("requests_per_minute must be at least 1")
        if self.min_delay_seconds < 0 or self.max_delay_seconds < self.min_delay_seconds:
            raise ValueError("delay bounds must satisfy 0 <= min <= max")


@dataclass
class DomainWindow:
    """Request timestamps recorded for one domain, oldest first."""

    timestamps: deque[float] = field(default_factory=deque)
    total_requests: int = 0

    def purge(self, now: float) -> None:
        """Drop records that have left the rolling window."""
        while self.timestamps and now - self.timestamps[0] >= WINDOW_SECONDS:
            self.timestamps.popleft()


class SlidingWindowRateLimiter:
    """
    Per-domain sliding window rate limiter.

    When the window is full the caller waits until the oldest request
    leaves it (never less than the minimum delay); otherwise it waits a
    uniformly random delay between the minimum and maximum. Waits on
    different domains proceed concurrently; waits on one domain are
    serialized by a per-domain lock.

    State lives in process memory only.

    Example:
        >>> limiter = SlidingWindowRateLimiter(RateLimitConfig(requests_per_minute=10))
        >>> waited = await limiter.wait_for_slot("www.sec.gov")
    """

    def __init__(
        self,
        default_config: RateLimitConfig | None = None,
        overrides: dict[str, RateLimitConfig] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[float, float], float] = random.uniform,
    ) -> None:
        """
        Initialize rate limiter.

        Args:
            default_config: Budget for domains without an override
            overrides: Per-domain budgets keyed by host name
            clock: Monotonic clock in seconds
            sleep: Coroutine used to suspend
            rng: Uniform random source taking (low, high)
        """
        self.default_config = default_config or RateLimitConfig()
        self._overrides: dict[str, RateLimitConfig] = {
            domain.lower(): config for domain, config in (overrides or {}).items()
        }
        self._clock = clock
        self._sleep = sleep
        self._rng = rng
        self._windows: dict[str, DomainWindow] = defaultdict(DomainWindow)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def set_override(self, domain: str, config: RateLimitConfig) -> None:
        """Install a budget for one domain."""
        self._overrides[domain.lower()] = config

    def config_for(self, domain: str) -> RateLimitConfig:
        return self._overrides.get(domain.lower(), self.default_config)

    def _compute_delay(self, domain: str, now: float) -> float:
        config = self.config_for(domain)
        window = self._windows[domain]
        window.purge(now)

        if len(window.timestamps) >= config.requests_per_minute:
            oldest = window.timestamps[0]
            delay = max(WINDOW_SECONDS - (now - oldest), config.min_delay_seconds)
            logger.debug(
                f"Budget of {config.requests_per_minute}/min reached for {domain}, "
                f"waiting {delay:.2f}s"
            )
            return delay

        return self._rng(config.min_delay_seconds, config.max_delay_seconds)

    async def wait_for_slot(self, domain: str, min_delay: float | None = None) -> float:
        """
        Suspend until a request to ``domain`` is permitted, then record it.

        ``min_delay`` raises the wait to at least that many seconds; the
        executor passes the site's robots.txt Crawl-delay here.

        Returns:
            Seconds waited
        """
        domain = domain.lower()

        async with self._locks[domain]:
            delay = self._compute_delay(domain, self._clock())
            if min_delay is not None:
                delay = max(delay, min_delay)
            if delay > 0:
                await self._sleep(delay)

            window = self._windows[domain]
            window.timestamps.append(self._clock())
            window.total_requests += 1
            return delay

    def request_count(self, domain: str) -> int:
        """Requests recorded for ``domain`` inside the current window."""
        domain = domain.lower()
        if domain not in self._windows:
            return 0
        window = self._windows[domain]
        window.purge(self._clock())
        return len(window.timestamps)

    def get_stats(self) -> dict:
        """Per-domain request counts and budgets."""
        return {
            "total_domains": len(self._windows),
            "total_requests": sum(w.total_requests for w in self._windows.values()),
            "domains": {
                domain: {
                    "in_window": self.request_count(domain),
                    "total_requests": window.total_requests,
                    "requests_per_minute": self.config_for(domain).requests_per_minute,
                }
                for domain, window in list(self._windows.items())
            },
        }

    def reset(self, domain: str | None = None) -> None:
        """Forget recorded requests for one domain, or all domains."""
        if domain is None:
            self._windows.clear()
        else:
            self._windows.pop(domain.lower(), None)
