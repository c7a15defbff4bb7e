"""
Per-domain crawl policy.

The PolitenessEngine fetches each domain's robots.txt once, caches the
parsed RobotsPolicy on a CrawlTarget for a configurable TTL and answers
"may this URL be fetched" questions for the crawl executor.
"""

import asyncio
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable
from urllib.parse import urlparse

import httpx

from regwatch.config.settings import DEFAULT_USER_AGENT
from regwatch.crawler.robots import DEFAULT_CRAWL_DELAY, RobotsPolicy
from regwatch.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CrawlTarget:
    """
    Cached crawl policy for one domain.

    Attributes:
        domain: Host name the policy applies to
        policy: Parsed robots rules, None when the domain is unrestricted
        fetched_at: Clock reading when the policy was fetched
    """

    domain: str
    policy: RobotsPolicy | None
    fetched_at: float

    def is_expired(self, now: float, ttl_seconds: float) -> bool:
        return now - self.fetched_at >= ttl_seconds


@dataclass(frozen=True)
class PolicyDecision:
    """Result of a politeness check."""

    allowed: bool
    reason: str


class PolitenessEngine:
    """
    Evaluates robots.txt rules per domain with a TTL cache.

    A robots.txt that cannot be fetched (non-2xx status or transport
    error) leaves the domain unrestricted. A fetched document that fails
    to parse raises RobotsParseError.

    Example:
        >>> async with httpx.AsyncClient() as client:
        ...     engine = PolitenessEngine(client, user_agent="RegWatchBot/1.0")
        ...     decision = await engine.check("https://www.sec.gov/rules")
        ...     decision.allowed
        True
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        user_agent: str = DEFAULT_USER_AGENT,
        respect_robots: bool = True,
        cache_ttl_seconds: float = 3600.0,
        timeout_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the engine.

        Args:
            client: Shared HTTP client used to fetch robots.txt
            user_agent: Agent name matched against robots groups
            respect_robots: If False every URL is allowed without fetching
            cache_ttl_seconds: Lifetime of a cached policy
            timeout_seconds: Timeout for a robots.txt fetch
            clock: Monotonic clock, injectable for tests
        """
        self._client = client
        self.user_agent = user_agent
        self.respect_robots = respect_robots
        self.cache_ttl_seconds = cache_ttl_seconds
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._targets: dict[str, CrawlTarget] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @staticmethod
    def _split(url: str) -> tuple[str, str]:
        """Robots.txt URL for ``url`` and the host name its policy is cached under."""
        parsed = urlparse(url)
        host = parsed.hostname or ""
        origin = host if parsed.port is None else f"{host}:{parsed.port}"
        return f"{parsed.scheme or 'https'}://{origin}/robots.txt", host

    async def _fetch_policy(self, robots_url: str) -> RobotsPolicy | None:
        try:
            response = await self._client.get(
                robots_url,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout_seconds,
            )
        except httpx.HTTPError as e:
            logger.warning(f"robots.txt unreachable at {robots_url}, allowing: {e}")
            return None

        if not response.is_success:
            logger.warning(
                f"robots.txt returned {response.status_code} at {robots_url}, allowing"
            )
            return None

        policy = RobotsPolicy.parse(response.text)
        logger.debug(f"Loaded robots.txt from {robots_url} ({len(policy.agents)} groups)")
        return policy

    async def get_target(self, url: str) -> CrawlTarget:
        """Return the cached CrawlTarget for the URL's domain, fetching if stale."""
        robots_url, domain = self._split(url)

        async with self._locks[domain]:
            target = self._targets.get(domain)
            now = self._clock()
            if target is None or target.is_expired(now, self.cache_ttl_seconds):
                policy = await self._fetch_policy(robots_url)
                target = CrawlTarget(domain=domain, policy=policy, fetched_at=now)
                self._targets[domain] = target
            return target

    async def check(self, url: str) -> PolicyDecision:
        """
        Decide whether the crawler may fetch ``url``.

        Raises:
            RobotsParseError: If the domain's robots.txt is malformed
        """
        if not self.respect_robots:
            return PolicyDecision(True, "robots.txt checks disabled")

        target = await self.get_target(url)
        if target.policy is None:
            return PolicyDecision(True, "No robots.txt policy")

        if target.policy.is_allowed(url, self.user_agent):
            return PolicyDecision(True, "Allowed by robots.txt")

        logger.info(f"Blocked by robots.txt: {url}")
        return PolicyDecision(False, "Blocked by robots.txt")

    async def crawl_delay(self, url: str) -> float:
        """Crawl delay in seconds requested by the URL's domain."""
        if not self.respect_robots:
            return DEFAULT_CRAWL_DELAY
        target = await self.get_target(url)
        if target.policy is None:
            return DEFAULT_CRAWL_DELAY
        return target.policy.crawl_delay(self.user_agent)

    async def requested_delay(self, url: str) -> float | None:
        """Crawl-delay the domain sets for our agent, or None when it sets none."""
        if not self.respect_robots:
            return None
        target = await self.get_target(url)
        rules = target.policy.rules_for(self.user_agent) if target.policy is not None else None
        return rules.crawl_delay if rules is not None else None

    def invalidate(self, domain: str | None = None) -> None:
        """Drop the cached policy for one domain, or for all domains."""
        if domain is None:
            self._targets.clear()
        else:
            self._targets.pop(domain.lower(), None)

    def targets(self) -> list[CrawlTarget]:
        """Currently cached crawl targets."""
        return list(self._targets.values())
