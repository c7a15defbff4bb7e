"""
Crawl executor.

Performs a single polite fetch: robots.txt check, rate-limit wait, HTTP
GET, lightweight metadata extraction. Every attempt is recorded in an
in-memory compliance audit log.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import httpx

from regwatch.config.settings import DEFAULT_USER_AGENT
from regwatch.core.exceptions import FetchError, RobotsDisallowedError, RobotsParseError
from regwatch.crawler.politeness import PolitenessEngine
from regwatch.crawler.rate_limiter import RateLimitConfig, SlidingWindowRateLimiter
from regwatch.utils.logging import get_logger
from regwatch.utils.metrics import (
    increment_fetch_errors,
    increment_pages_fetched,
    increment_robots_blocked,
)

if TYPE_CHECKING:
    from regwatch.config.settings import Settings

logger = get_logger(__name__)

ACCEPT_HEADER = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

_TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)
_DESCRIPTION_RE = re.compile(
    r"""<meta\s+name=["']description["']\s+content=["']([^"']+)["']""",
    re.IGNORECASE,
)


@dataclass
class ScrapeResult:
    """A successfully fetched document."""

    url: str
    content: str
    content_type: str
    status_code: int
    fetched_at: datetime
    title: str | None = None
    description: str | None = None
    last_modified: str | None = None


@dataclass(frozen=True)
class AuditEntry:
    """One fetch attempt as recorded for compliance review."""

    url: str
    timestamp: datetime
    allowed: bool
    reason: str | None = None
    status_code: int | None = None


def extract_metadata(content: str, content_type: str) -> tuple[str | None, str | None]:
    """Best-effort title and meta description from an HTML document."""
    if "text/html" not in content_type.lower():
        return None, None

    title_match = _TITLE_RE.search(content)
    desc_match = _DESCRIPTION_RE.search(content)
    title = title_match.group(1).strip() if title_match else None
    description = desc_match.group(1).strip() if desc_match else None
    return title or None, description or None


class CrawlExecutor:
    """
    Polite document fetcher.

    Owns the shared httpx.AsyncClient, the politeness engine and the rate
    limiter; use it as an async context manager so the client is closed.

    Example:
        >>> async with CrawlExecutor.from_settings(settings) as executor:
        ...     result = await executor.scrape("https://www.ftc.gov/news")
        ...     print(result.title)
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        politeness: PolitenessEngine | None = None,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_seconds: float = 30.0,
        follow_redirects: bool = True,
    ) -> None:
        """
        Initialize the executor.

        Args:
            client: HTTP client; one is created (and later closed) if omitted
            politeness: robots.txt engine sharing the same client
            rate_limiter: Per-domain rate limiter
            user_agent: Agent string sent with every request
            timeout_seconds: Timeout used when creating a client
            follow_redirects: Redirect policy used when creating a client
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout_seconds,
            follow_redirects=follow_redirects,
        )
        self.user_agent = user_agent
        self.politeness = politeness or PolitenessEngine(
            self._client, user_agent=user_agent
        )
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter()
        self._audit: list[AuditEntry] = []

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        client: httpx.AsyncClient | None = None,
        rate_limit_overrides: dict[str, RateLimitConfig] | None = None,
    ) -> "CrawlExecutor":
        """Create an executor configured from application settings."""
        crawler = settings.crawler
        client = client or httpx.AsyncClient(
            timeout=crawler.request_timeout_seconds,
            follow_redirects=crawler.follow_redirects,
        )
        politeness = PolitenessEngine(
            client,
            user_agent=crawler.user_agent,
            respect_robots=crawler.respect_robots_txt,
            cache_ttl_seconds=settings.politeness.robots_cache_ttl_seconds,
            timeout_seconds=settings.politeness.robots_timeout_seconds,
        )
        limits = settings.rate_limit
        rate_limiter = SlidingWindowRateLimiter(
            RateLimitConfig(
                requests_per_minute=limits.requests_per_minute,
                min_delay_seconds=limits.min_delay_seconds,
                max_delay_seconds=limits.max_delay_seconds,
            ),
            overrides=rate_limit_overrides,
        )
        executor = cls(
            client=client,
            politeness=politeness,
            rate_limiter=rate_limiter,
            user_agent=crawler.user_agent,
        )
        executor._owns_client = True
        return executor

    async def __aenter__(self) -> "CrawlExecutor":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this executor created it."""
        if self._owns_client:
            await self._client.aclose()

    def _record(
        self,
        url: str,
        allowed: bool,
        reason: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self._audit.append(
            AuditEntry(
                url=url,
                timestamp=datetime.now(timezone.utc),
                allowed=allowed,
                reason=reason,
                status_code=status_code,
            )
        )

    async def scrape(self, url: str) -> ScrapeResult:
        """
        Fetch one URL politely.

        Raises:
            RobotsDisallowedError: If robots.txt forbids the URL
            RobotsParseError: If the domain's robots.txt is malformed
            FetchError: On a non-success status or a transport failure
        """
        domain = urlparse(url).hostname or ""

        try:
            decision = await self.politeness.check(url)
        except RobotsParseError as e:
            self._record(url, allowed=False, reason=f"robots.txt unparseable: {e.message}")
            logger.warning(f"Refusing {url}: {e}")
            raise
        if not decision.allowed:
            self._record(url, allowed=False, reason=decision.reason)
            increment_robots_blocked()
            raise RobotsDisallowedError(
                f"URL {url} is disallowed by robots.txt",
                url=url,
                user_agent=self.user_agent,
            )

        crawl_delay = await self.politeness.requested_delay(url)
        waited = await self.rate_limiter.wait_for_slot(domain, min_delay=crawl_delay)
        logger.debug(f"Rate limit slot acquired for {domain} after {waited:.2f}s")

        try:
            response = await self._client.get(
                url,
                headers={"User-Agent": self.user_agent, "Accept": ACCEPT_HEADER},
            )
        except httpx.HTTPError as e:
            reason = f"{type(e).__name__}: {e}"
            self._record(url, allowed=True, reason=reason)
            increment_fetch_errors()
            logger.warning(f"Fetch failed for {url}: {reason}")
            raise FetchError(f"Request failed: {reason}", url=url) from e

        if not response.is_success:
            self._record(url, allowed=True, status_code=response.status_code)
            increment_fetch_errors()
            logger.warning(f"Fetch of {url} returned HTTP {response.status_code}")
            raise FetchError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                url=url,
                status_code=response.status_code,
            )

        content_type = response.headers.get("content-type", "text/html")
        content = response.text
        title, description = extract_metadata(content, content_type)

        self._record(url, allowed=True, status_code=response.status_code)
        increment_pages_fetched()
        logger.info(f"Fetched {url} ({response.status_code}, {len(content)} chars)")

        return ScrapeResult(
            url=url,
            content=content,
            content_type=content_type,
            status_code=response.status_code,
            fetched_at=datetime.now(timezone.utc),
            title=title,
            description=description,
            last_modified=response.headers.get("last-modified"),
        )

    def audit_log(self) -> list[AuditEntry]:
        """Ordered copy of every recorded fetch attempt."""
        return list(self._audit)

    def clear_audit_log(self) -> None:
        self._audit.clear()
