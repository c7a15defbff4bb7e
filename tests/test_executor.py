"""
Tests for the crawl executor and its audit log.
"""

import httpx
import pytest

from regwatch.config import Settings
from regwatch.core.exceptions import FetchError, RobotsDisallowedError, RobotsParseError
from regwatch.crawler import (
    CrawlExecutor,
    PolitenessEngine,
    RateLimitConfig,
    SlidingWindowRateLimiter,
)
from regwatch.crawler.executor import extract_metadata
from regwatch.utils.metrics import Metrics
from tests.conftest import USER_AGENT
from tests.fakes import FakeSite, no_sleep

ROBOTS_URL = "https://www.ftc.gov/robots.txt"


def _executor(client: httpx.AsyncClient) -> CrawlExecutor:
    return CrawlExecutor(
        client=client,
        politeness=PolitenessEngine(client, user_agent=USER_AGENT),
        rate_limiter=SlidingWindowRateLimiter(sleep=no_sleep),
        user_agent=USER_AGENT,
    )


@pytest.fixture
def site(sample_html: str) -> FakeSite:
    return (
        FakeSite()
        .add(ROBOTS_URL, "User-agent: *\nDisallow: /internal\n", headers={"content-type": "text/plain"})
        .add(
            "https://www.ftc.gov/rules/breach",
            sample_html,
            headers={
                "content-type": "text/html; charset=utf-8",
                "last-modified": "Wed, 01 May 2024 10:00:00 GMT",
            },
        )
    )


class TestExtractMetadata:
    """Tests for title/description extraction."""

    def test_html(self, sample_html: str):
        title, description = extract_metadata(sample_html, "text/html; charset=utf-8")

        assert title == "Data Breach Notification Rule"
        assert description == "Final rule on breach notification"

    def test_non_html_ignored(self, sample_html: str):
        assert extract_metadata(sample_html, "application/xml") == (None, None)

    def test_missing_tags(self):
        assert extract_metadata("<p>no head</p>", "text/html") == (None, None)


class TestScrape:
    """Tests for CrawlExecutor.scrape."""

    @pytest.mark.asyncio
    async def test_success(self, site: FakeSite):
        async with site.client() as client:
            result = await _executor(client).scrape("https://www.ftc.gov/rules/breach")

        assert result.status_code == 200
        assert result.title == "Data Breach Notification Rule"
        assert result.description == "Final rule on breach notification"
        assert result.last_modified == "Wed, 01 May 2024 10:00:00 GMT"
        assert result.content_type.startswith("text/html")
        assert "breach" in result.content

    @pytest.mark.asyncio
    async def test_request_headers(self, site: FakeSite):
        async with site.client() as client:
            await _executor(client).scrape("https://www.ftc.gov/rules/breach")

        page_request = site.requests[-1]
        assert page_request.headers["User-Agent"] == USER_AGENT
        assert "text/html" in page_request.headers["Accept"]

    @pytest.mark.asyncio
    async def test_blocked_by_robots(self, site: FakeSite):
        url = "https://www.ftc.gov/internal/memo"

        async with site.client() as client:
            executor = _executor(client)
            with pytest.raises(RobotsDisallowedError) as exc_info:
                await executor.scrape(url)

        assert exc_info.value.url == url
        assert site.requested(url) == 0
        entry = executor.audit_log()[-1]
        assert entry.allowed is False
        assert entry.reason == "Blocked by robots.txt"
        assert Metrics.get().get_counter("robots_blocked") == 1

    @pytest.mark.asyncio
    async def test_http_error_status(self, site: FakeSite):
        url = "https://www.ftc.gov/rules/missing"
        site.add(url, "gone", status_code=503)

        async with site.client() as client:
            executor = _executor(client)
            with pytest.raises(FetchError) as exc_info:
                await executor.scrape(url)

        assert exc_info.value.status_code == 503
        entry = executor.audit_log()[-1]
        assert entry.allowed is True
        assert entry.status_code == 503

    @pytest.mark.asyncio
    async def test_transport_error(self, site: FakeSite):
        url = "https://www.ftc.gov/rules/slow"
        site.fail(url, httpx.ReadTimeout("timed out"))

        async with site.client() as client:
            executor = _executor(client)
            with pytest.raises(FetchError) as exc_info:
                await executor.scrape(url)

        assert exc_info.value.status_code is None
        entry = executor.audit_log()[-1]
        assert entry.status_code is None
        assert "ReadTimeout" in entry.reason

    @pytest.mark.asyncio
    async def test_rate_limiter_consulted(self, site: FakeSite):
        async with site.client() as client:
            executor = _executor(client)
            await executor.scrape("https://www.ftc.gov/rules/breach")

        assert executor.rate_limiter.request_count("www.ftc.gov") == 1

    @pytest.mark.asyncio
    async def test_domain_keyed_by_host_name(self, site: FakeSite, sample_html: str):
        url = "https://www.ftc.gov:8443/rules/breach"
        site.add(url, sample_html)

        async with site.client() as client:
            executor = _executor(client)
            await executor.scrape(url)

        assert site.requested("https://www.ftc.gov:8443/robots.txt") == 1
        assert executor.rate_limiter.request_count("www.ftc.gov") == 1
        assert [t.domain for t in executor.politeness.targets()] == ["www.ftc.gov"]


class TestCrawlDelay:
    """Tests for honoring robots.txt Crawl-delay."""

    @staticmethod
    def _recording_executor(client: httpx.AsyncClient, sleeps: list[float]) -> CrawlExecutor:
        async def sleep(seconds: float) -> None:
            sleeps.append(seconds)

        return CrawlExecutor(
            client=client,
            politeness=PolitenessEngine(client, user_agent=USER_AGENT),
            rate_limiter=SlidingWindowRateLimiter(
                RateLimitConfig(30, 0.5, 1.0), sleep=sleep, rng=lambda low, high: low
            ),
            user_agent=USER_AGENT,
        )

    @pytest.mark.asyncio
    async def test_crawl_delay_raises_wait(self, site: FakeSite):
        site.add(ROBOTS_URL, "User-agent: *\nCrawl-delay: 5\n", headers={"content-type": "text/plain"})
        sleeps: list[float] = []

        async with site.client() as client:
            await self._recording_executor(client, sleeps).scrape("https://www.ftc.gov/rules/breach")

        assert sleeps == [5.0]

    @pytest.mark.asyncio
    async def test_jitter_used_without_crawl_delay(self, site: FakeSite):
        sleeps: list[float] = []

        async with site.client() as client:
            await self._recording_executor(client, sleeps).scrape("https://www.ftc.gov/rules/breach")

        assert sleeps == [0.5]


class TestAuditLog:
    """Tests for the compliance audit log."""

    @pytest.mark.asyncio
    async def test_one_entry_per_attempt_in_order(self, site: FakeSite):
        async with site.client() as client:
            executor = _executor(client)
            await executor.scrape("https://www.ftc.gov/rules/breach")
            with pytest.raises(RobotsDisallowedError):
                await executor.scrape("https://www.ftc.gov/internal/x")
            with pytest.raises(FetchError):
                await executor.scrape("https://www.ftc.gov/nope")

        log = executor.audit_log()
        assert [e.url for e in log] == [
            "https://www.ftc.gov/rules/breach",
            "https://www.ftc.gov/internal/x",
            "https://www.ftc.gov/nope",
        ]
        assert [e.allowed for e in log] == [True, False, True]
        assert log[0].timestamp <= log[1].timestamp <= log[2].timestamp

    @pytest.mark.asyncio
    async def test_unparseable_robots_recorded(self):
        url = "https://www.ftc.gov/rules/breach"
        site = FakeSite().add(ROBOTS_URL, "User-agent: *\nCrawl-delay: soon\n", headers={"content-type": "text/plain"})

        async with site.client() as client:
            executor = _executor(client)
            with pytest.raises(RobotsParseError):
                await executor.scrape(url)

        assert site.requested(url) == 0
        [entry] = executor.audit_log()
        assert entry.url == url
        assert entry.allowed is False
        assert entry.reason.startswith("robots.txt unparseable: Invalid Crawl-delay")

    @pytest.mark.asyncio
    async def test_copy_and_clear(self, site: FakeSite):
        async with site.client() as client:
            executor = _executor(client)
            await executor.scrape("https://www.ftc.gov/rules/breach")

        snapshot = executor.audit_log()
        snapshot.clear()
        assert len(executor.audit_log()) == 1

        executor.clear_audit_log()
        assert executor.audit_log() == []


class TestLifecycle:
    """Tests for client ownership."""

    @pytest.mark.asyncio
    async def test_borrowed_client_left_open(self, site: FakeSite):
        async with site.client() as client:
            async with _executor(client):
                pass
            assert not client.is_closed

    @pytest.mark.asyncio
    async def test_from_settings_uses_crawler_settings(self):
        settings = Settings(crawler={"user_agent": "TestBot/2.0"}, rate_limit={"requests_per_minute": 7})

        executor = CrawlExecutor.from_settings(
            settings, rate_limit_overrides={"www.sec.gov": RateLimitConfig(10, 2.0, 4.0)}
        )
        async with executor:
            assert executor.user_agent == "TestBot/2.0"
            assert executor.politeness.user_agent == "TestBot/2.0"
            assert executor.rate_limiter.config_for("a.gov").requests_per_minute == 7
            assert executor.rate_limiter.config_for("www.sec.gov").requests_per_minute == 10

        assert executor._client.is_closed
