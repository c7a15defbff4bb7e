"""
Tests for the politeness engine (robots.txt fetch and cache).
"""

import httpx
import pytest

from regwatch.core.exceptions import RobotsParseError
from regwatch.crawler.politeness import PolitenessEngine
from tests.conftest import USER_AGENT
from tests.fakes import FakeClock, FakeSite

ROBOTS_URL = "https://www.ftc.gov/robots.txt"


def _engine(client: httpx.AsyncClient, **kwargs) -> PolitenessEngine:
    return PolitenessEngine(client, user_agent=USER_AGENT, **kwargs)


class TestCheck:
    """Tests for PolitenessEngine.check."""

    @pytest.mark.asyncio
    async def test_allowed(self):
        site = FakeSite().add(ROBOTS_URL, "User-agent: *\nDisallow: /admin\n", headers={})

        async with site.client() as client:
            decision = await _engine(client).check("https://www.ftc.gov/legal-library")

        assert decision.allowed
        assert decision.reason == "Allowed by robots.txt"

    @pytest.mark.asyncio
    async def test_blocked(self):
        site = FakeSite().add(ROBOTS_URL, "User-agent: *\nDisallow: /admin\n", headers={})

        async with site.client() as client:
            decision = await _engine(client).check("https://www.ftc.gov/admin/users")

        assert not decision.allowed
        assert decision.reason == "Blocked by robots.txt"

    @pytest.mark.asyncio
    async def test_sends_user_agent(self):
        site = FakeSite().add(ROBOTS_URL, "", headers={})

        async with site.client() as client:
            await _engine(client).check("https://www.ftc.gov/")

        assert site.requests[0].headers["User-Agent"] == USER_AGENT

    @pytest.mark.asyncio
    async def test_missing_robots_fails_open(self):
        """A 404 robots.txt leaves the domain unrestricted."""
        site = FakeSite()

        async with site.client() as client:
            decision = await _engine(client).check("https://www.ftc.gov/anything")

        assert decision.allowed
        assert decision.reason == "No robots.txt policy"

    @pytest.mark.asyncio
    async def test_transport_error_fails_open(self, caplog):
        site = FakeSite().fail(ROBOTS_URL, httpx.ConnectError("refused"))

        async with site.client() as client:
            decision = await _engine(client).check("https://www.ftc.gov/anything")

        assert decision.allowed
        assert "unreachable" in caplog.text

    @pytest.mark.asyncio
    async def test_malformed_robots_raises(self):
        site = FakeSite().add(ROBOTS_URL, "User-agent: *\nCrawl-delay: later\n", headers={})

        async with site.client() as client:
            with pytest.raises(RobotsParseError):
                await _engine(client).check("https://www.ftc.gov/")

    @pytest.mark.asyncio
    async def test_disabled(self):
        site = FakeSite().add(ROBOTS_URL, "User-agent: *\nDisallow: /\n", headers={})

        async with site.client() as client:
            decision = await _engine(client, respect_robots=False).check("https://www.ftc.gov/")

        assert decision.allowed
        assert site.requests == []


class TestCache:
    """Tests for per-domain caching and expiry."""

    @pytest.mark.asyncio
    async def test_fetched_once_per_domain(self):
        site = FakeSite().add(ROBOTS_URL, "User-agent: *\nDisallow: /x\n", headers={})

        async with site.client() as client:
            engine = _engine(client)
            await engine.check("https://www.ftc.gov/a")
            await engine.check("https://www.ftc.gov/b")

        assert site.requested(ROBOTS_URL) == 1
        assert [t.domain for t in engine.targets()] == ["www.ftc.gov"]

    @pytest.mark.asyncio
    async def test_refetched_after_ttl(self):
        site = FakeSite().add(ROBOTS_URL, "User-agent: *\nDisallow: /x\n", headers={})
        clock = FakeClock()

        async with site.client() as client:
            engine = _engine(client, cache_ttl_seconds=3600, clock=clock)
            await engine.check("https://www.ftc.gov/a")
            clock.advance(3599)
            await engine.check("https://www.ftc.gov/a")
            clock.advance(1)
            await engine.check("https://www.ftc.gov/a")

        assert site.requested(ROBOTS_URL) == 2

    @pytest.mark.asyncio
    async def test_policy_change_after_expiry(self):
        site = FakeSite().add(ROBOTS_URL, "User-agent: *\nDisallow: /\n", headers={})
        clock = FakeClock()

        async with site.client() as client:
            engine = _engine(client, cache_ttl_seconds=60, clock=clock)
            assert not (await engine.check("https://www.ftc.gov/news")).allowed

            site.add(ROBOTS_URL, "User-agent: *\nDisallow: /admin\n", headers={})
            clock.advance(61)
            assert (await engine.check("https://www.ftc.gov/news")).allowed

    @pytest.mark.asyncio
    async def test_invalidate(self):
        site = FakeSite().add(ROBOTS_URL, "", headers={})

        async with site.client() as client:
            engine = _engine(client)
            await engine.check("https://www.ftc.gov/a")
            engine.invalidate("WWW.FTC.GOV")
            await engine.check("https://www.ftc.gov/a")

        assert site.requested(ROBOTS_URL) == 2

    @pytest.mark.asyncio
    async def test_crawl_delay(self):
        site = FakeSite().add(ROBOTS_URL, "User-agent: *\nCrawl-delay: 4\n", headers={})

        async with site.client() as client:
            delay = await _engine(client).crawl_delay("https://www.ftc.gov/a")

        assert delay == 4.0
