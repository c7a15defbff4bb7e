"""
Tests for the regulatory source catalog.
"""

from regwatch.config.settings import SourceOverride
from regwatch.crawler import RateLimitConfig
from regwatch.sources import (
    REGULATORY_SOURCES,
    get_source,
    rate_limit_overrides,
    sources_by_category,
    sources_by_jurisdiction,
)

DEFAULT = RateLimitConfig(requests_per_minute=30, min_delay_seconds=1.0, max_delay_seconds=3.0)


class TestCatalog:
    """Tests for catalog lookups."""

    def test_ids_unique(self):
        ids = [s.id for s in REGULATORY_SOURCES]

        assert len(ids) == len(set(ids))

    def test_get_source(self):
        source = get_source("us-sec")

        assert source.name == "U.S. Securities and Exchange Commission"
        assert source.domain == "www.sec.gov"
        assert source.rate_limit.requests_per_minute == 10

    def test_get_unknown(self):
        assert get_source("mars-sec") is None

    def test_by_jurisdiction(self):
        assert {s.id for s in sources_by_jurisdiction("UK")} == {"uk-ico", "uk-fca"}

    def test_by_category(self):
        healthcare = sources_by_category("healthcare")

        assert {s.id for s in healthcare} == {"us-hhs", "eu-ema"}

    def test_all_https(self):
        assert all(s.base_url.startswith("https://") for s in REGULATORY_SOURCES)


class TestRateLimitOverrides:
    """Tests for per-domain rate limit assembly."""

    def test_catalog_limits_only(self):
        limits = rate_limit_overrides(DEFAULT)

        assert limits == {"www.sec.gov": get_source("us-sec").rate_limit}

    def test_override_without_catalog_limit(self):
        limits = rate_limit_overrides(
            DEFAULT, [SourceOverride(id="us-ftc", requests_per_minute=5)]
        )

        assert limits["www.ftc.gov"] == RateLimitConfig(
            requests_per_minute=5, min_delay_seconds=1.0, max_delay_seconds=3.0
        )

    def test_override_merges_with_catalog_limit(self):
        limits = rate_limit_overrides(
            DEFAULT, [SourceOverride(id="us-sec", min_delay_seconds=0.5)]
        )

        assert limits["www.sec.gov"] == RateLimitConfig(
            requests_per_minute=10, min_delay_seconds=0.5, max_delay_seconds=4.0
        )

    def test_zero_delay_override_kept(self):
        limits = rate_limit_overrides(
            DEFAULT, [SourceOverride(id="uk-ico", min_delay_seconds=0.0, max_delay_seconds=0.0)]
        )

        assert limits["ico.org.uk"].min_delay_seconds == 0.0
        assert limits["ico.org.uk"].max_delay_seconds == 0.0

    def test_unknown_override_ignored(self):
        limits = rate_limit_overrides(DEFAULT, [SourceOverride(id="mars-sec", requests_per_minute=1)])

        assert set(limits) == {"www.sec.gov"}
