"""
Curated catalog of regulatory sources.

Official government and agency sites monitored for new regulation.
Sources may carry their own rate limit, which overrides the crawler
default for that source's domain.
"""

from dataclasses import dataclass
from typing import Iterable
from urllib.parse import urlparse

from regwatch.config.settings import SourceOverride
from regwatch.crawler.rate_limiter import RateLimitConfig


@dataclass(frozen=True)
class RegulatorySource:
    """A regulator website the crawler knows about."""

    id: str
    name: str
    jurisdiction: str
    base_url: str
    category: str
    rate_limit: RateLimitConfig | None = None

    @property
    def domain(self) -> str:
        return urlparse(self.base_url).hostname or ""


REGULATORY_SOURCES: tuple[RegulatorySource, ...] = (
    # United States
    RegulatorySource(
        id="us-sec",
        name="U.S. Securities and Exchange Commission",
        jurisdiction="US",
        base_url="https://www.sec.gov",
        category="financial",
        rate_limit=RateLimitConfig(
            requests_per_minute=10, min_delay_seconds=2.0, max_delay_seconds=4.0
        ),
    ),
    RegulatorySource(
        id="us-ftc",
        name="Federal Trade Commission",
        jurisdiction="US",
        base_url="https://www.ftc.gov",
        category="privacy",
    ),
    RegulatorySource(
        id="us-hhs",
        name="Department of Health and Human Services",
        jurisdiction="US",
        base_url="https://www.hhs.gov",
        category="healthcare",
    ),
    RegulatorySource(
        id="us-epa",
        name="Environmental Protection Agency",
        jurisdiction="US",
        base_url="https://www.epa.gov",
        category="environmental",
    ),
    RegulatorySource(
        id="us-cfpb",
        name="Consumer Financial Protection Bureau",
        jurisdiction="US",
        base_url="https://www.consumerfinance.gov",
        category="financial",
    ),
    # European Union
    RegulatorySource(
        id="eu-gdpr",
        name="European Data Protection Board",
        jurisdiction="EU",
        base_url="https://edpb.europa.eu",
        category="privacy",
    ),
    RegulatorySource(
        id="eu-eba",
        name="European Banking Authority",
        jurisdiction="EU",
        base_url="https://www.eba.europa.eu",
        category="financial",
    ),
    RegulatorySource(
        id="eu-ema",
        name="European Medicines Agency",
        jurisdiction="EU",
        base_url="https://www.ema.europa.eu",
        category="healthcare",
    ),
    # United Kingdom
    RegulatorySource(
        id="uk-ico",
        name="Information Commissioner's Office",
        jurisdiction="UK",
        base_url="https://ico.org.uk",
        category="privacy",
    ),
    RegulatorySource(
        id="uk-fca",
        name="Financial Conduct Authority",
        jurisdiction="UK",
        base_url="https://www.fca.org.uk",
        category="financial",
    ),
    # Canada
    RegulatorySource(
        id="ca-opc",
        name="Office of the Privacy Commissioner",
        jurisdiction="Canada",
        base_url="https://www.priv.gc.ca",
        category="privacy",
    ),
    RegulatorySource(
        id="ca-osfi",
        name="Office of the Superintendent of Financial Institutions",
        jurisdiction="Canada",
        base_url="https://www.osfi-bsif.gc.ca",
        category="financial",
    ),
)


def get_source(source_id: str) -> RegulatorySource | None:
    return next((s for s in REGULATORY_SOURCES if s.id == source_id), None)


def sources_by_jurisdiction(jurisdiction: str) -> list[RegulatorySource]:
    return [s for s in REGULATORY_SOURCES if s.jurisdiction == jurisdiction]


def sources_by_category(category: str) -> list[RegulatorySource]:
    return [s for s in REGULATORY_SOURCES if s.category == category]


def rate_limit_overrides(
    default: RateLimitConfig,
    overrides: Iterable[SourceOverride] = (),
    sources: Iterable[RegulatorySource] = REGULATORY_SOURCES,
) -> dict[str, RateLimitConfig]:
    """
    Build per-domain rate limits from the catalog and configured overrides.

    Configured overrides win over catalog values field by field; fields
    left unset fall back to the catalog entry, then to ``default``.
    """
    by_id = {o.id: o for o in overrides}
    result: dict[str, RateLimitConfig] = {}

    for source in sources:
        base = source.rate_limit or default
        override = by_id.get(source.id)
        if override is None:
            if source.rate_limit is not None:
                result[source.domain] = source.rate_limit
            continue

        result[source.domain] = RateLimitConfig(
            requests_per_minute=override.requests_per_minute or base.requests_per_minute,
            min_delay_seconds=(
                override.min_delay_seconds
                if override.min_delay_seconds is not None
                else base.min_delay_seconds
            ),
            max_delay_seconds=(
                override.max_delay_seconds
                if override.max_delay_seconds is not None
                else base.max_delay_seconds
            ),
        )

    return result
