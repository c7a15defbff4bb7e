"""
Crawler module for RegWatch.

Polite fetching of regulator pages: robots.txt evaluation, per-domain
rate limiting and the executor that combines them.
"""

from regwatch.crawler.robots import RobotsPolicy, AgentRules
from regwatch.crawler.politeness import PolitenessEngine, CrawlTarget, PolicyDecision
from regwatch.crawler.rate_limiter import (
    SlidingWindowRateLimiter,
    RateLimitConfig,
    DomainWindow,
)
from regwatch.crawler.executor import CrawlExecutor, ScrapeResult, AuditEntry

__all__ = [
    # Robots
    "RobotsPolicy",
    "AgentRules",
    "PolitenessEngine",
    "CrawlTarget",
    "PolicyDecision",
    # Rate limiting
    "SlidingWindowRateLimiter",
    "RateLimitConfig",
    "DomainWindow",
    # Executor
    "CrawlExecutor",
    "ScrapeResult",
    "AuditEntry",
]
