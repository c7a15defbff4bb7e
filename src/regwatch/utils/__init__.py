"""
Utilities module for RegWatch.

Provides logging setup and in-process metrics.
"""

from regwatch.utils.logging import setup_logging, get_logger, get_logger_with_context
from regwatch.utils.metrics import (
    Metrics,
    TimingStats,
    increment_pages_fetched,
    increment_robots_blocked,
    increment_fetch_errors,
    increment_chunks_embedded,
    record_pipeline_status,
    record_job_outcome,
    time_search,
    time_extraction,
)

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "get_logger_with_context",
    # Metrics
    "Metrics",
    "TimingStats",
    "increment_pages_fetched",
    "increment_robots_blocked",
    "increment_fetch_errors",
    "increment_chunks_embedded",
    "record_pipeline_status",
    "record_job_outcome",
    "time_search",
    "time_extraction",
]
