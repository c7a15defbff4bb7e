"""
Job scheduling for RegWatch.

Priority queue of crawl jobs with retry and backoff.
"""

from regwatch.scheduler.jobs import JobScheduler

__all__ = ["JobScheduler"]
