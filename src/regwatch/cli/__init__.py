"""
CLI module for RegWatch.

Provides command-line interface using Typer:
- submit / submit-bulk / sources --enqueue: Queue crawl jobs
- drain: Run due jobs through the ingestion pipeline
- stats / job / requeue-stale: Inspect and maintain the queue
- search: Query ingested regulations
"""

from regwatch.cli.main import app

__all__ = ["app"]
