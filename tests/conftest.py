"""
Shared pytest fixtures for RegWatch tests.

Provides reusable fixtures for:
- Configuration and settings
- Database instances and repositories
- Sample regulatory pages
- Global state isolation (metrics, settings cache, logging)
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from regwatch.config import Settings, reset_settings
from regwatch.storage import (
    ChunkRepository,
    Database,
    JobRepository,
    RegulationRepository,
    ScrapedContentRepository,
)
from regwatch.utils.logging import reset_logging
from regwatch.utils.metrics import Metrics

USER_AGENT = "RegulatoryComplianceBot/1.0; +https://assurecode.com/bot.html"


@pytest.fixture(autouse=True)
def reset_global_state():
    """Isolate process-wide singletons between tests."""
    Metrics.reset()
    reset_settings()
    yield
    Metrics.reset()
    reset_settings()
    reset_logging()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that's cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Settings pointing at a temporary database, with the local LLM disabled."""
    return Settings(
        storage={"database_path": str(temp_dir / "test.db")},
        local_llm={"enabled": False},
    )


@pytest.fixture
def database(test_settings: Settings) -> Generator[Database, None, None]:
    """Provide a fresh initialized database."""
    db = Database.from_settings(test_settings)
    yield db
    db.close()


@pytest.fixture
def job_repo(database: Database) -> JobRepository:
    return JobRepository(database)


@pytest.fixture
def content_repo(database: Database) -> ScrapedContentRepository:
    return ScrapedContentRepository(database)


@pytest.fixture
def regulation_repo(database: Database) -> RegulationRepository:
    return RegulationRepository(database)


@pytest.fixture
def chunk_repo(database: Database) -> ChunkRepository:
    return ChunkRepository(database)


@pytest.fixture
def sample_html() -> str:
    """A small regulator notice page."""
    return """
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta name="description" content="Final rule on breach notification">
        <title>Data Breach Notification Rule</title>
        <style>body { font-family: sans-serif; }</style>
        <script>window.analytics = {};</script>
    </head>
    <body>
        <h1>Data Breach Notification Rule</h1>
        <p>Covered entities must notify affected customers within 30 days.
        Notices must describe the breach &amp; the data involved.</p>
        <p>The rule takes effect on June 1, 2024.</p>
    </body>
    </html>
    """
