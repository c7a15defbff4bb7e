"""
Storage module for RegWatch.

SQLite persistence for the job queue, raw fetched content, structured
regulations and embedded chunks.
"""

from regwatch.storage.database import Database
from regwatch.storage.models import (
    JobStatus,
    JobRecord,
    ScrapedContentRecord,
    RegulationRecord,
    ChunkRecord,
    ChunkMatch,
)
from regwatch.storage.repositories import (
    JobRepository,
    ScrapedContentRepository,
    RegulationRepository,
    ChunkRepository,
)
from regwatch.storage.schema import SchemaManager, SCHEMA_VERSION

__all__ = [
    # Database
    "Database",
    "SchemaManager",
    "SCHEMA_VERSION",
    # Models
    "JobStatus",
    "JobRecord",
    "ScrapedContentRecord",
    "RegulationRecord",
    "ChunkRecord",
    "ChunkMatch",
    # Repositories
    "JobRepository",
    "ScrapedContentRepository",
    "RegulationRepository",
    "ChunkRepository",
]
