"""
Data models for the storage layer.

Dataclasses representing database rows, with to_dict() for writing and
from_row() for reading. Timestamps are stored as UTC ISO-8601 strings
with microsecond precision so that they sort lexically.
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import numpy as np


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_datetime(value: datetime | None) -> str | None:
    """Serialize a datetime as a sortable UTC ISO string."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_datetime(value: Any) -> datetime | None:
    """Parse datetime from database value."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


class JobStatus(str, Enum):
    """Lifecycle state of a crawl job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_transition_to(self, target: "JobStatus") -> bool:
        return target in _JOB_TRANSITIONS[self]


_JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING}),
    JobStatus.RUNNING: frozenset(
        {JobStatus.COMPLETED, JobStatus.PENDING, JobStatus.FAILED}
    ),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


@dataclass
class JobRecord:
    """A unit of crawl work: fetch one URL for one source."""

    source_id: str
    url: str
    id: str = field(default_factory=new_id)
    status: JobStatus = JobStatus.PENDING
    priority: int = 0
    scheduled_at: datetime = field(default_factory=utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None
    retry_count: int = 0
    max_retries: int = 3
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def retries_remaining(self) -> int:
        return max(self.max_retries - self.retry_count, 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "url": self.url,
            "status": self.status.value,
            "priority": self.priority,
            "scheduled_at": format_datetime(self.scheduled_at),
            "started_at": format_datetime(self.started_at),
            "completed_at": format_datetime(self.completed_at),
            "error_message": self.error_message,
            "retry_count": self.retry_count,
            "max_retries": self.max_retries,
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
        }

    @classmethod
    def from_row(cls, row: dict) -> "JobRecord":
        return cls(
            id=row["id"],
            source_id=row["source_id"],
            url=row["url"],
            status=JobStatus(row["status"]),
            priority=row.get("priority", 0),
            scheduled_at=_parse_datetime(row.get("scheduled_at")),
            started_at=_parse_datetime(row.get("started_at")),
            completed_at=_parse_datetime(row.get("completed_at")),
            error_message=row.get("error_message"),
            retry_count=row.get("retry_count", 0),
            max_retries=row.get("max_retries", 3),
            created_at=_parse_datetime(row.get("created_at")),
            updated_at=_parse_datetime(row.get("updated_at")),
        )


@dataclass
class ScrapedContentRecord:
    """Raw fetched document as persisted by the pipeline."""

    source_id: str
    url: str
    content: str
    content_type: str = "text/html"
    title: str | None = None
    description: str | None = None
    status_code: int | None = None
    last_modified: str | None = None
    scraped_at: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=new_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "url": self.url,
            "content": self.content,
            "content_type": self.content_type,
            "title": self.title,
            "description": self.description,
            "status_code": self.status_code,
            "last_modified": self.last_modified,
            "scraped_at": format_datetime(self.scraped_at),
        }

    @classmethod
    def from_row(cls, row: dict) -> "ScrapedContentRecord":
        return cls(
            id=row["id"],
            source_id=row["source_id"],
            url=row["url"],
            content=row["content"],
            content_type=row.get("content_type") or "text/html",
            title=row.get("title"),
            description=row.get("description"),
            status_code=row.get("status_code"),
            last_modified=row.get("last_modified"),
            scraped_at=_parse_datetime(row.get("scraped_at")),
        )


@dataclass
class RegulationRecord:
    """Structured regulation extracted from one scraped document."""

    title: str
    summary: str = ""
    scraped_content_id: str | None = None
    effective_date: str | None = None
    jurisdiction: str | None = None
    affected_industries: list[str] = field(default_factory=list)
    category: str | None = None
    priority: str | None = None
    key_requirements: list[str] = field(default_factory=list)
    source_url: str | None = None
    last_updated: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=new_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "scraped_content_id": self.scraped_content_id,
            "title": self.title,
            "summary": self.summary,
            "effective_date": self.effective_date,
            "jurisdiction": self.jurisdiction,
            "affected_industries": json.dumps(self.affected_industries),
            "category": self.category,
            "priority": self.priority,
            "key_requirements": json.dumps(self.key_requirements),
            "source_url": self.source_url,
            "last_updated": self.last_updated,
            "created_at": format_datetime(self.created_at),
        }

    @classmethod
    def from_row(cls, row: dict) -> "RegulationRecord":
        return cls(
            id=row["id"],
            scraped_content_id=row.get("scraped_content_id"),
            title=row["title"],
            summary=row.get("summary") or "",
            effective_date=row.get("effective_date"),
            jurisdiction=row.get("jurisdiction"),
            affected_industries=json.loads(row.get("affected_industries") or "[]"),
            category=row.get("category"),
            priority=row.get("priority"),
            key_requirements=json.loads(row.get("key_requirements") or "[]"),
            source_url=row.get("source_url"),
            last_updated=row.get("last_updated"),
            created_at=_parse_datetime(row.get("created_at")),
        )


@dataclass
class ChunkRecord:
    """
    An embedded slice of a scraped document.

    Immutable once persisted.
    """

    scraped_content_id: str
    chunk_index: int
    content: str
    embedding: np.ndarray
    token_count: int = 0
    regulation_id: str | None = None
    metadata: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=new_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "scraped_content_id": self.scraped_content_id,
            "regulation_id": self.regulation_id,
            "chunk_index": self.chunk_index,
            "content": self.content,
            "embedding": np.asarray(self.embedding, dtype=np.float32).tobytes(),
            "token_count": self.token_count,
            "metadata": json.dumps(self.metadata),
            "created_at": format_datetime(self.created_at),
        }

    @classmethod
    def from_row(cls, row: dict) -> "ChunkRecord":
        return cls(
            id=row["id"],
            scraped_content_id=row["scraped_content_id"],
            regulation_id=row.get("regulation_id"),
            chunk_index=row["chunk_index"],
            content=row["content"],
            embedding=np.frombuffer(row["embedding"], dtype=np.float32).copy(),
            token_count=row.get("token_count", 0),
            metadata=json.loads(row.get("metadata") or "{}"),
            created_at=_parse_datetime(row.get("created_at")),
        )


@dataclass
class ChunkMatch:
    """A chunk returned by nearest-neighbor matching."""

    chunk: ChunkRecord
    similarity: float
