"""
Repository classes for data access.

Typed interfaces over the Database for jobs, scraped content,
regulations and embedded chunks.
"""

import re
from datetime import datetime
from typing import Sequence

import numpy as np

from regwatch.embeddings.base import cosine_similarities, to_vector
from regwatch.storage.database import Database
from regwatch.storage.models import (
    ChunkMatch,
    ChunkRecord,
    JobRecord,
    JobStatus,
    RegulationRecord,
    ScrapedContentRecord,
    format_datetime,
)
from regwatch.utils.logging import get_logger

logger = get_logger(__name__)

_FTS_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


class JobRepository:
    """
    Repository for crawl jobs.

    Example:
        >>> repo = JobRepository(database)
        >>> job_id = repo.insert(JobRecord(source_id="us-sec", url="https://www.sec.gov"))
        >>> repo.claim(job_id, utcnow())
        True
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def insert(self, job: JobRecord) -> str:
        self.db.insert("jobs", job.to_dict())
        return job.id

    def insert_many(self, jobs: Sequence[JobRecord]) -> list[str]:
        """Insert jobs atomically; either all are created or none."""
        if not jobs:
            return []
        with self.db.transaction():
            for job in jobs:
                self.db.insert("jobs", job.to_dict())
        return [job.id for job in jobs]

    def get(self, job_id: str) -> JobRecord | None:
        row = self.db.fetch_one("SELECT * FROM jobs WHERE id = ?", (job_id,))
        return JobRecord.from_row(row) if row else None

    def select_next(self, now: datetime) -> JobRecord | None:
        """Highest-priority pending job due at ``now``; ties by earliest schedule."""
        row = self.db.fetch_one(
            """
            SELECT * FROM jobs
            WHERE status = ? AND scheduled_at <= ?
            ORDER BY priority DESC, scheduled_at ASC, created_at ASC
            LIMIT 1
            """,
            (JobStatus.PENDING.value, format_datetime(now)),
        )
        return JobRecord.from_row(row) if row else None

    def claim(self, job_id: str, now: datetime) -> bool:
        """
        Move a job from pending to running.

        Returns True only for the single caller whose update changed the row.
        """
        stamp = format_datetime(now)
        affected = self.db.update(
            "jobs",
            {
                "status": JobStatus.RUNNING.value,
                "started_at": stamp,
                "updated_at": stamp,
            },
            "id = ? AND status = ?",
            (job_id, JobStatus.PENDING.value),
        )
        return affected == 1

    def update(self, job: JobRecord, expected_status: JobStatus | None = None) -> bool:
        """
        Write a job's mutable fields.

        If ``expected_status`` is given the write only applies while the
        stored row is still in that state.
        """
        data = job.to_dict()
        for key in ("id", "source_id", "url", "created_at"):
            data.pop(key)

        where, params = "id = ?", (job.id,)
        if expected_status is not None:
            where += " AND status = ?"
            params += (expected_status.value,)

        return self.db.update("jobs", data, where, params) == 1

    def count_by_status(self) -> dict[str, int]:
        counts = {status.value: 0 for status in JobStatus}
        for row in self.db.fetch_all(
            "SELECT status, COUNT(*) AS n FROM jobs GROUP BY status"
        ):
            counts[row["status"]] = row["n"]
        return counts

    def requeue_stale(self, started_before: datetime, now: datetime) -> int:
        """Return running jobs started before the cutoff to pending."""
        stamp = format_datetime(now)
        return self.db.update(
            "jobs",
            {
                "status": JobStatus.PENDING.value,
                "started_at": None,
                "scheduled_at": stamp,
                "updated_at": stamp,
            },
            "status = ? AND started_at < ?",
            (JobStatus.RUNNING.value, format_datetime(started_before)),
        )


class ScrapedContentRepository:
    """Repository for raw fetched documents."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def insert(self, record: ScrapedContentRecord) -> str:
        self.db.insert("scraped_content", record.to_dict())
        return record.id

    def get(self, content_id: str) -> ScrapedContentRecord | None:
        row = self.db.fetch_one(
            "SELECT * FROM scraped_content WHERE id = ?", (content_id,)
        )
        return ScrapedContentRecord.from_row(row) if row else None

    def count(self) -> int:
        row = self.db.fetch_one("SELECT COUNT(*) AS n FROM scraped_content")
        return row["n"] if row else 0


class RegulationRepository:
    """Repository for structured regulation records, with title search."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def insert(self, record: RegulationRecord) -> str:
        self.db.insert("regulations", record.to_dict())
        return record.id

    def get(self, regulation_id: str) -> RegulationRecord | None:
        row = self.db.fetch_one(
            "SELECT * FROM regulations WHERE id = ?", (regulation_id,)
        )
        return RegulationRecord.from_row(row) if row else None

    def get_many(self, regulation_ids: Sequence[str]) -> dict[str, RegulationRecord]:
        """Fetch regulations by id; unknown ids are absent from the result."""
        ids = list(dict.fromkeys(regulation_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" * len(ids))
        rows = self.db.fetch_all(
            f"SELECT * FROM regulations WHERE id IN ({placeholders})", tuple(ids)
        )
        return {row["id"]: RegulationRecord.from_row(row) for row in rows}

    def search_titles(
        self,
        query: str,
        jurisdictions: Sequence[str] = (),
        categories: Sequence[str] = (),
        priorities: Sequence[str] = (),
        effective_from: str | None = None,
        effective_to: str | None = None,
        limit: int = 10,
    ) -> list[RegulationRecord]:
        """
        Full-text search over regulation titles.

        Every word of ``query`` must appear in the title. Filters narrow
        the match in SQL; results come back in FTS rank order.
        """
        tokens = _FTS_TOKEN_RE.findall(query)
        if not tokens:
            return []

        match_expr = " ".join(f'"{token}"' for token in tokens)
        clauses = ["regulations_fts MATCH ?"]
        params: list = [match_expr]

        for column, values in (
            ("jurisdiction", jurisdictions),
            ("category", categories),
            ("priority", priorities),
        ):
            if values:
                clauses.append(f"r.{column} IN ({', '.join('?' * len(values))})")
                params.extend(values)

        if effective_from is not None or effective_to is not None:
            clauses.append("r.effective_date IS NOT NULL")
        if effective_from is not None:
            clauses.append("r.effective_date >= ?")
            params.append(effective_from)
        if effective_to is not None:
            clauses.append("r.effective_date <= ?")
            params.append(effective_to)

        params.append(limit)
        rows = self.db.fetch_all(
            f"""
            SELECT r.* FROM regulations_fts
            JOIN regulations r ON r.rowid = regulations_fts.rowid
            WHERE {' AND '.join(clauses)}
            ORDER BY regulations_fts.rank
            LIMIT ?
            """,
            tuple(params),
        )
        return [RegulationRecord.from_row(row) for row in rows]


class ChunkRepository:
    """
    Repository for embedded chunks.

    Nearest-neighbor matching is a brute-force cosine scan in numpy.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def insert(self, chunk: ChunkRecord) -> str:
        self.db.insert("chunks", chunk.to_dict())
        return chunk.id

    def get(self, chunk_id: str) -> ChunkRecord | None:
        row = self.db.fetch_one("SELECT * FROM chunks WHERE id = ?", (chunk_id,))
        return ChunkRecord.from_row(row) if row else None

    def list_for_content(self, scraped_content_id: str) -> list[ChunkRecord]:
        rows = self.db.fetch_all(
            "SELECT * FROM chunks WHERE scraped_content_id = ? ORDER BY chunk_index",
            (scraped_content_id,),
        )
        return [ChunkRecord.from_row(row) for row in rows]

    def match(self, vector, threshold: float, count: int) -> list[ChunkMatch]:
        """
        Chunks whose cosine similarity to ``vector`` exceeds ``threshold``.

        Returns at most ``count`` matches, most similar first. Stored
        vectors of a different dimension are skipped.
        """
        if count <= 0:
            return []

        query = to_vector(vector)
        rows = self.db.fetch_all("SELECT id, embedding FROM chunks")

        ids: list[str] = []
        vectors: list[np.ndarray] = []
        for row in rows:
            stored = np.frombuffer(row["embedding"], dtype=np.float32)
            if stored.shape[0] != query.shape[0]:
                continue
            ids.append(row["id"])
            vectors.append(stored)

        if not vectors:
            return []

        scores = cosine_similarities(query, np.vstack(vectors))
        order = np.argsort(-scores, kind="stable")

        matches: list[ChunkMatch] = []
        for i in order:
            score = float(scores[i])
            if score <= threshold:
                break
            chunk = self.get(ids[i])
            if chunk is not None:
                matches.append(ChunkMatch(chunk=chunk, similarity=score))
            if len(matches) >= count:
                break

        return matches
