"""
Ingestion pipeline orchestration.

Turns one URL into a persisted raw document, an optional structured
regulation record and a set of embedded chunks:

    fetch -> persist -> clean -> extract -> embed

Fetch and persist are fatal: if either fails the run ends immediately
with status FAILED. Extraction and per-chunk embedding failures are
recorded and the run finishes as PARTIAL.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from regwatch.core.exceptions import PersistenceError, RegWatchError, StorageError
from regwatch.crawler.executor import CrawlExecutor, ScrapeResult
from regwatch.embeddings.base import EmbeddingService
from regwatch.processing.chunker import TextChunker
from regwatch.processing.cleaner import clean_html
from regwatch.processing.extractor import StructuredExtractor
from regwatch.storage.models import ChunkRecord, RegulationRecord, ScrapedContentRecord
from regwatch.storage.repositories import (
    ChunkRepository,
    RegulationRepository,
    ScrapedContentRepository,
)
from regwatch.utils.logging import get_logger, get_logger_with_context
from regwatch.utils.metrics import increment_chunks_embedded, record_pipeline_status

if TYPE_CHECKING:
    from regwatch.config.settings import PipelineSettings
    from regwatch.storage.database import Database

logger = get_logger(__name__)


class PipelineStatus(str, Enum):
    """Overall outcome of a pipeline run."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class PipelineStage(str, Enum):
    FETCH = "fetch"
    PERSIST = "persist"
    CLEAN = "clean"
    EXTRACT = "extract"
    EMBED = "embed"


@dataclass(frozen=True)
class StageOutcome:
    """How one stage went."""

    stage: PipelineStage
    succeeded: bool
    error: str | None = None
    duration_ms: float = 0.0


@dataclass
class PipelineRun:
    """
    Result of running the pipeline for one URL.

    Attributes:
        scraped_content_id: Raw document id, set once persistence succeeded
        regulation_id: Structured record id, set when extraction succeeded
        chunk_ids: Ids of chunks that were embedded and stored, in order
        status: Overall outcome
        errors: Human-readable errors in the order they occurred
        stages: Per-stage outcomes in execution order
        fatal_error: Exception that ended a FAILED run
    """

    source_id: str
    url: str
    scraped_content_id: str | None = None
    regulation_id: str | None = None
    chunk_ids: list[str] = field(default_factory=list)
    status: PipelineStatus = PipelineStatus.SUCCESS
    errors: list[str] = field(default_factory=list)
    stages: list[StageOutcome] = field(default_factory=list)
    fatal_error: BaseException | None = field(default=None, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.status != PipelineStatus.FAILED

    def stage(self, stage: PipelineStage) -> StageOutcome | None:
        return next((s for s in self.stages if s.stage == stage), None)


def _error_message(error: BaseException) -> str:
    if isinstance(error, RegWatchError):
        return error.message
    return str(error) or type(error).__name__


class IngestionPipeline:
    """
    Runs the ingestion stages for one URL at a time.

    Extraction and embedding are skipped when no extractor or embedding
    service is configured.

    Example:
        >>> pipeline = IngestionPipeline.from_database(db, executor, extractor, embedder)
        >>> run = await pipeline.run("us-ftc", "https://www.ftc.gov/legal-library")
        >>> run.status, len(run.chunk_ids)
        (<PipelineStatus.SUCCESS: 'success'>, 12)
    """

    def __init__(
        self,
        executor: CrawlExecutor,
        contents: ScrapedContentRepository,
        regulations: RegulationRepository,
        chunks: ChunkRepository,
        extractor: StructuredExtractor | None = None,
        embedder: EmbeddingService | None = None,
        chunker: TextChunker | None = None,
        extraction_char_budget: int = 8000,
        auto_process: bool = True,
        auto_embed: bool = True,
    ) -> None:
        self.executor = executor
        self.contents = contents
        self.regulations = regulations
        self.chunks = chunks
        self.extractor = extractor
        self.embedder = embedder
        self.chunker = chunker or TextChunker(chunk_size=1000, overlap=200)
        self.extraction_char_budget = extraction_char_budget
        self.auto_process = auto_process
        self.auto_embed = auto_embed

    @classmethod
    def from_database(
        cls,
        db: "Database",
        executor: CrawlExecutor,
        extractor: StructuredExtractor | None = None,
        embedder: EmbeddingService | None = None,
        settings: "PipelineSettings | None" = None,
    ) -> "IngestionPipeline":
        """Wire a pipeline to the repositories of one database."""
        kwargs = {}
        if settings is not None:
            kwargs = {
                "chunker": TextChunker(settings.chunk_size, settings.chunk_overlap),
                "extraction_char_budget": settings.extraction_char_budget,
                "auto_process": settings.auto_process,
                "auto_embed": settings.auto_embed,
            }
        return cls(
            executor=executor,
            contents=ScrapedContentRepository(db),
            regulations=RegulationRepository(db),
            chunks=ChunkRepository(db),
            extractor=extractor,
            embedder=embedder,
            **kwargs,
        )

    async def run(
        self,
        source_id: str,
        url: str,
        auto_process: bool | None = None,
        auto_embed: bool | None = None,
    ) -> PipelineRun:
        """
        Run every stage for ``url``.

        Never raises for stage failures; inspect the returned run.
        """
        auto_process = self.auto_process if auto_process is None else auto_process
        auto_embed = self.auto_embed if auto_embed is None else auto_embed
        run = PipelineRun(source_id=source_id, url=url)
        log = get_logger_with_context(__name__, source=source_id, url=url)

        # Stage 1: fetch
        started = time.perf_counter()
        try:
            result = await self.executor.scrape(url)
        except Exception as e:
            return self._fail(run, PipelineStage.FETCH, e, started, log)
        self._stage_ok(run, PipelineStage.FETCH, started)

        # Stage 2: persist raw content
        started = time.perf_counter()
        try:
            run.scraped_content_id = self._persist_content(source_id, result)
        except Exception as e:
            return self._fail(run, PipelineStage.PERSIST, e, started, log)
        self._stage_ok(run, PipelineStage.PERSIST, started)

        # Stage 3: clean
        started = time.perf_counter()
        text = clean_html(result.content)
        self._stage_ok(run, PipelineStage.CLEAN, started)

        if auto_process and self.extractor is not None:
            await self._extract(run, result, text, log)

        if auto_embed and self.embedder is not None:
            await self._embed(run, result, text, log)

        run.status = PipelineStatus.PARTIAL if run.errors else PipelineStatus.SUCCESS
        record_pipeline_status(run.status.value)
        log.info(
            f"Pipeline finished with status {run.status.value} "
            f"({len(run.chunk_ids)} chunks, {len(run.errors)} errors)"
        )
        return run

    def _stage_ok(self, run: PipelineRun, stage: PipelineStage, started: float) -> None:
        run.stages.append(
            StageOutcome(stage, True, duration_ms=(time.perf_counter() - started) * 1000)
        )

    def _stage_failed(
        self, run: PipelineRun, stage: PipelineStage, message: str, started: float
    ) -> None:
        run.errors.append(message)
        run.stages.append(
            StageOutcome(
                stage, False, error=message, duration_ms=(time.perf_counter() - started) * 1000
            )
        )

    def _fail(self, run, stage, error, started, log) -> PipelineRun:
        self._stage_failed(run, stage, _error_message(error), started)
        run.status = PipelineStatus.FAILED
        run.fatal_error = error
        record_pipeline_status(run.status.value)
        log.warning(f"Pipeline failed at {stage.value}: {error}")
        return run

    def _persist_content(self, source_id: str, result: ScrapeResult) -> str:
        record = ScrapedContentRecord(
            source_id=source_id,
            url=result.url,
            content=result.content,
            content_type=result.content_type,
            title=result.title,
            description=result.description,
            status_code=result.status_code,
            last_modified=result.last_modified,
            scraped_at=result.fetched_at,
        )
        try:
            return self.contents.insert(record)
        except StorageError as e:
            raise PersistenceError(
                f"Failed to store scraped content: {e.message}",
                entity="scraped_content",
            ) from e

    async def _extract(self, run: PipelineRun, result: ScrapeResult, text: str, log) -> None:
        started = time.perf_counter()
        try:
            document = await self.extractor.extract(
                text[: self.extraction_char_budget], result.url, result.title
            )
            record = RegulationRecord(
                scraped_content_id=run.scraped_content_id,
                title=document.title,
                summary=document.summary,
                effective_date=document.effective_date,
                jurisdiction=document.jurisdiction,
                affected_industries=list(document.affected_industries),
                category=document.category,
                priority=document.priority,
                key_requirements=list(document.key_requirements),
                source_url=document.source_url,
                last_updated=document.last_updated
                or datetime.now(timezone.utc).isoformat(),
            )
            run.regulation_id = self.regulations.insert(record)
        except Exception as e:
            log.warning(f"Structured extraction failed: {e}")
            self._stage_failed(
                run, PipelineStage.EXTRACT, f"Processing failed: {_error_message(e)}", started
            )
            return
        self._stage_ok(run, PipelineStage.EXTRACT, started)

    async def _embed(self, run: PipelineRun, result: ScrapeResult, text: str, log) -> None:
        started = time.perf_counter()
        errors_before = len(run.errors)
        chunks = self.chunker.chunk(text)
        log.debug(f"Created {len(chunks)} chunks for embedding")

        metadata = {
            "title": result.title,
            "url": result.url,
            "source_id": run.source_id,
            "scraped_at": result.fetched_at.isoformat(),
            "regulation_id": run.regulation_id,
        }

        for chunk in chunks:
            try:
                embedded = await self.embedder.embed(chunk.text)
                record = ChunkRecord(
                    scraped_content_id=run.scraped_content_id,
                    regulation_id=run.regulation_id,
                    chunk_index=chunk.index,
                    content=chunk.text,
                    embedding=embedded.embedding,
                    token_count=embedded.token_count,
                    metadata=dict(metadata),
                )
                run.chunk_ids.append(self.chunks.insert(record))
                increment_chunks_embedded()
            except Exception as e:
                log.warning(f"Chunk {chunk.index} failed: {e}")
                run.errors.append(f"Chunk {chunk.index} failed: {_error_message(e)}")

        failed = len(run.errors) - errors_before
        log.debug(f"Embedded {len(run.chunk_ids)}/{len(chunks)} chunks")
        run.stages.append(
            StageOutcome(
                PipelineStage.EMBED,
                failed == 0,
                error=f"{failed} of {len(chunks)} chunks failed" if failed else None,
                duration_ms=(time.perf_counter() - started) * 1000,
            )
        )
