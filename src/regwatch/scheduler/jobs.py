"""
Crawl job scheduling.

Jobs live in the jobs table and move through a small state machine:

    pending -> running -> completed
                       -> pending   (retry with exponential backoff)
                       -> failed    (not retryable, or retries exhausted)

Several worker processes may drain the same database; a job is owned by
whichever worker's conditional claim update changes the row.
"""

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Iterable

from regwatch.core.exceptions import (
    InvalidJobTransitionError,
    JobError,
    JobNotFoundError,
    get_retry_delay,
    is_retryable,
)
from regwatch.pipeline.orchestrator import IngestionPipeline, PipelineStatus
from regwatch.storage.models import JobRecord, JobStatus, utcnow
from regwatch.storage.repositories import JobRepository
from regwatch.utils.logging import get_logger, get_logger_with_context
from regwatch.utils.metrics import record_job_outcome

if TYPE_CHECKING:
    from regwatch.config.settings import SchedulerSettings
    from regwatch.sources import RegulatorySource

logger = get_logger(__name__)


def _transition(job: JobRecord, target: JobStatus) -> None:
    if not job.status.can_transition_to(target):
        raise InvalidJobTransitionError(job.id, job.status.value, target.value)
    job.status = target


class JobScheduler:
    """
    Priority job queue with failure-driven backoff.

    Example:
        >>> scheduler = JobScheduler(JobRepository(db), pipeline)
        >>> scheduler.submit("us-ftc", "https://www.ftc.gov/legal-library", priority=5)
        >>> processed = await scheduler.drain_queue()
    """

    def __init__(
        self,
        jobs: JobRepository,
        pipeline: IngestionPipeline | None = None,
        max_retries: int = 3,
        backoff_base_seconds: float = 60.0,
        drain_batch_size: int = 5,
        stale_job_timeout_seconds: float = 1800.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            jobs: Job repository
            pipeline: Pipeline run for every claimed job; submission-only
                schedulers may omit it
            max_retries: Retry budget given to new jobs
            backoff_base_seconds: Delay before the first retry; doubles each time
            drain_batch_size: Default number of jobs per drain_queue() call
            stale_job_timeout_seconds: Default cutoff for requeue_stale()
            clock: Source of the current UTC time
        """
        self.jobs = jobs
        self.pipeline = pipeline
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds
        self.drain_batch_size = drain_batch_size
        self.stale_job_timeout_seconds = stale_job_timeout_seconds
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: "SchedulerSettings",
        jobs: JobRepository,
        pipeline: IngestionPipeline | None = None,
    ) -> "JobScheduler":
        return cls(
            jobs,
            pipeline,
            max_retries=settings.max_retries,
            backoff_base_seconds=settings.backoff_base_seconds,
            drain_batch_size=settings.drain_batch_size,
            stale_job_timeout_seconds=settings.stale_job_timeout_seconds,
        )

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def _new_job(
        self,
        source_id: str,
        url: str,
        priority: int,
        scheduled_at: datetime | None,
        max_retries: int | None,
    ) -> JobRecord:
        now = self._clock()
        return JobRecord(
            source_id=source_id,
            url=url,
            priority=priority,
            scheduled_at=scheduled_at or now,
            max_retries=self.max_retries if max_retries is None else max_retries,
            created_at=now,
            updated_at=now,
        )

    def submit(
        self,
        source_id: str,
        url: str,
        priority: int = 0,
        scheduled_at: datetime | None = None,
        max_retries: int | None = None,
    ) -> str:
        """Enqueue one URL and return the new job id."""
        job = self._new_job(source_id, url, priority, scheduled_at, max_retries)
        self.jobs.insert(job)
        logger.info(f"Submitted job {job.id} for {url} (priority {priority})")
        return job.id

    def submit_many(
        self,
        source_id: str,
        urls: Iterable[str],
        priority: int = 0,
    ) -> list[str]:
        """Enqueue several URLs in one transaction."""
        jobs = [self._new_job(source_id, url, priority, None, None) for url in urls]
        ids = self.jobs.insert_many(jobs)
        logger.info(f"Submitted {len(ids)} jobs for source {source_id}")
        return ids

    def submit_source(self, source: "RegulatorySource", priority: int = 0) -> str:
        """Enqueue a catalog source's landing page."""
        return self.submit(source.id, source.base_url, priority=priority)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def next(self) -> JobRecord | None:
        """Highest-priority pending job that is due now."""
        return self.jobs.select_next(self._clock())

    async def execute(self, job: JobRecord) -> JobRecord | None:
        """
        Claim and run one job.

        Returns:
            The job in its new state, or None if another worker claimed it first

        Raises:
            JobError: If the scheduler was built without a pipeline
        """
        if self.pipeline is None:
            raise JobError("Scheduler has no pipeline to run jobs")

        now = self._clock()
        if not self.jobs.claim(job.id, now):
            logger.debug(f"Job {job.id} was claimed by another worker")
            return None

        job.status = JobStatus.RUNNING
        job.started_at = now
        job.updated_at = now
        log = get_logger_with_context(__name__, job_id=job.id, url=job.url)
        log.info("Job started")

        error: BaseException | None = None
        message: str | None = None
        try:
            run = await self.pipeline.run(job.source_id, job.url)
        except Exception as e:
            log.exception("Pipeline raised")
            error, message = e, str(e) or type(e).__name__
        else:
            if run.status == PipelineStatus.FAILED:
                error = run.fatal_error
                message = run.errors[-1] if run.errors else "Pipeline failed"
            else:
                self._complete(job, "; ".join(run.errors) or None)
                log.info(f"Job completed ({run.status.value})")

        if message is not None:
            self._handle_failure(job, error, message, log)

        if not self.jobs.update(job, expected_status=JobStatus.RUNNING):
            log.warning("Job row changed while running; result not recorded")
        return job

    def _complete(self, job: JobRecord, error_message: str | None) -> None:
        now = self._clock()
        _transition(job, JobStatus.COMPLETED)
        job.completed_at = now
        job.updated_at = now
        job.error_message = error_message
        record_job_outcome("completed")

    def _handle_failure(
        self,
        job: JobRecord,
        error: BaseException | None,
        message: str,
        log,
    ) -> None:
        now = self._clock()
        job.error_message = message
        job.updated_at = now

        if error is not None and not is_retryable(error):
            _transition(job, JobStatus.FAILED)
            job.completed_at = now
            record_job_outcome("failed")
            log.warning(f"Job failed permanently: {message}")
            return

        if job.retry_count < job.max_retries:
            backoff = self.backoff_base_seconds * 2**job.retry_count
            delay = max(backoff, get_retry_delay(error, default=0.0))
            _transition(job, JobStatus.PENDING)
            job.retry_count += 1
            job.started_at = None
            job.scheduled_at = now + timedelta(seconds=delay)
            record_job_outcome("retried")
            log.info(
                f"Retry {job.retry_count}/{job.max_retries} scheduled in {delay:.0f}s: {message}"
            )
            return

        _transition(job, JobStatus.FAILED)
        job.completed_at = now
        record_job_outcome("failed")
        log.warning(f"Job failed after {job.retry_count} retries: {message}")

    async def drain_queue(self, max_jobs: int | None = None) -> int:
        """
        Run due jobs one after another.

        Stops after ``max_jobs`` jobs (default ``drain_batch_size``) or when
        nothing is due. Jobs lost to another worker are not counted.
        """
        limit = self.drain_batch_size if max_jobs is None else max_jobs
        processed = 0
        attempts = 0

        # Lost claims still consume an attempt so a busy queue cannot spin.
        while attempts < limit:
            job = self.next()
            if job is None:
                break
            attempts += 1
            if await self.execute(job) is not None:
                processed += 1

        logger.info(f"Drained {processed} jobs")
        return processed

    # -------------------------------------------------------------------------
    # Inspection and maintenance
    # -------------------------------------------------------------------------

    def stats(self) -> dict[str, int]:
        """Job counts per status."""
        return self.jobs.count_by_status()

    def get_job(self, job_id: str) -> JobRecord:
        """
        Current state of a job.

        Raises:
            JobNotFoundError: If no job has that id
        """
        job = self.jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def requeue_stale(self, older_than: timedelta | None = None) -> int:
        """Return jobs stuck in running for longer than ``older_than`` to pending."""
        now = self._clock()
        cutoff = now - (older_than or timedelta(seconds=self.stale_job_timeout_seconds))
        count = self.jobs.requeue_stale(cutoff, now)
        if count:
            logger.warning(f"Requeued {count} stale running jobs")
        return count
