"""
RegWatch exception hierarchy.

Every error raised on purpose derives from RegWatchError. Whether the
scheduler retries a failed job is decided by the class: subclasses of
RetryableError are transient, the rest are permanent.

    RegWatchError
    ├── ConfigurationError
    ├── CrawlerError
    │   ├── RobotsDisallowedError
    │   ├── RobotsParseError
    │   └── FetchError             (retryable)
    ├── StorageError
    │   ├── DatabaseError
    │   └── PersistenceError       (retryable)
    ├── ExtractionError
    │   └── StructuredExtractionError
    ├── LLMError
    │   ├── ModelLoadError
    │   └── InferenceError         (retryable)
    ├── EmbeddingError             (retryable)
    ├── RetrievalError
    └── JobError
        ├── JobNotFoundError
        └── InvalidJobTransitionError
"""

from typing import Any


class RegWatchError(Exception):
    """
    Base class carrying a message and a dict of context.

    Keyword context passed by subclasses is copied into ``details``
    unless it is None, so ``str(error)`` only shows what is known.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})
        self.details.update((k, v) for k, v in context.items() if v is not None)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        rendered = ", ".join(f"{key}={value!r}" for key, value in self.details.items())
        return f"{self.message} ({rendered})"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, details={self.details!r})"


class RetryableError(RegWatchError):
    """Transient failure; ``retry_after`` is the server's or caller's hint in seconds."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        retry_after: float | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message, details, **context)
        self.retry_after = retry_after


class ConfigurationError(RegWatchError):
    """regwatch.yaml or an environment override could not be turned into Settings."""


# Crawling


class CrawlerError(RegWatchError):
    pass


class RobotsDisallowedError(CrawlerError):
    """
    robots.txt refuses the URL for our user agent.

    Permanent: the same URL is refused again until the site changes
    its rules.
    """

    def __init__(
        self,
        message: str,
        url: str,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details, url=url, user_agent=user_agent)
        self.url = url
        self.user_agent = user_agent


class RobotsParseError(CrawlerError):
    """A robots.txt was fetched but contains a directive we cannot interpret."""

    def __init__(
        self,
        message: str,
        line_number: int | None = None,
        line: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details, line_number=line_number, line=line)
        self.line_number = line_number
        self.line = line


class FetchError(CrawlerError, RetryableError):
    """Non-2xx response, timeout or connection failure while fetching a page."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(
            message, details, retry_after=retry_after, url=url, status_code=status_code
        )
        self.url = url
        self.status_code = status_code


# Storage


class StorageError(RegWatchError):
    pass


class DatabaseError(StorageError):
    """An SQLite statement or connection failed."""

    def __init__(
        self,
        message: str,
        query: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        shown = query if query is None or len(query) <= 200 else query[:200] + "..."
        super().__init__(message, details, query=shown)
        self.query = query


class PersistenceError(StorageError, RetryableError):
    """A pipeline artifact (scraped content, regulation, chunk) could not be written."""

    def __init__(
        self,
        message: str,
        entity: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details, entity=entity)
        self.entity = entity


# Extraction and models


class ExtractionError(RegWatchError):
    pass


class StructuredExtractionError(ExtractionError):
    """Model output could not be parsed or validated as a regulation record."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details, url=url)
        self.url = url


class LLMError(RegWatchError):
    pass


class ModelLoadError(LLMError):
    """Weights or tokenizer for the extraction model could not be loaded."""

    def __init__(
        self,
        message: str,
        model_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details, model_name=model_name)
        self.model_name = model_name


class InferenceError(LLMError, RetryableError):
    pass


class EmbeddingError(RetryableError):
    """Embedding one text failed. The pipeline records it against a single chunk."""

    def __init__(
        self,
        message: str,
        text_length: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details, text_length=text_length or None)
        self.text_length = text_length


class RetrievalError(RegWatchError):
    """A search could not run, e.g. find_similar() was given an unknown chunk id."""


# Jobs


class JobError(RegWatchError):
    pass


class JobNotFoundError(JobError):
    def __init__(self, job_id: str) -> None:
        super().__init__("Job not found", job_id=job_id)
        self.job_id = job_id


class InvalidJobTransitionError(JobError):
    """The job state machine has no edge from ``current`` to ``target``."""

    def __init__(self, job_id: str | None, current: str, target: str) -> None:
        super().__init__(f"Invalid job transition {current} -> {target}", job_id=job_id)
        self.current = current
        self.target = target


def is_retryable(error: BaseException) -> bool:
    """
    Whether a job that failed with ``error`` should be rescheduled.

    Exceptions from outside RegWatch (httpx internals, bugs surfacing as
    RuntimeError) count as transient. Robots refusals never do.
    """
    if isinstance(error, RobotsDisallowedError):
        return False
    if isinstance(error, RegWatchError):
        return isinstance(error, RetryableError)
    return True


def get_retry_delay(error: BaseException | None, default: float = 60.0) -> float:
    """``error.retry_after`` when the error carries one, else ``default``."""
    retry_after = getattr(error, "retry_after", None)
    return default if retry_after is None else retry_after
