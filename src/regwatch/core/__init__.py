"""
Core module for RegWatch.

Contains the exception hierarchy shared by every subsystem.
"""

from regwatch.core.exceptions import (
    RegWatchError,
    RetryableError,
    ConfigurationError,
    CrawlerError,
    RobotsDisallowedError,
    RobotsParseError,
    FetchError,
    StorageError,
    DatabaseError,
    PersistenceError,
    ExtractionError,
    StructuredExtractionError,
    LLMError,
    ModelLoadError,
    InferenceError,
    EmbeddingError,
    RetrievalError,
    JobError,
    JobNotFoundError,
    InvalidJobTransitionError,
    is_retryable,
    get_retry_delay,
)

__all__ = [
    # Base
    "RegWatchError",
    "RetryableError",
    "ConfigurationError",
    # Crawler
    "CrawlerError",
    "RobotsDisallowedError",
    "RobotsParseError",
    "FetchError",
    # Storage
    "StorageError",
    "DatabaseError",
    "PersistenceError",
    # Extraction
    "ExtractionError",
    "StructuredExtractionError",
    # LLM
    "LLMError",
    "ModelLoadError",
    "InferenceError",
    # Embedding / retrieval
    "EmbeddingError",
    "RetrievalError",
    # Jobs
    "JobError",
    "JobNotFoundError",
    "InvalidJobTransitionError",
    # Helpers
    "is_retryable",
    "get_retry_delay",
]
