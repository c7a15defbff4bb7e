"""
Configuration models.

Defaults suit one worker crawling a handful of regulator sites at a
gentle pace; regwatch.yaml and REGWATCH__* variables adjust them.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, model_validator


DEFAULT_USER_AGENT = "RegulatoryComplianceBot/1.0; +https://assurecode.com/bot.html"


class CrawlerSettings(BaseModel):
    """HTTP fetch configuration."""

    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="Agent string sent with every request and matched against robots.txt",
    )
    respect_robots_txt: bool = Field(
        default=True,
        description="Whether to honor robots.txt directives",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Timeout for document fetches in seconds",
    )
    follow_redirects: bool = Field(
        default=True,
        description="Whether to follow HTTP redirects",
    )


class PolitenessSettings(BaseModel):
    """robots.txt caching configuration."""

    robots_cache_ttl_seconds: float = Field(
        default=3600.0,
        ge=0.0,
        le=7 * 24 * 3600.0,
        description="How long a fetched robots.txt rule set stays valid",
    )
    robots_timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=60.0,
        description="Timeout for fetching robots.txt",
    )


class RateLimitSettings(BaseModel):
    """Per-domain request budget."""

    requests_per_minute: int = Field(
        default=30,
        ge=1,
        le=600,
        description="Maximum requests per domain within a rolling 60 second window",
    )
    min_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Lower bound of the politeness jitter and of budget waits",
    )
    max_delay_seconds: float = Field(
        default=3.0,
        ge=0.0,
        le=120.0,
        description="Upper bound of the politeness jitter",
    )

    @model_validator(mode="after")
    def check_delay_bounds(self) -> "RateLimitSettings":
        """Ensure the jitter range is not inverted."""
        if self.max_delay_seconds < self.min_delay_seconds:
            raise ValueError("max_delay_seconds must be >= min_delay_seconds")
        return self


class PipelineSettings(BaseModel):
    """Ingestion pipeline configuration."""

    chunk_size: int = Field(
        default=1000,
        ge=100,
        le=20000,
        description="Target chunk size in characters",
    )
    chunk_overlap: int = Field(
        default=200,
        ge=0,
        le=5000,
        description="Characters shared between consecutive chunks",
    )
    extraction_char_budget: int = Field(
        default=8000,
        ge=500,
        le=100000,
        description="Maximum characters of cleaned text sent to structured extraction",
    )
    auto_process: bool = Field(
        default=True,
        description="Run structured extraction by default",
    )
    auto_embed: bool = Field(
        default=True,
        description="Chunk and embed content by default",
    )

    @model_validator(mode="after")
    def check_overlap(self) -> "PipelineSettings":
        """Overlap must leave room for progress."""
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        return self


class SchedulerSettings(BaseModel):
    """Job scheduler configuration."""

    max_retries: int = Field(
        default=3,
        ge=0,
        le=20,
        description="Default retry budget for new jobs",
    )
    backoff_base_seconds: float = Field(
        default=60.0,
        ge=0.0,
        le=3600.0,
        description="Base of the exponential retry backoff",
    )
    drain_batch_size: int = Field(
        default=5,
        ge=1,
        le=1000,
        description="Default number of jobs processed per drain",
    )
    stale_job_timeout_seconds: float = Field(
        default=1800.0,
        ge=60.0,
        le=86400.0,
        description="Running jobs older than this are considered abandoned",
    )


class RetrievalSettings(BaseModel):
    """Search configuration."""

    semantic_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Minimum similarity for semantic search matches",
    )
    similar_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum similarity for find-similar matches",
    )
    keyword_default_similarity: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Score assigned to keyword-only hybrid matches",
    )
    default_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Default number of results returned",
    )


class StorageSettings(BaseModel):
    """Shared SQLite database."""

    database_path: Path = Field(
        default=Path("data/regwatch.db"),
        description="SQLite file holding jobs, documents and chunks",
    )
    wal_mode: bool = Field(
        default=True,
        description="Enable WAL mode for concurrent workers",
    )
    cache_size_mb: int = Field(
        default=64,
        ge=8,
        le=512,
        description="Page cache per connection, in MB",
    )
    busy_timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="How long a connection waits on a locked database",
    )


class LocalLLMSettings(BaseModel):
    """Local LLM used for structured extraction."""

    enabled: bool = Field(
        default=True,
        description="Whether structured extraction uses the local model",
    )
    model_name: str = Field(
        default="Qwen/Qwen2.5-1.5B-Instruct",
        description="Instruction-tuned causal model that writes the regulation JSON",
    )
    device: Literal["cpu", "cuda", "mps"] = Field(
        default="cpu",
        description="Torch device for extraction",
    )
    torch_dtype: Literal["float32", "float16", "bfloat16"] = Field(
        default="float32",
        description="Weight precision; float32 is the safe choice on CPU",
    )
    max_new_tokens: int = Field(
        default=1024,
        ge=64,
        le=4096,
        description="Generation cap for one extraction response",
    )
    temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=2.0,
        description="Sampling temperature; 0 decodes greedily",
    )
    cache_dir: Path | None = Field(
        default=None,
        description="Hugging Face download cache; None uses the library default",
    )


class EmbeddingSettings(BaseModel):
    """Chunk and query embedding model."""

    model_name: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="Sentence-transformers model used for chunk and query vectors",
    )
    device: Literal["cpu", "cuda", "mps"] = Field(
        default="cpu",
        description="Torch device for embedding",
    )
    normalize_embeddings: bool = Field(
        default=True,
        description="L2-normalize vectors before they are stored",
    )
    cache_dir: Path | None = Field(
        default=None,
        description="Hugging Face download cache; None uses the library default",
    )


class SourceOverride(BaseModel):
    """Per-source rate limit override supplied through configuration."""

    id: str
    requests_per_minute: int | None = Field(default=None, ge=1, le=600)
    min_delay_seconds: float | None = Field(default=None, ge=0.0, le=60.0)
    max_delay_seconds: float | None = Field(default=None, ge=0.0, le=120.0)


class LoggingSettings(BaseModel):
    """Handlers attached to the regwatch logger."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Level for the regwatch logger and its handlers",
    )
    format: str = Field(
        default="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        description="logging.Formatter format string",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="strftime format for asctime",
    )
    file_path: Path | None = Field(
        default=None,
        description="Rotating log file; None disables file logging",
    )
    max_file_size_mb: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Size in MB at which the log file rotates",
    )
    backup_count: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Rotated log files kept next to the active one",
    )
    log_to_console: bool = Field(
        default=True,
        description="Also log to stderr",
    )


class Settings(BaseModel):
    """
    Everything a RegWatch process needs, one section per subsystem.

    Unknown keys are rejected so that a typo in regwatch.yaml fails
    loudly instead of silently keeping a default.
    """

    model_config = {"extra": "forbid", "validate_default": True}

    crawler: CrawlerSettings = Field(default_factory=CrawlerSettings)
    politeness: PolitenessSettings = Field(default_factory=PolitenessSettings)
    rate_limit: RateLimitSettings = Field(
        default_factory=RateLimitSettings,
        description="Budget for domains without a source-specific limit",
    )
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    local_llm: LocalLLMSettings = Field(default_factory=LocalLLMSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    sources: list[SourceOverride] = Field(
        default_factory=list,
        description="Rate limit overrides keyed by catalog source id",
    )
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
