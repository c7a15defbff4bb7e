"""
Configuration module for RegWatch.

Provides Pydantic-based settings management with YAML file support
and environment variable overrides.
"""

from regwatch.config.settings import (
    Settings,
    CrawlerSettings,
    PolitenessSettings,
    RateLimitSettings,
    PipelineSettings,
    SchedulerSettings,
    RetrievalSettings,
    StorageSettings,
    LocalLLMSettings,
    EmbeddingSettings,
    SourceOverride,
    LoggingSettings,
)
from regwatch.config.loader import load_config, get_settings, reset_settings

__all__ = [
    "Settings",
    "CrawlerSettings",
    "PolitenessSettings",
    "RateLimitSettings",
    "PipelineSettings",
    "SchedulerSettings",
    "RetrievalSettings",
    "StorageSettings",
    "LocalLLMSettings",
    "EmbeddingSettings",
    "SourceOverride",
    "LoggingSettings",
    "load_config",
    "get_settings",
    "reset_settings",
]
