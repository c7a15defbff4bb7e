"""
Ingestion pipeline for RegWatch.

Turns a fetched URL into stored content, a regulation record and
embedded chunks.
"""

from regwatch.pipeline.orchestrator import (
    IngestionPipeline,
    PipelineRun,
    PipelineStage,
    PipelineStatus,
    StageOutcome,
)

__all__ = [
    "IngestionPipeline",
    "PipelineRun",
    "PipelineStage",
    "PipelineStatus",
    "StageOutcome",
]
