"""
Embeddings module for RegWatch.

The sentence-transformers backend is imported from
``regwatch.embeddings.embedder``.
"""

from regwatch.embeddings.base import (
    EmbeddingResult,
    EmbeddingService,
    cosine_similarities,
    to_vector,
)

__all__ = [
    "EmbeddingResult",
    "EmbeddingService",
    "cosine_similarities",
    "to_vector",
]
