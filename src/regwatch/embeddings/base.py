"""
Embedding types and vector helpers.

No model imports here; the sentence-transformers backend lives in
``regwatch.embeddings.embedder``.
"""

from dataclasses import dataclass
from typing import Protocol

import numpy as np


@dataclass
class EmbeddingResult:
    """Embedding vector plus what it cost to produce."""

    embedding: np.ndarray  # Shape: (dimensions,)
    token_count: int
    text_length: int = 0
    model_name: str = ""

    @property
    def dimensions(self) -> int:
        return int(self.embedding.shape[0])


class EmbeddingService(Protocol):
    """Anything that can embed a text asynchronously."""

    async def embed(self, text: str) -> EmbeddingResult: ...


def to_vector(values) -> np.ndarray:
    """Coerce a sequence or array into a 1-D float32 vector."""
    return np.asarray(values, dtype=np.float32).reshape(-1)


def cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """
    Cosine similarity of ``query`` against each row of ``matrix``.

    Zero vectors score 0.0 rather than NaN.
    """
    if matrix.size == 0:
        return np.zeros(0, dtype=np.float32)

    query = to_vector(query)
    query_norm = np.linalg.norm(query)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * query_norm
    dots = matrix @ query
    return np.divide(
        dots,
        denom,
        out=np.zeros_like(dots, dtype=np.float32),
        where=denom > 0,
    )
