"""
Sentence-transformers embedding backend.

The model (all-MiniLM-L6-v2, 384 dimensions, by default) is loaded on the
first embed call and shared by every chunk after that.
"""

import asyncio
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from sentence_transformers import SentenceTransformer

from regwatch.core.exceptions import EmbeddingError
from regwatch.embeddings.base import EmbeddingResult, to_vector
from regwatch.utils.logging import get_logger
from regwatch.utils.metrics import Metrics

if TYPE_CHECKING:
    from regwatch.config.settings import Settings

logger = get_logger(__name__)


class Embedder:
    """
    EmbeddingService that runs a SentenceTransformer in a worker thread.

    Example:
        >>> embedder = Embedder.from_settings(get_settings())
        >>> (await embedder.embed("Breach notification within 72 hours")).dimensions
        384
    """

    def __init__(
        self,
        model_name: str = "sentence-transformers/all-MiniLM-L6-v2",
        device: str = "cpu",
        normalize: bool = True,
        cache_dir: Path | None = None,
    ) -> None:
        self.model_name = model_name
        self.device = device
        self.normalize = normalize
        self.cache_dir = cache_dir
        self._model: SentenceTransformer | None = None
        self._load_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Embedder":
        cfg = settings.embedding
        return cls(
            model_name=cfg.model_name,
            device=cfg.device,
            normalize=cfg.normalize_embeddings,
            cache_dir=cfg.cache_dir,
        )

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def _ensure_loaded(self) -> SentenceTransformer:
        with self._load_lock:
            if self._model is None:
                try:
                    self._model = SentenceTransformer(
                        self.model_name,
                        device=self.device,
                        cache_folder=str(self.cache_dir) if self.cache_dir else None,
                    )
                except Exception as e:
                    raise EmbeddingError(
                        f"Could not load embedding model {self.model_name}",
                        details={"error": str(e)},
                    ) from e
                logger.info(
                    f"Loaded {self.model_name} "
                    f"({self._model.get_sentence_embedding_dimension()} dimensions)"
                )
            return self._model

    @property
    def dimensions(self) -> int:
        return self._ensure_loaded().get_sentence_embedding_dimension()

    def encode(self, text: str) -> EmbeddingResult:
        """
        Embed one text in the calling thread.

        Raises:
            EmbeddingError: If the model cannot be loaded or encoding fails
        """
        model = self._ensure_loaded()
        try:
            vector = model.encode(
                text,
                normalize_embeddings=self.normalize,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
            tokens = len(model.tokenizer.tokenize(text))
        except Exception as e:
            raise EmbeddingError(
                "Embedding generation failed",
                text_length=len(text),
                details={"error": str(e)},
            ) from e

        Metrics.get().increment("embeddings_generated")
        return EmbeddingResult(
            embedding=to_vector(vector),
            token_count=tokens,
            text_length=len(text),
            model_name=self.model_name,
        )

    async def embed(self, text: str) -> EmbeddingResult:
        return await asyncio.to_thread(self.encode, text)

    def __repr__(self) -> str:
        return f"Embedder({self.model_name!r}, device={self.device!r})"
