"""
Regulation retrieval.

Semantic search over embedded chunks, nearest-chunk lookup, and a hybrid
mode that merges semantic hits with full-text matches on regulation
titles. Results are keyed by regulation in hybrid mode so one regulation
appears at most once.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from regwatch.core.exceptions import RetrievalError
from regwatch.embeddings.base import EmbeddingService
from regwatch.storage.models import ChunkMatch, RegulationRecord
from regwatch.storage.repositories import ChunkRepository, RegulationRepository
from regwatch.utils.logging import get_logger
from regwatch.utils.metrics import time_search

if TYPE_CHECKING:
    from regwatch.config.settings import RetrievalSettings
    from regwatch.storage.database import Database

logger = get_logger(__name__)


@dataclass
class SearchFilter:
    """
    Narrowing criteria applied to search results.

    Empty lists mean "any". Dates are ISO strings compared lexically;
    when a date bound is set, results without an effective date are dropped.
    """

    jurisdiction: list[str] = field(default_factory=list)
    category: list[str] = field(default_factory=list)
    priority: list[str] = field(default_factory=list)
    date_from: str | None = None
    date_to: str | None = None

    def matches(self, result: "SearchResult") -> bool:
        if self.jurisdiction and result.jurisdiction not in self.jurisdiction:
            return False
        if self.category and result.category not in self.category:
            return False
        if self.priority and result.priority not in self.priority:
            return False
        if self.date_from is not None or self.date_to is not None:
            if not result.effective_date:
                return False
            if self.date_from is not None and result.effective_date < self.date_from:
                return False
            if self.date_to is not None and result.effective_date > self.date_to:
                return False
        return True


@dataclass
class SearchResult:
    """One ranked hit. ``id`` is a chunk id, or a regulation id for title-only hits."""

    id: str
    title: str
    content: str
    similarity: float
    url: str
    regulation_id: str | None = None
    summary: str | None = None
    jurisdiction: str | None = None
    category: str | None = None
    priority: str | None = None
    effective_date: str | None = None


class RetrievalEngine:
    """
    Read path over stored chunks and regulations.

    Example:
        >>> engine = RetrievalEngine.from_database(db, embedder)
        >>> for hit in await engine.hybrid_search("data breach notification"):
        ...     print(f"{hit.similarity:.2f} {hit.title}")
    """

    def __init__(
        self,
        embedder: EmbeddingService,
        chunks: ChunkRepository,
        regulations: RegulationRepository,
        semantic_threshold: float = 0.6,
        similar_threshold: float = 0.7,
        keyword_similarity: float = 0.5,
    ) -> None:
        self.embedder = embedder
        self.chunks = chunks
        self.regulations = regulations
        self.semantic_threshold = semantic_threshold
        self.similar_threshold = similar_threshold
        self.keyword_similarity = keyword_similarity

    @classmethod
    def from_database(
        cls,
        db: "Database",
        embedder: EmbeddingService,
        settings: "RetrievalSettings | None" = None,
    ) -> "RetrievalEngine":
        kwargs = {}
        if settings is not None:
            kwargs = {
                "semantic_threshold": settings.semantic_threshold,
                "similar_threshold": settings.similar_threshold,
                "keyword_similarity": settings.keyword_default_similarity,
            }
        return cls(embedder, ChunkRepository(db), RegulationRepository(db), **kwargs)

    def _join(
        self, matches: list[ChunkMatch]
    ) -> list[SearchResult]:
        """Attach regulation fields to chunk matches."""
        regulation_ids = [
            m.chunk.regulation_id for m in matches if m.chunk.regulation_id
        ]
        regulations = self.regulations.get_many(regulation_ids)

        results = []
        for match in matches:
            chunk = match.chunk
            regulation = regulations.get(chunk.regulation_id) if chunk.regulation_id else None
            meta = chunk.metadata
            results.append(
                SearchResult(
                    id=chunk.id,
                    regulation_id=chunk.regulation_id,
                    title=meta.get("title")
                    or (regulation.title if regulation else None)
                    or "Untitled",
                    content=chunk.content,
                    summary=regulation.summary if regulation else None,
                    jurisdiction=regulation.jurisdiction if regulation else None,
                    category=regulation.category if regulation else None,
                    priority=regulation.priority if regulation else None,
                    similarity=match.similarity,
                    url=meta.get("url")
                    or (regulation.source_url if regulation else None)
                    or "",
                    effective_date=regulation.effective_date if regulation else None,
                )
            )
        return results

    async def _semantic(
        self, query: str, filters: SearchFilter | None, limit: int
    ) -> list[SearchResult]:
        embedded = await self.embedder.embed(query)
        matches = self.chunks.match(
            embedded.embedding, self.semantic_threshold, limit * 2
        )
        results = self._join(matches)
        if filters is not None:
            results = [r for r in results if filters.matches(r)]
        return results[:limit]

    async def semantic_search(
        self,
        query: str,
        filters: SearchFilter | None = None,
        limit: int = 10,
    ) -> list[SearchResult]:
        """
        Chunks most similar to ``query``, most similar first.

        Filters are applied after matching, so fewer than ``limit``
        results may come back even when more chunks exist.
        """
        with time_search():
            results = await self._semantic(query, filters, limit)
        logger.debug(f"Semantic search for {query!r} returned {len(results)} results")
        return results

    async def find_similar(self, chunk_id: str, limit: int = 5) -> list[SearchResult]:
        """
        Chunks whose vectors are close to a stored chunk's vector.

        Raises:
            RetrievalError: If the chunk does not exist
        """
        with time_search():
            source = self.chunks.get(chunk_id)
            if source is None:
                raise RetrievalError(
                    "Chunk not found", details={"chunk_id": chunk_id}
                )
            matches = self.chunks.match(
                source.embedding, self.similar_threshold, limit + 1
            )
            matches = [m for m in matches if m.chunk.id != chunk_id][:limit]
            return self._join(matches)

    async def hybrid_search(
        self,
        query: str,
        filters: SearchFilter | None = None,
        limit: int = 10,
    ) -> list[SearchResult]:
        """
        Semantic hits merged with title matches, one result per regulation.

        For each regulation the most similar chunk is kept. Title-only
        matches score ``keyword_similarity``. Semantic hits that are not
        linked to a regulation are left out.
        """
        filters = filters or SearchFilter()
        with time_search():
            semantic = await self._semantic(query, filters, limit)
            keyword = self.regulations.search_titles(
                query,
                jurisdictions=filters.jurisdiction,
                categories=filters.category,
                priorities=filters.priority,
                effective_from=filters.date_from,
                effective_to=filters.date_to,
                limit=limit,
            )

            merged: dict[str, SearchResult] = {}
            for result in semantic:
                if not result.regulation_id:
                    continue
                current = merged.get(result.regulation_id)
                if current is None or result.similarity > current.similarity:
                    merged[result.regulation_id] = result

            for regulation in keyword:
                if regulation.id not in merged:
                    merged[regulation.id] = self._from_regulation(regulation)

            results = sorted(merged.values(), key=lambda r: r.similarity, reverse=True)

        logger.debug(
            f"Hybrid search for {query!r}: {len(semantic)} semantic, "
            f"{len(keyword)} keyword, {len(results)} merged"
        )
        return results[:limit]

    def _from_regulation(self, regulation: RegulationRecord) -> SearchResult:
        return SearchResult(
            id=regulation.id,
            regulation_id=regulation.id,
            title=regulation.title,
            content=regulation.summary or "",
            summary=regulation.summary,
            jurisdiction=regulation.jurisdiction,
            category=regulation.category,
            priority=regulation.priority,
            similarity=self.keyword_similarity,
            url=regulation.source_url or "",
            effective_date=regulation.effective_date,
        )
