"""
Retrieval for RegWatch.

Semantic, similar-chunk and hybrid search over stored regulations.
"""

from regwatch.retrieval.search import RetrievalEngine, SearchFilter, SearchResult

__all__ = ["RetrievalEngine", "SearchFilter", "SearchResult"]
