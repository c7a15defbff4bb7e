"""
Content processing for RegWatch.

HTML cleaning, chunking and structured regulation extraction.
"""

from regwatch.processing.cleaner import clean_html
from regwatch.processing.chunker import chunk_text, TextChunker, TextChunk
from regwatch.processing.extractor import (
    RegulatoryDocument,
    StructuredExtractor,
    LLMStructuredExtractor,
)

__all__ = [
    "clean_html",
    "chunk_text",
    "TextChunker",
    "TextChunk",
    "RegulatoryDocument",
    "StructuredExtractor",
    "LLMStructuredExtractor",
]
