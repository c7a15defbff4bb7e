"""
Text chunking for embedding.

Splits cleaned document text into overlapping windows that prefer to
end on a sentence or line boundary.
"""

from dataclasses import dataclass
from typing import Iterator

from regwatch.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TextChunk:
    """
    A chunk of text from a larger document.

    Positions index into the original text; ``text`` is already trimmed.
    """

    text: str
    index: int
    start_char: int
    end_char: int

    @property
    def char_count(self) -> int:
        return len(self.text)

    def __repr__(self) -> str:
        preview = self.text[:50] + "..." if len(self.text) > 50 else self.text
        return f"TextChunk(index={self.index}, chars={self.char_count}, text={preview!r})"


def _iter_windows(text: str, chunk_size: int, overlap: int) -> Iterator[tuple[int, int]]:
    """
    Yield raw (start, end) windows before trimming.

    A window that does not reach the end of the text is cut just after
    its last "." or newline when that boundary sits past the first
    character; the next window then starts ``overlap`` characters before
    the cut. When that would not move forward, the next window starts
    where the emitted one ended, so no text is skipped.
    """
    length = len(text)
    start = 0

    while start < length:
        end = min(start + chunk_size, length)
        window = text[start:end]
        boundary = max(window.rfind("."), window.rfind("\n"))

        if boundary > 0 and end < length:
            end = start + boundary + 1
            next_start = end - overlap
        else:
            next_start = end

        yield start, end
        if next_start <= start:
            next_start = end
        start = next_start


def chunk_text(text: str, chunk_size: int = 1000, overlap: int = 200) -> list[str]:
    """
    Split text into trimmed, non-empty chunks.

    Args:
        text: Text to split
        chunk_size: Maximum window size in characters
        overlap: Characters repeated at the start of the next chunk after a boundary cut

    Returns:
        Chunk strings in document order
    """
    return [chunk.text for chunk in TextChunker(chunk_size, overlap).chunk(text)]


class TextChunker:
    """
    Splits text into positioned chunks.

    Example:
        >>> chunker = TextChunker(chunk_size=1000, overlap=200)
        >>> for chunk in chunker.chunk(cleaned_text):
        ...     print(chunk.index, chunk.start_char, chunk.end_char)
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if overlap < 0 or overlap >= chunk_size:
            raise ValueError("Overlap must be non-negative and smaller than chunk_size")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def iter_chunks(self, text: str) -> Iterator[TextChunk]:
        index = 0
        for start, end in _iter_windows(text, self.chunk_size, self.overlap):
            raw = text[start:end]
            stripped = raw.strip()
            if not stripped:
                continue
            lead = len(raw) - len(raw.lstrip())
            chunk_start = start + lead
            yield TextChunk(
                text=stripped,
                index=index,
                start_char=chunk_start,
                end_char=chunk_start + len(stripped),
            )
            index += 1

    def chunk(self, text: str) -> list[TextChunk]:
        """Split text into chunks; empty or blank text yields no chunks."""
        if not text or not text.strip():
            return []
        chunks = list(self.iter_chunks(text))
        logger.debug(f"Split {len(text)} chars into {len(chunks)} chunks")
        return chunks
