"""Deterministic overlapping text splitter.

Every chunk is an exact slice of the input and consecutive chunks share
exactly ``overlap`` characters, so the original text can be rebuilt with::

    chunks[0] + "".join(c[overlap:] for c in chunks[1:])

Within each window the cut prefers, in order: a paragraph break, a line
break, a sentence end, a word boundary.  A hard character cut is the last
resort.  The final chunk may be shorter than ``chunk_size``.
"""

from __future__ import annotations

from docdesk.config import CHUNK_OVERLAP, CHUNK_SIZE
from docdesk.models import Chunk, ChunkMetadata

_SEPARATORS = ("\n\n", "\n", ". ", "? ", "! ", " ")

# Chunks per estimated page.
CHUNKS_PER_PAGE = 5


def _find_cut(text: str, min_end: int, max_end: int) -> int:
    """Return the best cut position in ``[min_end, max_end]``."""
    for sep in _SEPARATORS:
        pos = text.rfind(sep, min_end - len(sep), max_end)
        if pos != -1:
            return pos + len(sep)
    return max_end


def split_text(
    text: str,
    chunk_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
) -> list[str]:
    """Split *text* into overlapping spans of at most *chunk_size* chars."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must be in [0, chunk_size)")
    if not text:
        return []

    spans: list[str] = []
    start = 0
    n = len(text)
    while start + chunk_size < n:
        # Keep every chunk at least half full and always past the overlap.
        min_end = start + max(overlap + 1, chunk_size // 2)
        end = _find_cut(text, min_end, start + chunk_size)
        spans.append(text[start:end])
        start = end - overlap
    spans.append(text[start:])
    return spans


def build_chunks(
    text: str,
    chunk_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
) -> list[Chunk]:
    """Split *text* and wrap each span in an un-embedded :class:`Chunk`."""
    return [
        Chunk(
            text=span,
            metadata=ChunkMetadata(index=i, page=i // CHUNKS_PER_PAGE + 1),
        )
        for i, span in enumerate(split_text(text, chunk_size, overlap))
    ]
