# =============================================================================
# Boundary-Aware Text Chunker
# =============================================================================
#
# Splits an arbitrary text blob (brand web page, video transcript) into
# overlapping, bounded-length chunks suitable for embedding.
#
# ALGORITHM (character offsets, one pass left to right):
# 1. The window for the next chunk is text[start : start + chunk_size].
# 2. Inside the window, look for a break point at the coarsest boundary
#    level available, in priority order:
#       paragraph (blank line) → line break → sentence end → word → hard cut
#    Within a level, the furthest break point wins (fuller chunks).
# 3. Emit text[start:end]; the next chunk starts at end - chunk_overlap, so
#    neighbours share exactly chunk_overlap characters.
#
# A break point must lie beyond start + chunk_overlap (the next chunk has to
# advance) and at or beyond start + chunk_size // 2 (every chunk but the
# last is at least half full). A level with no break point in that range
# falls through to the next level.
#
# Chunks carry their character offset in the source, so the original text
# is recoverable exactly: first chunk + each later chunk minus its overlap.
# =============================================================================

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Chunk:
    """
    A bounded-length contiguous slice of a source text.

    Immutable once created. Owned by the knowledge store after insertion.
    """

    content: str
    source_tag: str  # Origin of the text (brand URL, "transcript", ...)
    index: int = 0   # 0-indexed position within the source document
    start: int = 0   # Character offset of `content` in the source document


# ---------------------------------------------------------------------------
# Boundary Levels — coarsest first
# ---------------------------------------------------------------------------
# Each match contributes two candidate break points: match.start() (end the
# chunk before the separator) and match.end() (end it after the separator).
# ---------------------------------------------------------------------------

_BOUNDARY_LEVELS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("paragraph", re.compile(r"\n[ \t]*\n\s*")),
    ("line", re.compile(r"\n")),
    ("sentence", re.compile(r"(?<=[.!?])\s+")),
    ("word", re.compile(r"\s+")),
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def chunk_text(
    text: str,
    chunk_size: int = 800,
    chunk_overlap: int = 120,
    source_tag: str = "",
) -> list[Chunk]:
    """
    Split text into overlapping chunks of at most chunk_size characters.

    Args:
        text: The source text. Empty text yields no chunks.
        chunk_size: Maximum characters per chunk.
        chunk_overlap: Characters shared by consecutive chunks. Must be
            smaller than chunk_size.
        source_tag: Tag copied onto every chunk (e.g. the brand URL).

    Returns:
        Chunks in document order.

    Raises:
        ValueError: If chunk_size or chunk_overlap is out of range.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0 or chunk_overlap >= chunk_size:
        raise ValueError(
            f"chunk_overlap must be in [0, chunk_size), got {chunk_overlap} "
            f"with chunk_size={chunk_size}"
        )

    if not text:
        return []

    total = len(text)
    chunks: list[Chunk] = []
    start = 0

    while True:
        end = _find_break(text, start, chunk_size, chunk_overlap)
        chunks.append(Chunk(
            content=text[start:end],
            source_tag=source_tag,
            index=len(chunks),
            start=start,
        ))
        if end >= total:
            break
        start = end - chunk_overlap

    logger.debug(
        "Chunked %d chars from '%s' into %d chunks (size=%d, overlap=%d)",
        total, source_tag, len(chunks), chunk_size, chunk_overlap,
    )
    return chunks


def reconstruct(chunks: list[Chunk]) -> str:
    """
    Rebuild the source text from its chunks by dropping each overlap.

    Chunks must come from a single chunk_text() call, in order.
    """
    parts: list[str] = []
    covered = 0
    for chunk in chunks:
        parts.append(chunk.content[covered - chunk.start:])
        covered = chunk.start + len(chunk.content)
    return "".join(parts)


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _find_break(text: str, start: int, chunk_size: int, chunk_overlap: int) -> int:
    """Return the end offset of the chunk beginning at `start`."""
    limit = start + chunk_size
    if limit >= len(text):
        return len(text)

    floor = max(start + chunk_overlap + 1, start + chunk_size // 2)

    for _level, pattern in _BOUNDARY_LEVELS:
        best = -1
        for match in pattern.finditer(text, start, limit + 1):
            for candidate in (match.start(), match.end()):
                if floor <= candidate <= limit and candidate > best:
                    best = candidate
        if best != -1:
            return best

    # No natural boundary in the window: hard cut
    return limit
