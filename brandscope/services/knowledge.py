# =============================================================================
# Knowledge Store — Request-Scoped In-Memory Vector Index
# =============================================================================
#
# Holds the embedded chunks of ONE brand page for ONE request, and answers
# nearest-neighbour queries over them.
#
# LIFECYCLE:
#   created empty → insert() once during ingestion → query() read-only
#   → discarded when the request ends
#
# DESIGN DECISION: Plain numpy instead of a vector database.
# A brand page yields tens to a few hundred chunks. A brute-force cosine
# scan over an L2-normalised matrix is exact, deterministic, and needs no
# infrastructure. Nothing here is persisted or shared across requests.
#
# DESIGN DECISION: The embedding function is injected.
# Embedding is the only network-dependent step. Ranking (normalise → dot
# product → stable sort) is pure, so it is tested with synthetic vectors.
#
# ORDERING: results are sorted by descending cosine similarity; equal
# scores keep insertion order (stable sort), so repeated queries against
# the same store always return the same list.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import numpy as np

from brandscope.errors import EmptyStoreError, RetrievalError
from brandscope.services.chunker import Chunk

logger = logging.getLogger(__name__)

# Batch embedding function: texts in, one vector per text out (same order)
EmbedFn = Callable[[Sequence[str]], list[list[float]]]


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EmbeddedChunk:
    """A chunk plus its L2-normalised embedding vector."""

    chunk: Chunk
    vector: np.ndarray


# ---------------------------------------------------------------------------
# Knowledge Store
# ---------------------------------------------------------------------------


class KnowledgeStore:
    """
    In-memory index of embedded chunks supporting top-k cosine retrieval.

    Vector dimensionality is fixed by the first inserted chunk. Inserting
    a vector of a different size is a programming error (ValueError).
    """

    def __init__(self, embed_fn: EmbedFn, batch_size: int = 64) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._embed_fn = embed_fn
        self._batch_size = batch_size
        self._entries: list[EmbeddedChunk] = []
        self._matrix: np.ndarray | None = None
        self._dimensions: int | None = None

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def dimensions(self) -> int | None:
        return self._dimensions

    @property
    def chunks(self) -> list[Chunk]:
        """Stored chunks in insertion order."""
        return [entry.chunk for entry in self._entries]

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    async def insert(self, chunks: Sequence[Chunk]) -> None:
        """
        Embed and store chunks.

        Sub-batches are embedded concurrently (one worker thread each) and
        joined before anything is stored, so a failed batch leaves the
        store unchanged.

        Raises:
            ValueError: If the embedding function returns the wrong number
                of vectors or a vector of the wrong dimensionality.
            Exception: Whatever the embedding function raises.
        """
        if not chunks:
            return

        batches = [
            list(chunks[i : i + self._batch_size])
            for i in range(0, len(chunks), self._batch_size)
        ]
        logger.info(
            "Embedding %d chunks in %d concurrent batches",
            len(chunks), len(batches),
        )

        results = await asyncio.gather(*(
            asyncio.to_thread(self._embed_fn, [c.content for c in batch])
            for batch in batches
        ))

        vectors: list[list[float]] = []
        for batch, batch_vectors in zip(batches, results, strict=True):
            if len(batch_vectors) != len(batch):
                raise ValueError(
                    f"Embedding function returned {len(batch_vectors)} "
                    f"vectors for {len(batch)} texts"
                )
            vectors.extend(batch_vectors)

        self._append(chunks, vectors)

    def _append(self, chunks: Sequence[Chunk], vectors: list[list[float]]) -> None:
        dimensions = self._dimensions
        normalised: list[np.ndarray] = []

        for vector in vectors:
            arr = _normalise(vector)
            if dimensions is None:
                dimensions = arr.shape[0]
            elif arr.shape[0] != dimensions:
                raise ValueError(
                    f"Embedding dimensionality mismatch: store holds "
                    f"{dimensions}-d vectors, got {arr.shape[0]}-d"
                )
            normalised.append(arr)

        new_rows = np.vstack(normalised)
        self._matrix = (
            new_rows if self._matrix is None
            else np.vstack([self._matrix, new_rows])
        )
        self._dimensions = dimensions
        self._entries.extend(
            EmbeddedChunk(chunk=chunk, vector=arr)
            for chunk, arr in zip(chunks, normalised, strict=True)
        )

        logger.debug(
            "Knowledge store now holds %d chunks (%d-d)",
            len(self._entries), dimensions,
        )

    # -------------------------------------------------------------------------
    # Retrieval
    # -------------------------------------------------------------------------

    async def query(self, text: str, k: int) -> list[Chunk]:
        """
        Return the k chunks most similar to `text`, most similar first.

        Raises:
            EmptyStoreError: If nothing has been inserted.
            RetrievalError: If the query text could not be embedded.
        """
        self._ensure_not_empty()
        try:
            vectors = await asyncio.to_thread(self._embed_fn, [text])
        except Exception as e:
            raise RetrievalError(f"Query embedding failed: {e}") from e
        return self.rank(vectors[0], k)

    def rank(self, vector: Sequence[float], k: int) -> list[Chunk]:
        """Pure top-k ranking against an already-embedded query vector."""
        return [chunk for chunk, _score in self.search(vector, k)]

    def search(self, vector: Sequence[float], k: int) -> list[tuple[Chunk, float]]:
        """
        Top-k (chunk, cosine similarity) pairs for a query vector.

        Raises:
            EmptyStoreError: If nothing has been inserted.
            ValueError: If the vector's dimensionality doesn't match.
        """
        self._ensure_not_empty()
        if k <= 0:
            return []

        query = _normalise(vector)
        if query.shape[0] != self._dimensions:
            raise ValueError(
                f"Query dimensionality {query.shape[0]} does not match "
                f"store dimensionality {self._dimensions}"
            )

        scores = self._matrix @ query
        # Stable sort on negated scores: ties keep insertion order
        order = np.argsort(-scores, kind="stable")[:k]
        return [
            (self._entries[i].chunk, float(scores[i]))
            for i in order
        ]

    def _ensure_not_empty(self) -> None:
        if not self._entries:
            raise EmptyStoreError("Knowledge store is empty")


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _normalise(vector: Sequence[float]) -> np.ndarray:
    """Convert to a 1-d float64 array with unit L2 norm (zero stays zero)."""
    arr = np.asarray(vector, dtype=np.float64)
    if arr.ndim != 1 or arr.shape[0] == 0:
        raise ValueError("Embedding vectors must be non-empty 1-d sequences")
    norm = np.linalg.norm(arr)
    if norm > 0:
        arr = arr / norm
    return arr
