# =============================================================================
# Retrieval Tool — Brand Context Search for the Analyst
# =============================================================================
#
# A thin adapter that the orchestrator hands to the Analyst as an explicit
# dependency. The Analyst calls it with a natural-language query and gets
# back one text block of the top-k matching brand snippets.
#
# Snippets are numbered and separated so the model can tell them apart:
#
#     [1] Our running shoes are built for ...
#
#     ---
#
#     [2] Free returns within 30 days ...
#
# An empty knowledge store yields the NO_BRAND_CONTEXT marker instead of an
# empty string: "no data" must not read as "not relevant".
#
# Every call is recorded in `history` (query, result) so the Evaluator can
# check the analysis against exactly the brand context the Analyst saw,
# and tests can assert on whether/how the tool was used.
# =============================================================================

from __future__ import annotations

import logging
from typing import Protocol

from brandscope.errors import EmptyStoreError
from brandscope.services.chunker import Chunk

logger = logging.getLogger(__name__)

NO_BRAND_CONTEXT = "[no brand context available]"
SNIPPET_SEPARATOR = "\n\n---\n\n"


class ChunkIndex(Protocol):
    async def query(self, text: str, k: int) -> list[Chunk]: ...


class RetrievalTool:
    """Callable brand search: `await tool("sustainability claims")`."""

    def __init__(self, store: ChunkIndex, top_k: int = 3) -> None:
        self._store = store
        self.top_k = top_k
        self.history: list[tuple[str, str]] = []

    @property
    def calls(self) -> list[str]:
        """Queries issued so far, in order."""
        return [query for query, _result in self.history]

    async def __call__(self, query: str) -> str:
        """
        Return the top-k brand snippets for `query` as one text block.

        Raises:
            RetrievalError: If the store cannot embed the query. An empty
                store is not an error here.
        """
        try:
            chunks = await self._store.query(query, self.top_k)
        except EmptyStoreError:
            logger.warning("Brand search on empty store (query='%s')", query)
            chunks = []

        result = format_snippets(chunks) if chunks else NO_BRAND_CONTEXT
        self.history.append((query, result))

        logger.info(
            "Brand search: query='%s', snippets=%d", query[:80], len(chunks),
        )
        return result


def format_snippets(chunks: list[Chunk]) -> str:
    """Number chunks [1], [2], ... and join them with SNIPPET_SEPARATOR."""
    return SNIPPET_SEPARATOR.join(
        f"[{i}] {chunk.content.strip()}"
        for i, chunk in enumerate(chunks, 1)
    )
