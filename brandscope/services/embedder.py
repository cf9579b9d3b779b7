# =============================================================================
# Embedding Function for the Knowledge Store
# =============================================================================
#
# embed_batch() is the production EmbedFn handed to KnowledgeStore: it turns
# brand chunks (at insert time) and Analyst search queries (at query time)
# into vectors through any OpenAI-compatible embeddings endpoint.
#
# It is synchronous; the store calls it through asyncio.to_thread(), one
# thread per sub-batch of EMBEDDING_BATCH_SIZE texts. The OpenAI client
# retries transient HTTP errors itself, so a failure that reaches the store
# is final: IngestionFailure at insert time, RetrievalError at query time.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence

from openai import OpenAI

from brandscope.config import settings

logger = logging.getLogger(__name__)

# Created on first use so the app starts without an embedding key.
_client: OpenAI | None = None


def _get_client() -> OpenAI:
    """Return the shared embeddings client (OPENAI_API_KEY, else LLM_API_KEY)."""
    global _client
    if _client is None:
        api_key = settings.openai_api_key or settings.llm_api_key
        if not api_key:
            raise ValueError(
                "No API key configured for embeddings. "
                "Set OPENAI_API_KEY or LLM_API_KEY in .env"
            )

        base_url = settings.embedding_base_url or None
        _client = OpenAI(api_key=api_key, base_url=base_url)
        logger.info(
            "Embedding client ready (model=%s, base_url=%s)",
            settings.embedding_model, base_url or "default",
        )
    return _client


def embed_batch(texts: Sequence[str]) -> list[list[float]]:
    """
    Embed `texts` in one request; vectors come back in input order.

    Raises:
        ValueError: If no API key is configured or the endpoint returns a
            different number of vectors than texts sent.
        openai.APIError: If the request fails after the client's retries.
    """
    if not texts:
        return []

    request: dict = {"model": settings.embedding_model, "input": list(texts)}
    if settings.embedding_dimensions:
        request["dimensions"] = settings.embedding_dimensions

    response = _get_client().embeddings.create(**request)

    if len(response.data) != len(texts):
        raise ValueError(
            f"Embedding endpoint returned {len(response.data)} vectors "
            f"for {len(texts)} texts"
        )
    vectors = [item.embedding for item in sorted(response.data, key=lambda d: d.index)]

    logger.debug(
        "Embedded %d texts with %s (%d prompt tokens)",
        len(texts), settings.embedding_model,
        response.usage.prompt_tokens if response.usage else 0,
    )
    return vectors
