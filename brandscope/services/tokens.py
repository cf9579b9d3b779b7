# =============================================================================
# Token Budgets — tiktoken
# =============================================================================
#
# Keeps prompt sections (long transcripts, comment dumps) inside a token
# budget so the Analyst never overflows the model's context window.
#
# cl100k_base is used as a provider-neutral approximation. Exact counts
# differ slightly between model families; the budget carries headroom.
# =============================================================================

from __future__ import annotations

import logging

import tiktoken

logger = logging.getLogger(__name__)

_encoder: tiktoken.Encoding | None = None


def _get_encoder() -> tiktoken.Encoding:
    """Lazily initialize and cache the tiktoken encoder."""
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding("cl100k_base")
    return _encoder


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    """
    Return the longest prefix of `text` that fits in max_tokens.

    Every token covers at least one UTF-8 byte, so text no longer than
    max_tokens bytes is returned without encoding.
    """
    if max_tokens <= 0:
        return ""
    if len(text.encode("utf-8")) <= max_tokens:
        return text

    encoder = _get_encoder()
    tokens = encoder.encode(text)
    if len(tokens) <= max_tokens:
        return text

    logger.info(
        "Truncating text from %d to %d tokens", len(tokens), max_tokens,
    )
    return encoder.decode(tokens[:max_tokens])
