# =============================================================================
# Services Package — Business Logic
# =============================================================================
#   - chunker.py: boundary-aware overlapping text chunks
#   - embedder.py: OpenAI-compatible embedding generation
#   - knowledge.py: request-scoped in-memory vector index
#   - llm.py: multi-provider LLM abstraction (Anthropic, OpenAI-compatible)
#   - tokens.py: tiktoken prompt budgets
#   - video.py: YouTube URL validation, transcript, comments, statistics
#   - brand.py: brand web page fetching and HTML-to-text
# =============================================================================
