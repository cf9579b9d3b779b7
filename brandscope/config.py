# =============================================================================
# Application Configuration — Pydantic Settings
# =============================================================================
#
# All runtime configuration lives in one `Settings` class loaded from
# environment variables and an optional .env file.
#
# Priority order (highest first):
#   1. Environment variables (e.g., `LLM_MODEL=...`)
#   2. Values from the .env file
#   3. Default values defined below
#
# USAGE:
#   from brandscope.config import settings
#   print(settings.retrieval_top_k)
# =============================================================================

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Defaults are chosen so the service starts locally with only API keys set.
    """

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    app_name: str = "Brandscope"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # API Keys — External Services
    # -------------------------------------------------------------------------
    # ANTHROPIC_API_KEY: Claude (Analyst + Evaluator reasoning)
    # OPENAI_API_KEY: embeddings (and OpenAI-compatible LLMs)
    # YOUTUBE_API_KEY: YouTube Data API v3 (comments + statistics)
    # -------------------------------------------------------------------------
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    youtube_api_key: str = ""

    # -------------------------------------------------------------------------
    # Embedding Configuration
    # -------------------------------------------------------------------------
    # The same model embeds brand chunks and retrieval queries. Mixing
    # models between ingestion and query makes similarity scores meaningless.
    # -------------------------------------------------------------------------
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    embedding_base_url: str | None = None
    embedding_batch_size: int = 64  # Chunks per embeddings API call

    # -------------------------------------------------------------------------
    # LLM Configuration — Multi-Provider
    # -------------------------------------------------------------------------
    #   - "anthropic": Claude via native Anthropic SDK
    #   - "openai_compatible": any OpenAI-compatible API (OpenAI, DeepSeek,
    #     Qwen, GLM, ...) selected via llm_base_url
    # -------------------------------------------------------------------------
    llm_provider: str = "anthropic"  # "anthropic" or "openai_compatible"
    llm_base_url: str | None = None  # Only needed for openai_compatible
    llm_api_key: str | None = None   # Overrides provider-specific key if set
    llm_model: str = "claude-sonnet-4-6"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 2048

    # -------------------------------------------------------------------------
    # Chunking Configuration (characters)
    # -------------------------------------------------------------------------
    # Brand pages are chunked small so retrieval returns focused snippets.
    # Transcripts are chunked larger: they are read in full by the Analyst,
    # chunking only keeps the prompt structured.
    # -------------------------------------------------------------------------
    brand_chunk_size: int = 800
    brand_chunk_overlap: int = 120
    transcript_chunk_size: int = 1500
    transcript_chunk_overlap: int = 150

    # -------------------------------------------------------------------------
    # Retrieval + Agent Loop
    # -------------------------------------------------------------------------
    # retrieval_top_k: chunks returned per Retrieval Tool call.
    # max_revision_iterations: hard bound on Analyst attempts per request.
    #   An always-rejecting Evaluator stops the loop here.
    # max_tool_calls: brand searches the Analyst may issue per attempt.
    # -------------------------------------------------------------------------
    retrieval_top_k: int = 3
    max_revision_iterations: int = 3
    max_tool_calls: int = 3

    # -------------------------------------------------------------------------
    # Input Budgets
    # -------------------------------------------------------------------------
    max_comments: int = 50
    transcript_languages: list[str] = ["en"]
    analysis_max_transcript_tokens: int = 6000
    brand_max_chars: int = 60_000

    # -------------------------------------------------------------------------
    # Outbound HTTP (YouTube Data API, brand pages)
    # -------------------------------------------------------------------------
    youtube_api_base_url: str = "https://www.googleapis.com/youtube/v3"
    http_timeout_seconds: float = 20.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Create and cache a Settings instance.

    In tests, override with FastAPI's dependency_overrides:
        app.dependency_overrides[get_settings] = lambda: Settings(debug=True)
    """
    return Settings()


settings = Settings()
