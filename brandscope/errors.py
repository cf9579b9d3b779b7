# =============================================================================
# Error Taxonomy — Tagged, Non-Overlapping Failure Classes
# =============================================================================
#
# Every failure that can leave analyze() is one of five classes. Each carries
# a stable `kind` tag (used in API error bodies) and a `retryable` flag so
# callers can decide whether trying again makes sense:
#
#   InvalidUrl        → caller-fixable precondition, never retry
#   FetchFailure      → transient, collaborator-origin (YouTube, brand site)
#   IngestionFailure  → chunking/embedding the brand page failed
#   AgentUnavailable  → the reasoning model could not be reached
#   SchemaViolation   → an agent answered, but not in its required shape
#
# A non-approved result after the revision budget is NOT an error: it is
# returned as data with approval_status=EXHAUSTED.
#
# RetrievalError lives below this taxonomy. The Retrieval Tool absorbs its
# EmptyStoreError subclass (an empty brand page); any other RetrievalError
# raised during analysis is re-raised by the orchestrator as
# IngestionFailure.
# =============================================================================

from __future__ import annotations


class AnalyzeError(Exception):
    """Base class for failures surfaced by the analysis pipeline."""

    kind: str = "AnalyzeError"
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.kind, "detail": self.message}


class InvalidUrlError(AnalyzeError):
    kind = "InvalidUrl"
    retryable = False


class FetchFailureError(AnalyzeError):
    kind = "FetchFailure"
    retryable = True


class IngestionFailureError(AnalyzeError):
    kind = "IngestionFailure"
    retryable = True


class AgentUnavailableError(AnalyzeError):
    kind = "AgentUnavailable"
    retryable = True


class SchemaViolation(AnalyzeError):
    """An agent's output could not be coerced into its required shape."""

    kind = "SchemaViolation"
    retryable = True

    def __init__(self, agent: str, message: str, raw: str | None = None) -> None:
        super().__init__(f"{agent} output rejected: {message}")
        self.agent = agent
        self.raw = raw


# ---------------------------------------------------------------------------
# Retrieval layer
# ---------------------------------------------------------------------------


class RetrievalError(Exception):
    """Raised by the knowledge store when a query cannot be answered."""


class EmptyStoreError(RetrievalError):
    """The knowledge store was queried before any chunk was inserted."""
