# =============================================================================
# Response Models — Pydantic V2 Schemas
# =============================================================================
#
# The shape of data leaving the pipeline: analyze() returns AnalyzeResult,
# and the HTTP layer serialises it as-is.
#
# approval_status is always explicit. An EXHAUSTED result carries the last
# analysis the Evaluator saw, but it is never presented as approved.
# =============================================================================

from enum import Enum

from pydantic import BaseModel, Field

from brandscope.models.analysis import Relevance, Sentiment


class ApprovalStatus(str, Enum):
    APPROVED = "APPROVED"
    EXHAUSTED = "EXHAUSTED"


class VideoStats(BaseModel):
    """Engagement statistics for one video."""

    views: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)
    comment_count: int = Field(default=0, ge=0)


class Insights(BaseModel):
    summary: str
    sentiment: Sentiment
    key_points: list[str]
    video_stats: VideoStats
    draft_comment: str | None = None


class AnalyzeResult(BaseModel):
    """
    Final outcome of one analyze() call.

    The structured fields come from the last AnalysisResult. `review` is
    the Evaluator's output for that analysis: the finalized text when
    APPROVED, the outstanding feedback when EXHAUSTED.
    """

    video_id: str
    relevance: Relevance
    insights: Insights
    approval_status: ApprovalStatus
    review: str = Field(description="Evaluator output for the returned analysis")
    iterations: int = Field(ge=1, description="Analyst attempts made")


class HealthResponse(BaseModel):
    """Response for GET /health."""

    status: str = "ok"
    version: str
    service: str


class ErrorResponse(BaseModel):
    """Error body for every failure class."""

    error: str = Field(description="Failure class, e.g. 'FetchFailure'")
    detail: str
