# =============================================================================
# Analyze API — Video × Brand Assessment Endpoint
# =============================================================================
#
# Provides POST /analyze, which runs the full pipeline (fetch, ingest,
# Analyst/Evaluator review loop), and GET /health.
#
# Error mapping (body is always {"error": kind, "detail": message}):
#   InvalidUrl                                   → 400 Bad Request
#   FetchFailure / IngestionFailure / Schema...  → 502 Bad Gateway
#   AgentUnavailable                             → 503 Service Unavailable
#
# An EXHAUSTED result is a normal 200 response; approval_status tells the
# caller the analysis was never approved.
#
# This endpoint is thin: request validation, error mapping, response
# passthrough. The pipeline lives in agents/orchestrator.py.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from brandscope import __version__
from brandscope.agents.orchestrator import DepsFactory, PipelineDeps, analyze
from brandscope.config import Settings, get_settings
from brandscope.errors import AnalyzeError
from brandscope.models.requests import AnalyzeRequest
from brandscope.models.responses import AnalyzeResult, ErrorResponse, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Analysis"])

STATUS_BY_KIND = {
    "InvalidUrl": 400,
    "FetchFailure": 502,
    "IngestionFailure": 502,
    "SchemaViolation": 502,
    "AgentUnavailable": 503,
}


def get_pipeline_deps() -> DepsFactory:
    """
    Factory for production collaborators; overridden in tests.

    analyze() calls it only after the video URL is validated, so a bad URL
    is reported as InvalidUrl even when no model key is configured.
    """
    return PipelineDeps.from_settings


# ---------------------------------------------------------------------------
# POST /analyze — Assess a video against a brand
# ---------------------------------------------------------------------------


@router.post(
    "/analyze",
    response_model=AnalyzeResult,
    summary="Assess a video's relevance to a brand",
    description=(
        "Fetches the video's transcript, comments and statistics, indexes "
        "the brand page, and runs an Analyst/Evaluator review loop. The "
        "result is either approved by the Evaluator or returned after the "
        "revision budget is spent, flagged as EXHAUSTED."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Invalid video URL"},
        502: {"model": ErrorResponse, "description": "Upstream or agent output failure"},
        503: {"model": ErrorResponse, "description": "Reasoning model unavailable"},
    },
)
async def analyze_endpoint(
    request: AnalyzeRequest,
    deps_factory: DepsFactory = Depends(get_pipeline_deps),
) -> AnalyzeResult:
    logger.info(
        "Analyze request: video_url='%s', brand_url='%s', include_draft=%s",
        request.video_url[:120], request.brand_url[:120], request.include_draft,
    )

    result = await analyze(
        request.video_url,
        request.brand_url,
        include_draft=request.include_draft,
        deps=deps_factory,
    )

    logger.info(
        "Analyze complete: video_id=%s, status=%s, iterations=%d",
        result.video_id, result.approval_status.value, result.iterations,
    )
    return result


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Liveness check")
async def health(config: Settings = Depends(get_settings)) -> HealthResponse:
    return HealthResponse(version=__version__, service=config.app_name)


# ---------------------------------------------------------------------------
# Error Mapping
# ---------------------------------------------------------------------------


async def analyze_error_handler(request: Request, exc: AnalyzeError) -> JSONResponse:
    """Translate a tagged pipeline failure into its HTTP response."""
    status_code = STATUS_BY_KIND.get(exc.kind, 500)

    if status_code >= 500:
        logger.exception(
            "Analyze failed on %s: %s (%s)", request.url.path, exc.kind, exc.message,
            exc_info=exc,
        )
    else:
        logger.info("Analyze rejected: %s (%s)", exc.kind, exc.message)

    return JSONResponse(status_code=status_code, content=exc.to_dict())
