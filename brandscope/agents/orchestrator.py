# =============================================================================
# Orchestrator — Knowledge Build + Bounded Analyst/Evaluator Revision Loop
# =============================================================================
#
# Drives one analyze() request end to end:
#
#   BUILDING_KNOWLEDGE ──▶ ANALYZING ──▶ EVALUATING ──┬─▶ APPROVED
#                              ▲                       ├─▶ EXHAUSTED
#                              └────── REVISING ◀──────┘
#   (any failure) ──▶ FAILED (raised as a tagged AnalyzeError)
#
# PREPARATION (plain asyncio, before the graph runs):
#   transcript, comments, statistics and brand ingestion run concurrently.
#   The first failure cancels the rest and aborts the request: no agent is
#   ever invoked on incomplete data.
#
# REVISION LOOP (LangGraph):
#   START ──▶ analyse ──▶ evaluate ──▶ (END | analyse)
#   A rejected analysis is appended to the RevisionContext and sent back to
#   the Analyst, until approval or max_iterations attempts. The bound holds
#   no matter what the Evaluator says.
#
# DESIGN DECISION: Collaborators travel in the graph state.
# Analyst, Evaluator and Retrieval Tool are request-scoped objects placed in
# the initial state, so the compiled graph is shared while every request
# keeps its own knowledge store. Not JSON-serialisable; safe as long as no
# checkpointer is configured (current: none).
#
# DESIGN DECISION: Graph compiled once at module level and reused.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, TypeVar

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from brandscope.agents.analyst import Analyst, AnalystInput, LLMAnalyst
from brandscope.agents.evaluator import Evaluator, LLMEvaluator
from brandscope.agents.retrieval import RetrievalTool
from brandscope.config import settings
from brandscope.errors import (
    AgentUnavailableError,
    AnalyzeError,
    FetchFailureError,
    IngestionFailureError,
    InvalidUrlError,
    RetrievalError,
)
from brandscope.models.analysis import (
    AnalysisResult,
    EvaluationVerdict,
    RevisionContext,
)
from brandscope.models.responses import (
    AnalyzeResult,
    ApprovalStatus,
    Insights,
    VideoStats,
)
from brandscope.services.brand import BrandSource, WebBrandSource
from brandscope.services.chunker import chunk_text
from brandscope.services.embedder import embed_batch
from brandscope.services.knowledge import EmbedFn, KnowledgeStore
from brandscope.services.llm import get_llm_provider
from brandscope.services.video import VideoSource, YouTubeSource, validate_video_url

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PipelineStage(str, Enum):
    BUILDING_KNOWLEDGE = "BUILDING_KNOWLEDGE"
    ANALYZING = "ANALYZING"
    EVALUATING = "EVALUATING"
    REVISING = "REVISING"
    APPROVED = "APPROVED"
    EXHAUSTED = "EXHAUSTED"
    FAILED = "FAILED"


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


@dataclass
class PipelineDeps:
    """
    External collaborators and tunables for one pipeline run.

    Tests build this directly with stub sources, a synthetic embedder and
    scripted agents. Production uses from_settings().
    """

    video: VideoSource
    brand: BrandSource
    embed_fn: EmbedFn
    analyst: Analyst
    evaluator: Evaluator
    max_iterations: int = field(default_factory=lambda: settings.max_revision_iterations)
    top_k: int = field(default_factory=lambda: settings.retrieval_top_k)
    embedding_batch_size: int = field(default_factory=lambda: settings.embedding_batch_size)
    brand_chunk_size: int = field(default_factory=lambda: settings.brand_chunk_size)
    brand_chunk_overlap: int = field(default_factory=lambda: settings.brand_chunk_overlap)
    transcript_chunk_size: int = field(default_factory=lambda: settings.transcript_chunk_size)
    transcript_chunk_overlap: int = field(
        default_factory=lambda: settings.transcript_chunk_overlap,
    )

    @classmethod
    def from_settings(cls) -> PipelineDeps:
        """
        Production wiring: YouTube, the web, OpenAI embeddings, LLM agents.

        Raises:
            AgentUnavailableError: If no LLM provider can be configured.
        """
        try:
            llm = get_llm_provider()
        except ValueError as e:
            raise AgentUnavailableError(str(e)) from e

        return cls(
            video=YouTubeSource(),
            brand=WebBrandSource(),
            embed_fn=embed_batch,
            analyst=LLMAnalyst(llm),
            evaluator=LLMEvaluator(llm),
        )


DepsFactory = Callable[[], PipelineDeps]


# ---------------------------------------------------------------------------
# Graph State
# ---------------------------------------------------------------------------


class LoopState(TypedDict, total=False):
    """
    State flowing through the revision-loop graph.

    total=False so nodes only return the keys they update.
    """

    # --- Input (set by analyze) ---
    request: AnalystInput
    tool: RetrievalTool
    analyst: Analyst
    evaluator: Evaluator
    max_iterations: int

    # --- Loop bookkeeping ---
    revision_context: RevisionContext
    iterations: int
    stage: PipelineStage

    # --- Latest attempt ---
    analysis: AnalysisResult
    verdict: EvaluationVerdict


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def analyse_node(state: LoopState) -> dict:
    """Run the Analyst once, with all feedback gathered so far."""
    attempt = state.get("iterations", 0) + 1
    context = state.get("revision_context") or RevisionContext()
    request = replace(
        state["request"],
        revision_context=context if len(context) else None,
    )

    logger.info(
        "%s: attempt %d/%d (prior feedback: %d)",
        PipelineStage.ANALYZING.value, attempt, state["max_iterations"], len(context),
    )

    try:
        analysis = await state["analyst"].analyse(request, state["tool"])
    except RetrievalError as e:
        raise IngestionFailureError(f"Brand retrieval failed: {e}") from e

    return {
        "analysis": analysis,
        "iterations": attempt,
        "stage": PipelineStage.EVALUATING,
    }


async def evaluate_node(state: LoopState) -> dict:
    """Review the latest analysis and decide: approve, revise, or stop."""
    analysis = state["analysis"]
    brand_context = [result for _query, result in state["tool"].history]

    verdict = await state["evaluator"].evaluate(
        analysis, state["request"], brand_context,
    )

    if verdict.approved:
        logger.info("%s after %d attempt(s)", PipelineStage.APPROVED.value, state["iterations"])
        return {"verdict": verdict, "stage": PipelineStage.APPROVED}

    if state["iterations"] >= state["max_iterations"]:
        logger.warning(
            "%s: %d attempt(s) rejected, returning last analysis unapproved",
            PipelineStage.EXHAUSTED.value, state["iterations"],
        )
        return {"verdict": verdict, "stage": PipelineStage.EXHAUSTED}

    previous = state.get("revision_context") or RevisionContext()
    context = RevisionContext(entries=list(previous.entries))
    context.append(analysis, verdict)

    logger.info(
        "%s: attempt %d rejected (%s)",
        PipelineStage.REVISING.value, state["iterations"], verdict.output[:120],
    )
    return {
        "verdict": verdict,
        "revision_context": context,
        "stage": PipelineStage.REVISING,
    }


def route_after_evaluation(state: LoopState) -> str:
    """REVISING loops back to the Analyst; APPROVED/EXHAUSTED end the run."""
    if state["stage"] == PipelineStage.REVISING:
        return "analyse"
    return END


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------

_builder = StateGraph(LoopState)
_builder.add_node("analyse", analyse_node)
_builder.add_node("evaluate", evaluate_node)

_builder.add_edge(START, "analyse")
_builder.add_edge("analyse", "evaluate")
_builder.add_conditional_edges(
    "evaluate", route_after_evaluation, {"analyse": "analyse", END: END},
)

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def analyze(
    video_url: str,
    brand_url: str,
    *,
    include_draft: bool = False,
    deps: PipelineDeps | DepsFactory | None = None,
) -> AnalyzeResult:
    """
    Assess a video's relevance to a brand, gated by automated review.

    Args:
        video_url: YouTube video URL.
        brand_url: Public page describing the brand.
        include_draft: Ask for a draft engagement comment.
        deps: Collaborators, or a factory for them. Resolved only after
            the URL is validated; defaults to PipelineDeps.from_settings().

    Returns:
        AnalyzeResult with approval_status APPROVED or EXHAUSTED.

    Raises:
        InvalidUrlError, FetchFailureError, IngestionFailureError,
        AgentUnavailableError, SchemaViolation.
    """
    validation = validate_video_url(video_url)
    if not validation.valid:
        raise InvalidUrlError(f"Not a valid YouTube video URL: {video_url!r}")
    video_id = validation.video_id

    if deps is None:
        deps = PipelineDeps.from_settings()
    elif not isinstance(deps, PipelineDeps):
        deps = deps()
    if deps.max_iterations < 1:
        raise ValueError(f"max_iterations must be >= 1, got {deps.max_iterations}")

    logger.info(
        "Analyze request: video_id=%s, brand_url=%s, include_draft=%s",
        video_id, brand_url, include_draft,
    )

    try:
        # --- BUILDING_KNOWLEDGE (+ video fetches, concurrently) ---
        logger.info("%s", PipelineStage.BUILDING_KNOWLEDGE.value)
        store = KnowledgeStore(deps.embed_fn, batch_size=deps.embedding_batch_size)
        transcript, comments, stats, _ = await gather_fail_fast(
            _fetch("transcript", deps.video.fetch_transcript, video_id),
            _fetch("comments", deps.video.fetch_comments, video_id),
            _fetch("statistics", deps.video.fetch_statistics, video_id),
            build_knowledge(store, brand_url, deps),
        )

        request = AnalystInput(
            video_id=video_id,
            brand_url=brand_url,
            transcript_chunks=chunk_text(
                transcript,
                chunk_size=deps.transcript_chunk_size,
                chunk_overlap=deps.transcript_chunk_overlap,
                source_tag="transcript",
            ),
            comments=comments,
            stats=stats,
            include_draft=include_draft,
        )

        # --- ANALYZING ⇄ EVALUATING ---
        initial_state: LoopState = {
            "request": request,
            "tool": RetrievalTool(store, top_k=deps.top_k),
            "analyst": deps.analyst,
            "evaluator": deps.evaluator,
            "max_iterations": deps.max_iterations,
            "iterations": 0,
            "revision_context": RevisionContext(),
        }
        final = await graph.ainvoke(
            initial_state,
            config={"recursion_limit": 2 * deps.max_iterations + 5},
        )
    except AnalyzeError as e:
        logger.warning("%s: %s (%s)", PipelineStage.FAILED.value, e.kind, e.message)
        raise

    return _build_result(video_id, final, stats)


async def build_knowledge(
    store: KnowledgeStore,
    brand_url: str,
    deps: PipelineDeps,
) -> None:
    """Fetch the brand page, chunk it, and embed it into `store`."""
    document = await _fetch("brand page", deps.brand.fetch_brand_document, brand_url)

    try:
        chunks = chunk_text(
            document,
            chunk_size=deps.brand_chunk_size,
            chunk_overlap=deps.brand_chunk_overlap,
            source_tag=brand_url,
        )
        await store.insert(chunks)
    except Exception as e:
        raise IngestionFailureError(f"Could not index brand page {brand_url}: {e}") from e

    logger.info("Knowledge store ready: %d chunks from %s", len(store), brand_url)


async def gather_fail_fast(*aws: Awaitable[Any]) -> list[Any]:
    """
    Await all awaitables concurrently; on the first failure cancel the rest
    and re-raise that failure.

    Unlike asyncio.gather(), sibling tasks do not keep running (and keep
    spending API quota) after one of them has failed.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()

    if pending:
        # Let cancelled siblings unwind before propagating
        await asyncio.wait(pending)

    for task in tasks:
        if task in done and task.exception() is not None:
            raise task.exception()
    return [task.result() for task in tasks]


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


async def _fetch(what: str, fetch: Callable[[str], Awaitable[T]], arg: str) -> T:
    """Call a collaborator, tagging unexpected errors as FetchFailure."""
    try:
        return await fetch(arg)
    except AnalyzeError:
        raise
    except Exception as e:
        raise FetchFailureError(f"Fetching {what} failed: {e}") from e


def _build_result(video_id: str, final: LoopState, stats: VideoStats) -> AnalyzeResult:
    analysis = final["analysis"]
    verdict = final["verdict"]
    status = (
        ApprovalStatus.APPROVED
        if final["stage"] == PipelineStage.APPROVED
        else ApprovalStatus.EXHAUSTED
    )

    return AnalyzeResult(
        video_id=video_id,
        relevance=analysis.relevance,
        insights=Insights(
            summary=analysis.summary,
            sentiment=analysis.sentiment,
            key_points=list(analysis.key_points),
            video_stats=stats,
            draft_comment=analysis.draft_comment,
        ),
        approval_status=status,
        review=verdict.output,
        iterations=final["iterations"],
    )
