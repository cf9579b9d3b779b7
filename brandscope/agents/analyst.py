# =============================================================================
# Analyst Agent — Video × Brand Assessment
# =============================================================================
#
# The producer half of the review loop. Reads the transcript, comments and
# engagement statistics, searches the brand page through the Retrieval Tool
# as often as it needs (within a budget), and returns an AnalysisResult.
#
# CONTRACT:
#   analyse(request, tool) -> AnalysisResult
#   - output is always schema-valid, or SchemaViolation is raised
#   - model unreachable → AgentUnavailableError
#   - no internal retries; the orchestrator owns the retry policy
#
# TOOL LOOP (provider-agnostic, plain JSON turns):
#   model → {"action": "search_brand", "query": "..."}
#   us    → numbered brand snippets
#   ... up to max_tool_calls searches ...
#   model → final analysis object
#
# DESIGN DECISION: Tool calls as JSON turns rather than provider-native
# tool use. Both providers in services/llm.py expose plain completions, so
# the same loop runs unchanged on Claude and on OpenAI-compatible models.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from brandscope.agents.retrieval import RetrievalTool
from brandscope.agents.validation import load_json_object, parse_analysis
from brandscope.config import settings
from brandscope.errors import AgentUnavailableError
from brandscope.models.analysis import AnalysisResult, RevisionContext
from brandscope.models.responses import VideoStats
from brandscope.services.chunker import Chunk
from brandscope.services.llm import LLMProvider
from brandscope.services.tokens import truncate_to_tokens

logger = logging.getLogger(__name__)

_COMMENT_TOKEN_BUDGET = 1500


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class AnalystInput:
    """Everything the Analyst sees for one attempt."""

    video_id: str
    brand_url: str
    transcript_chunks: list[Chunk]
    comments: list[str]
    stats: VideoStats
    include_draft: bool = False
    revision_context: RevisionContext | None = None


class Analyst(Protocol):
    async def analyse(
        self,
        request: AnalystInput,
        tool: RetrievalTool,
    ) -> AnalysisResult: ...


# ---------------------------------------------------------------------------
# System Prompt
# ---------------------------------------------------------------------------

ANALYST_SYSTEM = """You are a brand partnership analyst. You assess how \
relevant a video is to a brand and how its audience feels about it.

You can search the brand's web page. To search, reply with ONLY:
{"action": "search_brand", "query": "<what you want to know about the brand>"}

Search before judging relevance: look up the brand's products, audience and \
values. When you have enough information, reply with ONLY this JSON object \
(no markdown, no explanation):
{
  "relevance": "high" | "medium" | "low" | "none",
  "sentiment": "positive" | "neutral" | "negative",
  "summary": "1-3 sentences on how the video relates to the brand",
  "key_points": ["3 to 5 specific, evidence-based points"],
  "draft_comment": "engagement comment, or null"
}

Rules:
- relevance: how closely the video's topic and audience match the brand
- sentiment: the audience's reaction, judged from comments and engagement
- key_points must cite concrete evidence from the transcript, comments, \
statistics or brand snippets; never invent facts
- If brand search returns "[no brand context available]", say so in the \
summary and judge relevance from the video alone"""


# ---------------------------------------------------------------------------
# LLM-Backed Analyst
# ---------------------------------------------------------------------------


class LLMAnalyst:
    """Analyst backed by an LLMProvider."""

    def __init__(
        self,
        llm: LLMProvider,
        max_tool_calls: int | None = None,
        max_transcript_tokens: int | None = None,
    ) -> None:
        self._llm = llm
        self._max_tool_calls = (
            settings.max_tool_calls if max_tool_calls is None else max_tool_calls
        )
        self._max_transcript_tokens = (
            max_transcript_tokens or settings.analysis_max_transcript_tokens
        )

    async def analyse(
        self,
        request: AnalystInput,
        tool: RetrievalTool,
    ) -> AnalysisResult:
        messages = [{
            "role": "user",
            "content": build_analyst_prompt(request, self._max_transcript_tokens),
        }]
        searches = 0

        while True:
            content = await self._complete(messages)
            query = _requested_search(content)

            if query is None:
                break

            messages.append({"role": "assistant", "content": content})

            if searches >= self._max_tool_calls:
                logger.info("Analyst search budget (%d) used", self._max_tool_calls)
                messages.append({
                    "role": "user",
                    "content": (
                        "Search budget used. Reply now with the final "
                        "analysis JSON object."
                    ),
                })
                content = await self._complete(messages)
                break

            searches += 1
            snippets = await tool(query)
            messages.append({
                "role": "user",
                "content": f"search_brand results for \"{query}\":\n\n{snippets}",
            })

        result = parse_analysis(content)
        if not request.include_draft and result.draft_comment is not None:
            result = result.model_copy(update={"draft_comment": None})

        logger.info(
            "Analyst complete: relevance=%s, sentiment=%s, searches=%d",
            result.relevance, result.sentiment, searches,
        )
        return result

    async def _complete(self, messages: list[dict[str, str]]) -> str:
        try:
            response = await self._llm.complete(
                messages=messages,
                system=ANALYST_SYSTEM,
                json_output=True,
            )
        except AgentUnavailableError:
            raise
        except Exception as e:
            raise AgentUnavailableError(f"Analyst model call failed: {e}") from e
        return response.content


# ---------------------------------------------------------------------------
# Prompt Building
# ---------------------------------------------------------------------------


def build_analyst_prompt(request: AnalystInput, max_transcript_tokens: int) -> str:
    """Assemble the Analyst's user message for one attempt."""
    stats = request.stats
    like_rate = f"{stats.likes / stats.views:.2%}" if stats.views else "n/a"

    transcript = "\n\n".join(
        f"[T{chunk.index + 1}] {chunk.content.strip()}"
        for chunk in request.transcript_chunks
    )
    transcript = truncate_to_tokens(transcript, max_transcript_tokens)

    if request.comments:
        comments = "\n".join(f"- {comment}" for comment in request.comments)
        comments = truncate_to_tokens(comments, _COMMENT_TOKEN_BUDGET)
    else:
        comments = "(no comments)"

    sections = [
        f"Brand page: {request.brand_url}",
        (
            f"Video statistics: {stats.views} views, {stats.likes} likes "
            f"(like rate {like_rate}), {stats.comment_count} comments"
        ),
        f"Transcript ({len(request.transcript_chunks)} segments):\n{transcript}",
        f"Top comments ({len(request.comments)}):\n{comments}",
    ]

    if request.include_draft:
        sections.append(
            "Include a draft_comment: a short, genuine comment the brand "
            "could post under this video."
        )
    else:
        sections.append("Set draft_comment to null.")

    if request.revision_context:
        sections.append(_format_revisions(request.revision_context))

    return "\n\n".join(sections)


def _format_revisions(context: RevisionContext) -> str:
    """Describe rejected attempts, calling out the latest feedback."""
    lines = ["Your previous analyses were rejected by the reviewer."]
    for attempt, entry in enumerate(context.entries, 1):
        lines.append(
            f"Attempt {attempt}:\n"
            f"{entry.analysis.model_dump_json()}\n"
            f"Reviewer feedback: {entry.verdict.output}"
        )

    latest = context.latest
    lines.append(
        "Address the most recent feedback point by point. Do not resubmit "
        f"the previous analysis unchanged.\nMost recent feedback: "
        f"{latest.verdict.output}"
    )
    return "\n\n".join(lines)


def _requested_search(content: str) -> str | None:
    """Return the search query if the model asked for a brand search."""
    payload = load_json_object(content)
    if not payload or payload.get("action") != "search_brand":
        return None
    query = payload.get("query")
    if not isinstance(query, str) or not query.strip():
        return None
    return query.strip()
