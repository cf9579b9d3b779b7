# =============================================================================
# Evaluator Agent — Quality Gate Before Results Reach the Caller
# =============================================================================
#
# The gatekeeper half of the review loop. Reviews one AnalysisResult
# against the same video data and the brand snippets the Analyst retrieved,
# then approves it or rejects it with actionable feedback.
#
# CONTRACT:
#   evaluate(analysis, request, brand_context) -> EvaluationVerdict
#   - verdict is exactly {"approved": bool, "output": str}; anything else
#     raises SchemaViolation (fatal for the iteration)
#   - model unreachable → AgentUnavailableError
#
# Review criteria: factual grounding, brand alignment, coverage, tone.
# =============================================================================

from __future__ import annotations

import logging
from typing import Protocol

from brandscope.agents.analyst import AnalystInput
from brandscope.agents.retrieval import NO_BRAND_CONTEXT
from brandscope.agents.validation import parse_verdict
from brandscope.errors import AgentUnavailableError
from brandscope.models.analysis import AnalysisResult, EvaluationVerdict
from brandscope.services.llm import LLMProvider
from brandscope.services.tokens import truncate_to_tokens

logger = logging.getLogger(__name__)

_EVIDENCE_TOKEN_BUDGET = 3000


class Evaluator(Protocol):
    async def evaluate(
        self,
        analysis: AnalysisResult,
        request: AnalystInput,
        brand_context: list[str],
    ) -> EvaluationVerdict: ...


EVALUATOR_SYSTEM = """You are a strict quality reviewer for brand \
partnership analyses. You decide whether an analysis is good enough to show \
to the brand team.

Check, in order:
1. Grounding: every key point is supported by the transcript, comments, \
statistics or brand snippets provided. Invented facts fail the review.
2. Brand alignment: the relevance rating is consistent with the brand \
snippets. Without brand context, relevance must be justified from the \
video alone and the summary must say so.
3. Coverage: the key points cover the video's main topics and the \
audience reaction.
4. Tone: professional; any draft comment is genuine, specific to the \
video, and not spammy.

Respond with ONLY valid JSON (no markdown, no explanation), exactly:
{"approved": true or false, "output": "..."}

- If approved: "output" is the finalized, user-facing summary of the \
assessment (2-4 sentences).
- If rejected: "output" lists specific, actionable fixes (which point is \
unsupported, what evidence is missing). Do not just restate that it was \
rejected."""


class LLMEvaluator:
    """Evaluator backed by an LLMProvider."""

    def __init__(self, llm: LLMProvider) -> None:
        self._llm = llm

    async def evaluate(
        self,
        analysis: AnalysisResult,
        request: AnalystInput,
        brand_context: list[str],
    ) -> EvaluationVerdict:
        user_message = build_evaluator_prompt(analysis, request, brand_context)

        try:
            response = await self._llm.complete(
                messages=[{"role": "user", "content": user_message}],
                system=EVALUATOR_SYSTEM,
                temperature=0.0,
                max_tokens=512,
                json_output=True,
            )
        except AgentUnavailableError:
            raise
        except Exception as e:
            raise AgentUnavailableError(f"Evaluator model call failed: {e}") from e

        verdict = parse_verdict(response.content)
        logger.info("Evaluator verdict: approved=%s", verdict.approved)
        return verdict


def build_evaluator_prompt(
    analysis: AnalysisResult,
    request: AnalystInput,
    brand_context: list[str],
) -> str:
    """Assemble the review request: analysis under review plus evidence."""
    stats = request.stats
    transcript = "\n\n".join(c.content.strip() for c in request.transcript_chunks)
    comments = "\n".join(f"- {c}" for c in request.comments) or "(no comments)"
    evidence = truncate_to_tokens(
        f"Transcript:\n{transcript}\n\nComments:\n{comments}",
        _EVIDENCE_TOKEN_BUDGET,
    )
    brand = "\n\n".join(brand_context) if brand_context else NO_BRAND_CONTEXT

    return (
        f"Analysis under review:\n{analysis.model_dump_json(indent=2)}\n\n"
        f"Draft comment requested: {'yes' if request.include_draft else 'no'}\n\n"
        f"Video statistics: {stats.views} views, {stats.likes} likes, "
        f"{stats.comment_count} comments\n\n"
        f"Brand snippets the analyst retrieved:\n{brand}\n\n"
        f"{evidence}"
    )
