# =============================================================================
# Agent Contracts — Pydantic V2 Schemas
# =============================================================================
#
# The shapes the Analyst and the Evaluator must produce. These models ARE
# the validation boundary: raw model output is parsed into them right after
# the LLM call returns (see agents/validation.py), and nothing downstream
# ever touches unvalidated text.
#
#   AnalysisResult     — Analyst output (relevance, sentiment, key points)
#   EvaluationVerdict  — Evaluator output, exactly {approved, output}
#   RevisionContext    — prior (analysis, verdict) pairs fed back to the
#                        Analyst on the next attempt
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    field_validator,
)

Relevance = Literal["high", "medium", "low", "none"]
Sentiment = Literal["positive", "neutral", "negative"]


class AnalysisResult(BaseModel):
    """
    The Analyst's assessment of one video against one brand.

    draft_comment is None when no draft was requested; an empty string is
    never stored.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    relevance: Relevance
    sentiment: Sentiment
    summary: str = Field(min_length=1)
    key_points: list[str] = Field(
        min_length=3,
        max_length=5,
        validation_alias=AliasChoices("key_points", "keyPoints"),
    )
    draft_comment: str | None = Field(
        default=None,
        validation_alias=AliasChoices("draft_comment", "draftComment"),
    )

    @field_validator("relevance", "sentiment", mode="before")
    @classmethod
    def _lowercase_enum(cls, value: object) -> object:
        # Models often answer "High" or "Positive"
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("summary")
    @classmethod
    def _strip_summary(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("summary must not be blank")
        return value

    @field_validator("key_points")
    @classmethod
    def _non_blank_points(cls, value: list[str]) -> list[str]:
        points = [point.strip() for point in value]
        if any(not point for point in points):
            raise ValueError("key points must not be blank")
        return points

    @field_validator("draft_comment", mode="before")
    @classmethod
    def _blank_draft_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class EvaluationVerdict(BaseModel):
    """
    The Evaluator's decision. Exactly two fields, nothing else accepted.

    approved=True  → output is the finalized, user-facing text
    approved=False → output is specific, actionable revision feedback
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    approved: StrictBool
    output: str = Field(min_length=1)

    @field_validator("output")
    @classmethod
    def _non_blank_output(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("output must not be blank")
        return value.strip()


# ---------------------------------------------------------------------------
# Revision Context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RevisionEntry:
    """One rejected attempt: what the Analyst said and why it was rejected."""

    analysis: AnalysisResult
    verdict: EvaluationVerdict


@dataclass
class RevisionContext:
    """Request-scoped history of rejected attempts, oldest first."""

    entries: list[RevisionEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def append(self, analysis: AnalysisResult, verdict: EvaluationVerdict) -> None:
        self.entries.append(RevisionEntry(analysis=analysis, verdict=verdict))

    @property
    def latest(self) -> RevisionEntry | None:
        return self.entries[-1] if self.entries else None
