# =============================================================================
# Structured-Output Validation Boundary
# =============================================================================
#
# Raw model text becomes a typed object here or nowhere. Each parser either
# returns a validated pydantic model or raises SchemaViolation; callers never
# see a half-parsed dict.
#
# Models like to wrap JSON in markdown fences or add a sentence around it,
# so the outermost {...} object is extracted before validation. Everything
# else (missing fields, wrong enum values, extra verdict fields, 6 key
# points) is a schema violation.
# =============================================================================

from __future__ import annotations

import json
import re

from pydantic import ValidationError

from brandscope.errors import SchemaViolation
from brandscope.models.analysis import AnalysisResult, EvaluationVerdict

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)


def extract_json(raw: str) -> str:
    """Strip code fences and surrounding prose, leaving the JSON object text."""
    text = raw.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1).strip()

    if not text.startswith("{"):
        start, end = text.find("{"), text.rfind("}")
        if start != -1 and end > start:
            text = text[start : end + 1]
    return text


def load_json_object(raw: str) -> dict | None:
    """Parse raw model output as a JSON object, or None if it isn't one."""
    try:
        value = json.loads(extract_json(raw))
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def parse_analysis(raw: str) -> AnalysisResult:
    """
    Validate Analyst output.

    Raises:
        SchemaViolation: If the output is not a valid AnalysisResult.
    """
    try:
        return AnalysisResult.model_validate_json(extract_json(raw))
    except ValidationError as e:
        raise SchemaViolation("Analyst", _summarise(e), raw) from e


def parse_verdict(raw: str) -> EvaluationVerdict:
    """
    Validate Evaluator output against the exact {approved, output} shape.

    Raises:
        SchemaViolation: If the output is not a valid EvaluationVerdict.
    """
    try:
        return EvaluationVerdict.model_validate_json(extract_json(raw))
    except ValidationError as e:
        raise SchemaViolation("Evaluator", _summarise(e), raw) from e


def _summarise(error: ValidationError, limit: int = 5) -> str:
    """One-line description of the first few validation errors."""
    parts = []
    for err in error.errors()[:limit]:
        location = ".".join(str(part) for part in err["loc"]) or "<root>"
        parts.append(f"{location}: {err['msg']}")
    return "; ".join(parts)
