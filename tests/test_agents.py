# =============================================================================
# Unit Tests — Agents
# =============================================================================
#
# Tests the validation boundary and the LLM-backed Analyst/Evaluator without
# API keys. LLM providers are AsyncMocks returning canned LLMResponses.
# =============================================================================

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fakes import make_analysis

from brandscope.agents.analyst import (
    ANALYST_SYSTEM,
    AnalystInput,
    LLMAnalyst,
    build_analyst_prompt,
)
from brandscope.agents.evaluator import LLMEvaluator, build_evaluator_prompt
from brandscope.agents.retrieval import NO_BRAND_CONTEXT
from brandscope.agents.validation import extract_json, parse_analysis, parse_verdict
from brandscope.errors import AgentUnavailableError, SchemaViolation
from brandscope.models.analysis import EvaluationVerdict, RevisionContext
from brandscope.models.responses import VideoStats
from brandscope.services.chunker import Chunk
from brandscope.services.llm import LLMResponse


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _response(content: str | dict) -> LLMResponse:
    if isinstance(content, dict):
        content = json.dumps(content)
    return LLMResponse(
        content=content, model="test-model", input_tokens=100, output_tokens=20,
    )


ANALYSIS_JSON = {
    "relevance": "high",
    "sentiment": "positive",
    "summary": "A trail shoe review that matches the brand's core product.",
    "key_points": [
        "Host runs 20 km in the shoes",
        "Comments praise the grip",
        "Brand focuses on trail running",
    ],
    "draft_comment": "Loved the wet-rock test!",
}


def _request(**overrides) -> AnalystInput:
    fields = {
        "video_id": "dQw4w9WgXcQ",
        "brand_url": "https://brand.example.com",
        "transcript_chunks": [
            Chunk(content="We test trail shoes on wet rock.", source_tag="transcript"),
        ],
        "comments": ["Great grip!", "Which size did you get?"],
        "stats": VideoStats(views=2000, likes=100, comment_count=2),
    }
    fields.update(overrides)
    return AnalystInput(**fields)


# ---------------------------------------------------------------------------
# Test: Validation Boundary
# ---------------------------------------------------------------------------


class TestExtractJson:
    """Tests for stripping fences and prose around model JSON."""

    def test_plain_json_unchanged(self):
        assert extract_json('{"a": 1}') == '{"a": 1}'

    def test_strips_markdown_fence(self):
        assert extract_json('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_surrounding_prose(self):
        raw = 'Here is my verdict:\n{"a": 1}\nHope that helps.'
        assert extract_json(raw) == '{"a": 1}'


class TestParseAnalysis:
    """Tests for validating Analyst output."""

    def test_valid_output(self):
        result = parse_analysis(json.dumps(ANALYSIS_JSON))
        assert result.relevance == "high"
        assert len(result.key_points) == 3

    def test_enum_case_normalised(self):
        raw = json.dumps({**ANALYSIS_JSON, "relevance": "High", "sentiment": " Neutral"})
        result = parse_analysis(raw)
        assert (result.relevance, result.sentiment) == ("high", "neutral")

    def test_camel_case_keys_accepted(self):
        payload = {**ANALYSIS_JSON}
        payload["keyPoints"] = payload.pop("key_points")
        payload["draftComment"] = payload.pop("draft_comment")
        result = parse_analysis(json.dumps(payload))
        assert result.draft_comment == "Loved the wet-rock test!"

    def test_blank_draft_becomes_none(self):
        result = parse_analysis(json.dumps({**ANALYSIS_JSON, "draft_comment": "  "}))
        assert result.draft_comment is None

    def test_unknown_relevance_rejected(self):
        with pytest.raises(SchemaViolation) as excinfo:
            parse_analysis(json.dumps({**ANALYSIS_JSON, "relevance": "very high"}))
        assert excinfo.value.kind == "SchemaViolation"
        assert excinfo.value.agent == "Analyst"

    @pytest.mark.parametrize("count", [2, 6])
    def test_key_point_count_enforced(self, count):
        points = [f"point {i}" for i in range(count)]
        with pytest.raises(SchemaViolation):
            parse_analysis(json.dumps({**ANALYSIS_JSON, "key_points": points}))

    def test_missing_summary_rejected(self):
        payload = {k: v for k, v in ANALYSIS_JSON.items() if k != "summary"}
        with pytest.raises(SchemaViolation):
            parse_analysis(json.dumps(payload))

    def test_not_json_rejected(self):
        with pytest.raises(SchemaViolation) as excinfo:
            parse_analysis("I think the video is very relevant.")
        assert excinfo.value.raw == "I think the video is very relevant."


class TestParseVerdict:
    """Tests for validating Evaluator output."""

    def test_valid_verdict(self):
        verdict = parse_verdict('{"approved": true, "output": " Looks good. "}')
        assert verdict == EvaluationVerdict(approved=True, output="Looks good.")

    def test_fenced_verdict(self):
        verdict = parse_verdict('```json\n{"approved": false, "output": "Fix point 2."}\n```')
        assert verdict.approved is False

    def test_extra_field_rejected(self):
        with pytest.raises(SchemaViolation):
            parse_verdict('{"approved": true, "output": "ok", "score": 9}')

    def test_string_boolean_rejected(self):
        with pytest.raises(SchemaViolation):
            parse_verdict('{"approved": "yes", "output": "ok"}')

    def test_blank_output_rejected(self):
        with pytest.raises(SchemaViolation):
            parse_verdict('{"approved": false, "output": "   "}')


# ---------------------------------------------------------------------------
# Test: Analyst with Mock LLM
# ---------------------------------------------------------------------------


class TestLLMAnalyst:
    """Tests for the JSON tool loop of the LLM-backed Analyst."""

    def test_direct_answer_without_search(self):
        mock_llm = AsyncMock()
        mock_llm.complete.return_value = _response(ANALYSIS_JSON)
        tool = AsyncMock()

        result = _run(LLMAnalyst(mock_llm, max_tool_calls=3).analyse(_request(), tool))

        assert result.relevance == "high"
        tool.assert_not_called()
        mock_llm.complete.assert_called_once()
        assert mock_llm.complete.call_args.kwargs["system"] == ANALYST_SYSTEM

    def test_search_then_answer(self):
        mock_llm = AsyncMock()
        mock_llm.complete.side_effect = [
            _response({"action": "search_brand", "query": "brand products"}),
            _response(ANALYSIS_JSON),
        ]
        tool = AsyncMock(return_value="[1] We sell trail running shoes.")

        result = _run(LLMAnalyst(mock_llm, max_tool_calls=3).analyse(_request(), tool))

        assert result.summary == ANALYSIS_JSON["summary"]
        tool.assert_awaited_once_with("brand products")
        last_messages = mock_llm.complete.call_args.kwargs["messages"]
        assert "We sell trail running shoes." in last_messages[-1]["content"]

    def test_search_budget_enforced(self):
        search = _response({"action": "search_brand", "query": "more"})
        mock_llm = AsyncMock()
        mock_llm.complete.side_effect = [search, search, _response(ANALYSIS_JSON)]
        tool = AsyncMock(return_value=NO_BRAND_CONTEXT)

        result = _run(LLMAnalyst(mock_llm, max_tool_calls=1).analyse(_request(), tool))

        assert result.relevance == "high"
        assert tool.await_count == 1
        last_messages = mock_llm.complete.call_args.kwargs["messages"]
        assert "Search budget used" in last_messages[-1]["content"]

    def test_draft_cleared_when_not_requested(self):
        mock_llm = AsyncMock()
        mock_llm.complete.return_value = _response(ANALYSIS_JSON)

        result = _run(LLMAnalyst(mock_llm).analyse(_request(include_draft=False), AsyncMock()))
        assert result.draft_comment is None

    def test_draft_kept_when_requested(self):
        mock_llm = AsyncMock()
        mock_llm.complete.return_value = _response(ANALYSIS_JSON)

        result = _run(LLMAnalyst(mock_llm).analyse(_request(include_draft=True), AsyncMock()))
        assert result.draft_comment == "Loved the wet-rock test!"

    def test_invalid_output_raises_schema_violation(self):
        mock_llm = AsyncMock()
        mock_llm.complete.return_value = _response({"relevance": "high"})

        with pytest.raises(SchemaViolation):
            _run(LLMAnalyst(mock_llm).analyse(_request(), AsyncMock()))

    def test_provider_error_raises_agent_unavailable(self):
        mock_llm = AsyncMock()
        mock_llm.complete.side_effect = ConnectionError("connection reset")

        with pytest.raises(AgentUnavailableError):
            _run(LLMAnalyst(mock_llm).analyse(_request(), AsyncMock()))


class TestBuildAnalystPrompt:
    """Tests for the Analyst's user message."""

    def test_includes_video_data(self):
        prompt = build_analyst_prompt(_request(), max_transcript_tokens=6000)
        assert "[T1] We test trail shoes on wet rock." in prompt
        assert "- Great grip!" in prompt
        assert "2000 views" in prompt
        assert "like rate 5.00%" in prompt
        assert "Set draft_comment to null." in prompt

    def test_no_comments_marker(self):
        prompt = build_analyst_prompt(_request(comments=[]), max_transcript_tokens=6000)
        assert "(no comments)" in prompt

    def test_zero_views_has_no_like_rate(self):
        stats = VideoStats(views=0, likes=0, comment_count=0)
        prompt = build_analyst_prompt(_request(stats=stats), max_transcript_tokens=6000)
        assert "like rate n/a" in prompt

    def test_revision_feedback_included(self):
        context = RevisionContext()
        context.append(
            make_analysis(),
            EvaluationVerdict(approved=False, output="Point 1 is unsupported."),
        )
        context.append(
            make_analysis(relevance="medium"),
            EvaluationVerdict(approved=False, output="Cite the comments."),
        )

        prompt = build_analyst_prompt(
            _request(revision_context=context), max_transcript_tokens=6000,
        )

        assert "Attempt 1:" in prompt and "Attempt 2:" in prompt
        assert "Point 1 is unsupported." in prompt
        assert prompt.rstrip().endswith("Most recent feedback: Cite the comments.")


# ---------------------------------------------------------------------------
# Test: Evaluator with Mock LLM
# ---------------------------------------------------------------------------


class TestLLMEvaluator:
    """Tests for the LLM-backed Evaluator."""

    def test_returns_verdict(self):
        mock_llm = AsyncMock()
        mock_llm.complete.return_value = _response(
            {"approved": True, "output": "Relevant and well grounded."},
        )

        verdict = _run(LLMEvaluator(mock_llm).evaluate(
            make_analysis(), _request(), ["[1] We sell trail running shoes."],
        ))

        assert verdict.approved is True
        kwargs = mock_llm.complete.call_args.kwargs
        assert kwargs["temperature"] == 0.0
        assert "We sell trail running shoes." in kwargs["messages"][0]["content"]

    def test_malformed_verdict_raises_schema_violation(self):
        mock_llm = AsyncMock()
        mock_llm.complete.return_value = _response("Approved!")

        with pytest.raises(SchemaViolation) as excinfo:
            _run(LLMEvaluator(mock_llm).evaluate(make_analysis(), _request(), []))
        assert excinfo.value.agent == "Evaluator"

    def test_provider_error_raises_agent_unavailable(self):
        mock_llm = AsyncMock()
        mock_llm.complete.side_effect = TimeoutError("timed out")

        with pytest.raises(AgentUnavailableError):
            _run(LLMEvaluator(mock_llm).evaluate(make_analysis(), _request(), []))

    def test_prompt_marks_missing_brand_context(self):
        prompt = build_evaluator_prompt(make_analysis(), _request(), [])
        assert NO_BRAND_CONTEXT in prompt
        assert "Draft comment requested: no" in prompt


# ---------------------------------------------------------------------------
# Test: LLM Provider Factory
# ---------------------------------------------------------------------------


class TestLLMProviderFactory:
    """Tests for the LLM provider factory function."""

    def test_factory_raises_without_api_key(self):
        """Factory should raise ValueError when no API key is set."""
        from brandscope.services import llm

        original = llm._provider
        llm._provider = None

        try:
            with patch.object(
                llm.settings, "llm_provider", "anthropic"
            ), patch.object(
                llm.settings, "llm_api_key", None
            ), patch.object(
                llm.settings, "anthropic_api_key", ""
            ):
                with pytest.raises(ValueError, match="API key"):
                    llm.get_llm_provider()
        finally:
            llm._provider = original


# ---------------------------------------------------------------------------
# Test: Providers (SDK clients mocked)
# ---------------------------------------------------------------------------


class TestProviders:
    """Tests for request shaping in the two LLM providers."""

    def test_anthropic_passes_system_as_kwarg(self):
        from brandscope.services.llm import AnthropicProvider

        provider = AnthropicProvider(api_key="test-key", model="claude-test")
        provider._client = MagicMock()
        provider._client.messages.create = AsyncMock(return_value=SimpleNamespace(
            content=[SimpleNamespace(type="text", text='{"approved": true, "output": "ok"}')],
            model="claude-test",
            stop_reason="end_turn",
            usage=SimpleNamespace(input_tokens=12, output_tokens=5),
        ))

        response = _run(provider.complete(
            messages=[{"role": "user", "content": "review"}],
            system="be strict",
            temperature=0.0,
        ))

        kwargs = provider._client.messages.create.call_args.kwargs
        assert kwargs["system"] == "be strict"
        assert kwargs["temperature"] == 0.0
        assert response.content == '{"approved": true, "output": "ok"}'
        assert (response.input_tokens, response.output_tokens) == (12, 5)

    def test_openai_compatible_prepends_system_message(self):
        from brandscope.services.llm import OpenAICompatibleProvider

        provider = OpenAICompatibleProvider(api_key="test-key", model="gpt-test")
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="hello"))],
            model="gpt-test",
            usage=None,
        ))

        response = _run(provider.complete(
            messages=[{"role": "user", "content": "hi"}], system="be brief",
        ))

        messages = provider._client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "be brief"}
        assert response.content == "hello"
        assert response.input_tokens == 0

    def test_anthropic_json_output_prefills_brace(self):
        from brandscope.services.llm import AnthropicProvider

        provider = AnthropicProvider(api_key="test-key", model="claude-test")
        provider._client = MagicMock()
        provider._client.messages.create = AsyncMock(return_value=SimpleNamespace(
            content=[SimpleNamespace(type="text", text='"approved": false, "output": "x"}')],
            model="claude-test",
            stop_reason="end_turn",
            usage=SimpleNamespace(input_tokens=12, output_tokens=5),
        ))

        response = _run(provider.complete(
            messages=[{"role": "user", "content": "review"}], json_output=True,
        ))

        messages = provider._client.messages.create.call_args.kwargs["messages"]
        assert messages[-1] == {"role": "assistant", "content": "{"}
        assert len(messages) == 2
        assert parse_verdict(response.content).approved is False

    def test_anthropic_reports_truncated_reply(self):
        from brandscope.services.llm import AnthropicProvider

        provider = AnthropicProvider(api_key="test-key", model="claude-test")
        provider._client = MagicMock()
        provider._client.messages.create = AsyncMock(return_value=SimpleNamespace(
            content=[SimpleNamespace(type="text", text='{"approved": tr')],
            model="claude-test",
            stop_reason="max_tokens",
            usage=SimpleNamespace(input_tokens=12, output_tokens=512),
        ))

        response = _run(provider.complete(messages=[{"role": "user", "content": "review"}]))
        assert response.truncated is True

    def test_anthropic_sdk_error_is_agent_unavailable(self):
        import anthropic
        import httpx

        from brandscope.services.llm import AnthropicProvider

        provider = AnthropicProvider(api_key="test-key", model="claude-test")
        provider._client = MagicMock()
        provider._client.messages.create = AsyncMock(side_effect=anthropic.APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"),
        ))

        with pytest.raises(AgentUnavailableError, match="Anthropic"):
            _run(provider.complete(messages=[{"role": "user", "content": "hi"}]))

    def test_openai_compatible_json_output_sets_response_format(self):
        from brandscope.services.llm import OpenAICompatibleProvider

        provider = OpenAICompatibleProvider(api_key="test-key", model="gpt-test")
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(
                message=SimpleNamespace(content='{"approved": true, "output": "ok"}'),
                finish_reason="stop",
            )],
            model="gpt-test",
            usage=SimpleNamespace(prompt_tokens=30, completion_tokens=9),
        ))

        response = _run(provider.complete(
            messages=[{"role": "user", "content": "review"}], json_output=True,
        ))

        kwargs = provider._client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert response.truncated is False
        assert (response.input_tokens, response.output_tokens) == (30, 9)

    def test_openai_compatible_sdk_error_is_agent_unavailable(self):
        import httpx
        import openai

        from brandscope.services.llm import OpenAICompatibleProvider

        provider = OpenAICompatibleProvider(api_key="test-key", model="gpt-test")
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(side_effect=openai.APITimeoutError(
            request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"),
        ))

        with pytest.raises(AgentUnavailableError, match="OpenAI-compatible"):
            _run(provider.complete(messages=[{"role": "user", "content": "hi"}]))


class TestAgentsRequestJson:
    """Both agents ask the provider for JSON-only replies."""

    def test_analyst_requests_json_output(self):
        mock_llm = AsyncMock()
        mock_llm.complete.return_value = _response(ANALYSIS_JSON)

        _run(LLMAnalyst(mock_llm).analyse(_request(), AsyncMock()))
        assert mock_llm.complete.call_args.kwargs["json_output"] is True

    def test_evaluator_requests_json_output(self):
        mock_llm = AsyncMock()
        mock_llm.complete.return_value = _response({"approved": True, "output": "Fine."})

        _run(LLMEvaluator(mock_llm).evaluate(make_analysis(), _request(), []))
        assert mock_llm.complete.call_args.kwargs["json_output"] is True

    def test_provider_agent_unavailable_not_rewrapped(self):
        mock_llm = AsyncMock()
        mock_llm.complete.side_effect = AgentUnavailableError("Anthropic request failed: 529")

        with pytest.raises(AgentUnavailableError) as excinfo:
            _run(LLMAnalyst(mock_llm).analyse(_request(), AsyncMock()))
        assert excinfo.value.message == "Anthropic request failed: 529"
