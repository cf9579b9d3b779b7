# =============================================================================
# Reasoning Model Client — JSON Completions for the Analyst and Evaluator
# =============================================================================
#
# Both agents speak to the model in JSON turns: the Analyst emits search
# actions and a final analysis object, the Evaluator emits a verdict. This
# module hides the two supported backends behind one async `complete()`:
#
#   LLMProvider (Protocol)
#   ├── AnthropicProvider        — Claude, system prompt as top-level kwarg
#   ├── OpenAICompatibleProvider — OpenAI, DeepSeek, Qwen, ... via base_url
#   └── get_llm_provider()       — lazy singleton, reads from config
#
# JSON OUTPUT:
#   complete(..., json_output=True) asks the backend itself for a JSON object:
#   - Anthropic: the reply is prefilled with "{" so the model cannot open
#     with prose; the brace is restored on the returned content.
#   - OpenAI-compatible: response_format={"type": "json_object"}.
#   The validation boundary still parses and checks every reply.
#
# ERRORS:
#   Any SDK-level failure (connection, timeout, rate limit, 5xx) leaves this
#   module as AgentUnavailableError. A reply cut off at max_tokens is
#   returned as-is and logged; validation rejects it downstream.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from brandscope.config import settings
from brandscope.errors import AgentUnavailableError

logger = logging.getLogger(__name__)

JSON_PREFILL = "{"


@dataclass
class LLMResponse:
    """One model reply, normalised across backends."""

    content: str
    model: str
    input_tokens: int
    output_tokens: int
    truncated: bool = False  # Stopped on the output token limit


class LLMProvider(Protocol):
    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_output: bool = False,
    ) -> LLMResponse:
        """
        Run one chat completion.

        Args:
            messages: "user"/"assistant" turns, oldest first. The last turn
                must be from the user.
            system: Agent instructions.
            temperature: Sampling temperature; None uses LLM_TEMPERATURE.
            max_tokens: Output cap; None uses LLM_MAX_TOKENS.
            json_output: Constrain the reply to a single JSON object.

        Raises:
            AgentUnavailableError: If the backend cannot be reached or
                refuses the request.
        """
        ...


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------


class AnthropicProvider:
    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        from anthropic import AsyncAnthropic

        resolved_key = api_key or settings.llm_api_key or settings.anthropic_api_key
        if not resolved_key:
            raise ValueError(
                "No Anthropic API key configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            )

        self._client = AsyncAnthropic(api_key=resolved_key)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info("Initialized AnthropicProvider (model=%s)", self._model)

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_output: bool = False,
    ) -> LLMResponse:
        import anthropic

        turns = list(messages)
        if json_output:
            turns.append({"role": "assistant", "content": JSON_PREFILL})

        kwargs: dict = {
            "model": self._model,
            "messages": turns,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": self._temperature if temperature is None else temperature,
        }
        if system:
            kwargs["system"] = system

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise AgentUnavailableError(f"Anthropic request failed: {e}") from e

        text = "".join(block.text for block in response.content if block.type == "text")
        if json_output:
            text = JSON_PREFILL + text

        truncated = response.stop_reason == "max_tokens"
        if truncated:
            logger.warning(
                "Anthropic reply hit max_tokens (%d output tokens)",
                response.usage.output_tokens,
            )

        return LLMResponse(
            content=text,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            truncated=truncated,
        )


# ---------------------------------------------------------------------------
# OpenAI-Compatible
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    Any chat-completions API. Switching vendors is a config change:

        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://api.deepseek.com/v1
        LLM_MODEL=deepseek-chat
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        from openai import AsyncOpenAI

        resolved_key = api_key or settings.llm_api_key or settings.openai_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for OpenAI-compatible provider. "
                "Set LLM_API_KEY in .env"
            )

        resolved_base_url = base_url or settings.llm_base_url
        client_kwargs: dict = {"api_key": resolved_key}
        if resolved_base_url:
            client_kwargs["base_url"] = resolved_base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info(
            "Initialized OpenAICompatibleProvider (model=%s, base_url=%s)",
            self._model, resolved_base_url or "https://api.openai.com/v1",
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_output: bool = False,
    ) -> LLMResponse:
        import openai

        turns: list[dict[str, str]] = []
        if system:
            turns.append({"role": "system", "content": system})
        turns.extend(messages)

        kwargs: dict = {
            "model": self._model,
            "messages": turns,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": self._temperature if temperature is None else temperature,
        }
        if json_output:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIError as e:
            raise AgentUnavailableError(f"OpenAI-compatible request failed: {e}") from e

        choice = response.choices[0]
        truncated = getattr(choice, "finish_reason", None) == "length"
        if truncated:
            logger.warning("Reply from %s hit max_tokens", self._model)

        usage = response.usage
        return LLMResponse(
            content=choice.message.content or "",
            model=response.model or self._model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            truncated=truncated,
        )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_provider: AnthropicProvider | OpenAICompatibleProvider | None = None


def get_llm_provider() -> AnthropicProvider | OpenAICompatibleProvider:
    """
    Return the shared provider selected by LLM_PROVIDER.

    Raises:
        ValueError: If the selected provider has no API key configured.
    """
    global _provider
    if _provider is None:
        if settings.llm_provider == "openai_compatible":
            _provider = OpenAICompatibleProvider()
        else:
            _provider = AnthropicProvider()
    return _provider
