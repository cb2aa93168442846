"""
OpenRouter LLM provider.

Uses the OpenAI-compatible API via OpenRouter (or any endpoint speaking the
same protocol, selected with ``base_url``).
"""

from __future__ import annotations

import time
from typing import Any

import openai
from openai import AsyncOpenAI

from docs_translator.errors import LLMResponseError, llm_error_from_exception
from docs_translator.llm.base import LLMProvider, LLMResponse


class OpenRouterProvider(LLMProvider):
    """
    OpenRouter LLM provider.

    Single attempt per call: SDK-level retries are disabled and SDK errors are
    mapped onto the LLMError hierarchy for the retry executor to classify.
    """

    # Model aliases for convenience
    MODELS = {
        "default": "google/gemini-2.0-flash-exp:free",
        "free": "google/gemini-2.0-flash-exp:free",
        "fast": "anthropic/claude-3-haiku",
        "quality": "anthropic/claude-sonnet-4.5",
        "deepseek": "deepseek/deepseek-chat",
    }

    def __init__(
        self,
        api_key: str,
        model: str = "default",
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: float = 120.0,
        provider_name: str = "openrouter",
    ):
        """
        Initialize OpenRouter provider.

        Args:
            api_key: API key for the endpoint.
            model: Model key (from MODELS) or full model name.
            base_url: API base URL.
            timeout: Request timeout in seconds.
            provider_name: Name reported in logs and response metadata.
        """
        self._model_name = self.MODELS.get(model, model)
        self._provider_name = provider_name

        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    @property
    def name(self) -> str:
        """Provider name."""
        return self._provider_name

    @property
    def model(self) -> str:
        """Current model name."""
        return self._model_name

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.1,
        max_tokens: int = 4096,
        **kwargs: Any,
    ) -> LLMResponse:
        """
        Generate a completion.

        Raises:
            LLMError: Mapped from the SDK error (status preserved).
            LLMResponseError: The response carried no content.
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=self._model_name,
                messages=messages,  # type: ignore[arg-type]
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except openai.OpenAIError as e:
            raise llm_error_from_exception(e, operation=f"{self.name}.complete") from e

        latency_ms = (time.perf_counter() - start_time) * 1000

        if not response.choices:
            raise LLMResponseError(
                "No choices returned by LLM",
                operation=f"{self.name}.complete",
                metadata={"model": self._model_name},
            )

        choice = response.choices[0]
        content = choice.message.content or ""
        if not content.strip():
            raise LLMResponseError(
                "No content returned by LLM",
                operation=f"{self.name}.complete",
                metadata={"model": self._model_name, "finish_reason": choice.finish_reason},
            )

        usage = response.usage
        return LLMResponse(
            content=content,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=response.model or self._model_name,
            latency_ms=latency_ms,
            metadata={
                "provider": self.name,
                "finish_reason": choice.finish_reason,
            },
        )

    async def close(self) -> None:
        await self._client.close()
