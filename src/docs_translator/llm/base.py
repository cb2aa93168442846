"""
Provider interface for the translation pipeline.

Providers make exactly one attempt per call. Retrying, pacing and failure
classification happen in the governor and the retry executor, which only
understand the ``LLMError`` hierarchy, so every provider failure surfaces as
one of those errors.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import openai

from docs_translator.errors import LLMConnectionError, LLMError, llm_error_from_exception


@dataclass
class LLMResponse:
    """One completion and its usage figures."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""
    latency_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)


class LLMProvider(ABC):
    """
    A chat-completion backend.

    ``complete`` should raise ``LLMError`` subclasses carrying the HTTP status
    when one is known. ``chat`` enforces that contract for implementations
    that let SDK or socket errors escape.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name used in log context and error operations."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Resolved model identifier sent with each request."""

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.1,
        max_tokens: int = 4096,
        **kwargs: Any,
    ) -> LLMResponse:
        """
        Run a single completion request.

        Args:
            messages: Chat messages with 'role' and 'content' keys.
            temperature: Sampling temperature.
            max_tokens: Completion token cap.

        Raises:
            LLMError: Any provider failure.
        """

    async def chat(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.1,
        max_tokens: int = 4096,
        **kwargs: Any,
    ) -> LLMResponse:
        """
        Send one system + user exchange.

        Raises:
            LLMError: Provider failures, including SDK errors and dropped
                connections that ``complete`` did not map itself.
        """
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        operation = f"{self.name}.chat"
        try:
            return await self.complete(
                messages,
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except LLMError:
            raise
        except openai.OpenAIError as e:
            raise llm_error_from_exception(e, operation=operation) from e
        except (TimeoutError, asyncio.TimeoutError, ConnectionError) as e:
            raise LLMConnectionError(
                str(e) or type(e).__name__,
                operation=operation,
                metadata={"model": self.model},
            ) from e

    async def close(self) -> None:
        """Release network resources. No-op by default."""
        return None
