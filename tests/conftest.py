"""
Pytest configuration and fixtures shared by all tests.

Provides deterministic doubles for the LLM provider and the tokenizer so the
pipeline can be exercised without network access.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from docs_translator.config import ChunkingConfig, GovernorConfig, LanguagesConfig, RetryConfig
from docs_translator.governor import Governor
from docs_translator.llm import LLMProvider, LLMResponse
from docs_translator.translation import (
    ChunkManager,
    DocumentTranslator,
    TranslatorDependencies,
    ValidationEngine,
)

SOURCE_MARKER = "## Source Text (translate only this)\n"


class WordTokenizer:
    """Counts whitespace-separated words; one word is one token."""

    def count(self, text: str) -> int:
        return len(text.split())


class FailingTokenizer:
    """Tokenizer that always raises, to exercise the character fallback."""

    def count(self, text: str) -> int:
        raise RuntimeError("tokenizer unavailable")


def source_part(user_prompt: str) -> str:
    """Strip the read-only context block from a user prompt."""
    if SOURCE_MARKER in user_prompt:
        return user_prompt.split(SOURCE_MARKER, 1)[1]
    return user_prompt


class FakeLLMProvider(LLMProvider):
    """
    Scripted LLM provider.

    ``responder(system_prompt, user_prompt)`` returns the completion text or
    an exception instance to raise. Every call is recorded.
    """

    def __init__(self, responder: Callable[[str, str], Any] | None = None):
        self.responder = responder or (lambda system, user: source_part(user))
        self.calls: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "fake"

    @property
    def model(self) -> str:
        return "fake-model"

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.1,
        max_tokens: int = 4096,
        **kwargs: Any,
    ) -> LLMResponse:
        system = next((m["content"] for m in messages if m["role"] == "system"), "")
        user = next((m["content"] for m in messages if m["role"] == "user"), "")
        self.calls.append(
            {"system": system, "user": user, "temperature": temperature, "max_tokens": max_tokens}
        )
        result = self.responder(system, user)
        if isinstance(result, BaseException):
            raise result
        return LLMResponse(content=result, model=self.model)


@pytest.fixture
def word_tokenizer() -> WordTokenizer:
    return WordTokenizer()


@pytest.fixture
def fast_retry() -> RetryConfig:
    """Retry policy without waiting between attempts."""
    return RetryConfig(max_retries=3, initial_delay=0.0, max_delay=0.0, jitter=False)


@pytest.fixture
def small_chunking() -> ChunkingConfig:
    """Budgets small enough to force chunking of a few hundred words."""
    return ChunkingConfig(
        max_tokens=200, system_prompt_reserve=100, token_buffer=150, overlap=5
    )


@pytest.fixture
def fake_provider() -> FakeLLMProvider:
    return FakeLLMProvider()


@pytest.fixture
def make_translator(word_tokenizer, fast_retry, small_chunking):
    """Factory building a DocumentTranslator around a given provider."""

    def factory(
        provider: LLMProvider,
        *,
        chunk_manager: ChunkManager | None = None,
        target: str = "pt-br",
        **kwargs: Any,
    ) -> DocumentTranslator:
        deps = TranslatorDependencies(
            provider=provider,
            governor=Governor({"llm": GovernorConfig(max_concurrent=4)}),
            chunk_manager=chunk_manager or ChunkManager(small_chunking, tokenizer=word_tokenizer),
            validator=ValidationEngine(),
            retry=fast_retry,
            languages=LanguagesConfig(source="en", target=target),
            **kwargs,
        )
        return DocumentTranslator(deps)

    return factory


def make_document(sections: int = 6, words_per_paragraph: int = 40) -> str:
    """Markdown document with front-matter, headings, links and a code block."""
    parts = ["---\ntitle: 'Hello world'\ndescription: A sample page\n---\n"]
    for i in range(sections):
        body = " ".join(f"world{j}" for j in range(words_per_paragraph))
        parts.append(f"## Section {i}\n\n{body} see [docs](https://example.com/{i}).\n")
        if i == 2:
            parts.append("```python\ndef hello():\n    return 'world'\n```\n")
    return "\n".join(parts)
