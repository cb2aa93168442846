"""
Token counting.

Token counts use tiktoken with the encoding registered for the configured
model. Models tiktoken does not know map to ``o200k_base``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Protocol, runtime_checkable

import tiktoken

DEFAULT_ENCODING = "o200k_base"


@runtime_checkable
class Tokenizer(Protocol):
    """Anything that can count tokens in a string. ``count`` may raise."""

    def count(self, text: str) -> int: ...


@lru_cache(maxsize=8)
def _encoding_for(model: str) -> tiktoken.Encoding:
    # OpenRouter names carry a vendor prefix ("openai/gpt-4o")
    name = model.split("/")[-1]
    try:
        return tiktoken.encoding_for_model(name)
    except KeyError:
        return tiktoken.get_encoding(DEFAULT_ENCODING)


class TiktokenTokenizer:
    """tiktoken-backed tokenizer for a given model name."""

    def __init__(self, model: str = "gpt-4o"):
        self.model = model
        self._encoding: tiktoken.Encoding | None = None

    @property
    def encoding(self) -> tiktoken.Encoding:
        if self._encoding is None:
            self._encoding = _encoding_for(self.model)
        return self._encoding

    def count(self, text: str) -> int:
        return len(self.encoding.encode(text, disallowed_special=()))

    def tail(self, text: str, tokens: int) -> str:
        """Return roughly the last ``tokens`` tokens of ``text``."""
        if tokens <= 0 or not text:
            return ""
        encoded = self.encoding.encode(text, disallowed_special=())
        return self.encoding.decode(encoded[-tokens:])
