"""
Language detection interface.

The pipeline only needs human-readable language names and an optional
"already translated?" check. Real identification lives outside this package;
StaticLanguageDetector answers from configuration and never guesses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

LANGUAGE_NAMES: dict[str, str] = {
    "ar": "Arabic",
    "bn": "Bengali",
    "de": "German",
    "en": "English",
    "es": "Spanish",
    "fa": "Persian",
    "fr": "French",
    "he": "Hebrew",
    "hi": "Hindi",
    "id": "Indonesian",
    "it": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "pl": "Polish",
    "pt-br": "Brazilian Portuguese",
    "ru": "Russian",
    "tr": "Turkish",
    "uk": "Ukrainian",
    "vi": "Vietnamese",
    "zh-hans": "Simplified Chinese",
    "zh-hant": "Traditional Chinese",
}


@dataclass(frozen=True)
class LanguageAnalysis:
    """Result of checking whether content is already in the target language."""

    is_translated: bool
    ratio: float = 0.0
    detected_language: str | None = None


@runtime_checkable
class LanguageDetector(Protocol):
    """Narrow interface the translator uses for language questions."""

    def language_name(self, code: str) -> str | None: ...

    async def detect_primary_language(self, text: str) -> str | None: ...

    async def analyze_language(self, filename: str, content: str) -> LanguageAnalysis: ...


class StaticLanguageDetector:
    """Configuration-only detector: names from a table, no identification."""

    def __init__(self, source: str = "en", target: str = "pt-br"):
        self.source = source
        self.target = target

    def language_name(self, code: str) -> str | None:
        return LANGUAGE_NAMES.get(code.lower())

    async def detect_primary_language(self, text: str) -> str | None:
        return None

    async def analyze_language(self, filename: str, content: str) -> LanguageAnalysis:
        return LanguageAnalysis(is_translated=False)
