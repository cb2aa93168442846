"""
Document translator.

Drives one TranslationUnit through the pipeline: chunk when needed, translate
every segment through the governor with retry, reassemble, validate, and
clean up the model's surface artifacts.
"""

from __future__ import annotations

import asyncio
import re
import time
from dataclasses import dataclass, field

from docs_translator.config import LanguagesConfig, RetryConfig, Settings
from docs_translator.errors import EmptyContentError, InitializationError, LLMError, LLMResponseError
from docs_translator.governor import Governor
from docs_translator.llm import LLMProvider, create_provider_from_config
from docs_translator.logging_config import ContextLoggerAdapter, get_logger
from docs_translator.retry import with_retry
from docs_translator.translation.chunking import ChunkManager
from docs_translator.translation.language import LanguageDetector, StaticLanguageDetector
from docs_translator.translation.prompts import (
    LOCALE_RULES,
    build_system_prompt,
    build_user_prompt,
    language_display_name,
)
from docs_translator.translation.tokens import TiktokenTokenizer
from docs_translator.translation.unit import TranslationUnit
from docs_translator.translation.validation import ValidationEngine

TRANSLATION_PREFIXES = (
    "Here is the translation:",
    "Here's the translation:",
    "Translation:",
    "Translated content:",
    "Here is the translated content:",
    "Here's the translated content:",
)

CONNECTIVITY_TEST_MAX_TOKENS = 5

TRAILING_NEWLINES = re.compile(r"(?:\r?\n)+\Z")

logger = get_logger(__name__)


def strip_preamble(text: str) -> str:
    """Remove one leading "Here is the translation:"-style prefix, if present."""
    stripped = text.lstrip()
    lowered = stripped.lower()
    for prefix in TRANSLATION_PREFIXES:
        if lowered.startswith(prefix.lower()):
            return stripped[len(prefix) :]
    return text


@dataclass
class TranslatorDependencies:
    """Collaborators of a DocumentTranslator."""

    provider: LLMProvider
    governor: Governor
    chunk_manager: ChunkManager = field(default_factory=ChunkManager)
    validator: ValidationEngine = field(default_factory=ValidationEngine)
    language_detector: LanguageDetector | None = None
    service: str = "llm"
    retry: RetryConfig = field(default_factory=RetryConfig)
    languages: LanguagesConfig = field(default_factory=LanguagesConfig)
    temperature: float = 0.1
    max_tokens: int = 8192
    glossary: str | None = None


class DocumentTranslator:
    """
    Translates Markdown documents with an LLM.

    Example:
        translator = DocumentTranslator.from_settings(load_config())
        text = await translator.translate(TranslationUnit(content, "intro.md"))
    """

    def __init__(self, deps: TranslatorDependencies):
        self.deps = deps
        self.provider = deps.provider
        self.governor = deps.governor
        self.chunks = deps.chunk_manager
        self.validator = deps.validator
        self.languages = deps.languages
        self.language_detector: LanguageDetector = deps.language_detector or StaticLanguageDetector(
            deps.languages.source, deps.languages.target
        )
        # Mutable: may be replaced between documents
        self.glossary: str | None = deps.glossary

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        provider: LLMProvider | None = None,
        governor: Governor | None = None,
    ) -> DocumentTranslator:
        """Wire a translator from loaded settings."""
        deps = TranslatorDependencies(
            provider=provider or create_provider_from_config(settings.llm),
            governor=governor or Governor(settings.governor),
            chunk_manager=ChunkManager(
                settings.chunking, tokenizer=TiktokenTokenizer(settings.llm.model)
            ),
            validator=ValidationEngine(settings.validation),
            service=settings.llm.service,
            retry=settings.retry,
            languages=settings.languages,
            temperature=settings.llm.temperature,
            max_tokens=settings.llm.max_tokens,
            glossary=settings.languages.load_glossary(),
        )
        return cls(deps)

    async def translate(self, unit: TranslationUnit) -> str:
        """
        Translate one document.

        Returns:
            Final translated text.

        Raises:
            EmptyContentError: The document has no content.
            ChunkProcessingError: Segments were lost between split and reassembly.
            TranslationValidationError: The output failed a fatal structural check.
            LLMError: A provider error that is fatal or outlived its retries.
        """
        log = unit.logger
        if not unit.content or not unit.content.strip():
            raise EmptyContentError(
                "File content is empty",
                operation="DocumentTranslator.translate",
                metadata={"filename": unit.filename, "path": unit.path},
            )

        started = time.monotonic()
        system_prompt = await self._system_prompt(unit.content)

        if self.chunks.needs_chunking(unit):
            translated = await self._translate_chunked(unit, system_prompt, log)
        else:
            translated = await self._call(unit, system_prompt, unit.content)

        self.validator.validate(unit.content, translated, unit=unit)
        result = self.cleanup(translated, unit.content)

        log.info(
            "Translation completed",
            extra={
                "source_length": len(unit.content),
                "translated_length": len(result),
                "duration_s": time.monotonic() - started,
            },
        )
        return result

    async def test_connectivity(self) -> None:
        """
        Send a minimal completion to verify credentials and model.

        Raises:
            InitializationError: The call failed or returned nothing.
        """

        async def ping() -> str:
            response = await self.provider.chat(
                "You are a connectivity check. Reply with 'pong'.",
                "ping",
                temperature=0.0,
                max_tokens=CONNECTIVITY_TEST_MAX_TOKENS,
            )
            return response.content

        try:
            content = await self.governor.schedule(self.deps.service, ping)
        except LLMError as e:
            raise InitializationError(
                f"LLM connectivity test failed: {e.message}",
                operation="DocumentTranslator.test_connectivity",
                metadata={"provider": self.provider.name, "model": self.provider.model, "status": e.status},
            ) from e

        if not content or not content.strip():
            raise InitializationError(
                "Invalid LLM API response: empty completion",
                operation="DocumentTranslator.test_connectivity",
                metadata={"provider": self.provider.name, "model": self.provider.model},
            )
        logger.info(
            "LLM API connectivity test successful",
            extra={"provider": self.provider.name, "model": self.provider.model},
        )

    async def is_content_translated(self, unit: TranslationUnit) -> bool:
        """Ask the language detector whether the document is already translated."""
        try:
            analysis = await self.language_detector.analyze_language(unit.filename, unit.content)
        except Exception as e:
            unit.logger.warning(
                "Language analysis failed, assuming content is not translated",
                extra={"error": str(e)},
            )
            return False
        unit.logger.debug(
            "Language analysis complete",
            extra={"is_translated": analysis.is_translated, "ratio": analysis.ratio},
        )
        return analysis.is_translated

    def cleanup(self, translated: str, source: str) -> str:
        """
        Remove surface artifacts of the model output.

        Strips one known preamble, trims whitespace, uses CRLF line endings
        only when the source does, and restores the source's trailing newlines.
        """
        text = strip_preamble(translated).strip()
        if "\r\n" in source:
            text = text.replace("\r\n", "\n").replace("\n", "\r\n")
        trailing = TRAILING_NEWLINES.search(source)
        if trailing:
            text += trailing.group(0)
        return text

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _system_prompt(self, content: str) -> str:
        detected = None
        try:
            detected = await self.language_detector.detect_primary_language(content)
        except Exception as e:
            logger.debug("Source language detection failed", extra={"error": str(e)})

        source = language_display_name(detected or self.languages.source, self.language_detector)
        target = language_display_name(self.languages.target, self.language_detector)
        return build_system_prompt(
            source,
            target,
            glossary=self.glossary,
            locale_rules=LOCALE_RULES.get(self.languages.target, ""),
        )

    async def _translate_chunked(
        self, unit: TranslationUnit, system_prompt: str, log: ContextLoggerAdapter
    ) -> str:
        chunk_set = self.chunks.chunk(unit.content, log=log)

        tasks = [
            asyncio.ensure_future(
                self._call(unit, system_prompt, segment, context=context, index=i, total=len(chunk_set))
            )
            for i, (segment, context) in enumerate(zip(chunk_set.original, chunk_set.contexts))
        ]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            log.warning(
                "Segment translation failed, cancelled remaining segments",
                extra={"cancelled": len(pending), "segments": len(tasks)},
            )
            raise
        chunk_set.translated = [strip_preamble(r).strip() for r in results]
        return self.chunks.reassemble(chunk_set)

    async def _call(
        self,
        unit: TranslationUnit,
        system_prompt: str,
        content: str,
        *,
        context: str | None = None,
        index: int | None = None,
        total: int | None = None,
    ) -> str:
        user_prompt = build_user_prompt(content, context)
        fields = {"chunk": f"{index + 1}/{total}"} if index is not None else {}
        log = unit.logger.bind(**fields)

        async def attempt() -> str:
            response = await self.governor.schedule(
                self.deps.service,
                lambda: self.provider.chat(
                    system_prompt,
                    user_prompt,
                    temperature=self.deps.temperature,
                    max_tokens=self.deps.max_tokens,
                ),
            )
            if not response.content or not response.content.strip():
                raise LLMResponseError(
                    "No content returned by LLM",
                    operation="DocumentTranslator.translate",
                    metadata={"filename": unit.filename, **fields},
                )
            return response.content

        started = time.monotonic()
        translated = await with_retry(
            attempt,
            policy=self.deps.retry,
            context={"file": unit.filename, "correlation_id": unit.correlation_id, **fields},
        )
        log.debug(
            "LLM call completed",
            extra={
                "input_length": len(content),
                "output_length": len(translated),
                "duration_s": time.monotonic() - started,
            },
        )
        return translated
