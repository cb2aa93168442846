"""End-to-end tests for DocumentTranslator with a scripted provider."""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeLLMProvider, make_document, source_part

from docs_translator.errors import (
    ChunkProcessingError,
    EmptyContentError,
    InitializationError,
    LLMAuthenticationError,
    LLMServerError,
    TranslationValidationError,
)
from docs_translator.llm import LLMResponse
from docs_translator.translation import ChunkManager, LanguageAnalysis, TranslationUnit, ValidationEngine
from docs_translator.translation.translator import strip_preamble


def translate_words(system: str, user: str) -> str:
    return source_part(user).replace("world", "mundo")


class ScriptedResponses:
    """Returns queued results in order, then falls back to translate_words."""

    def __init__(self, *results):
        self.results = list(results)

    def __call__(self, system, user):
        if self.results:
            return self.results.pop(0)
        return translate_words(system, user)


class RecordingValidator(ValidationEngine):
    """ValidationEngine that keeps every report it produces."""

    def __init__(self):
        super().__init__()
        self.reports = []

    def validate(self, source, translated, *, unit=None):
        report = super().validate(source, translated, unit=unit)
        self.reports.append(report)
        return report


class StallingProvider(FakeLLMProvider):
    """Rejects the first segment with a 401 and stalls on every other one."""

    def __init__(self):
        super().__init__()
        self.finished: list[str] = []

    async def complete(self, messages, **kwargs):
        user = next(m["content"] for m in messages if m["role"] == "user")
        self.calls.append({"user": user})
        if "title: 'Hello world'" in source_part(user):
            raise LLMAuthenticationError("bad key", status=401)
        await asyncio.sleep(0.2)
        self.finished.append(user)
        return LLMResponse(content=source_part(user), model=self.model)


class TestTranslate:
    """translate()"""

    @pytest.mark.asyncio
    async def test_single_call_for_small_document(self, make_translator):
        provider = FakeLLMProvider(translate_words)
        translator = make_translator(provider)
        unit = TranslationUnit(content="# Hello world\n\nHello world again.\n", filename="a.md")

        result = await translator.translate(unit)

        assert result == "# Hello mundo\n\nHello mundo again.\n"
        assert len(provider.calls) == 1
        assert provider.calls[0]["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_chunked_document_is_reassembled_in_order(self, make_translator):
        provider = FakeLLMProvider(translate_words)
        translator = make_translator(provider)
        source = make_document(sections=8)
        unit = TranslationUnit(content=source, filename="big.md", path="docs/big.md")

        result = await translator.translate(unit)

        assert len(provider.calls) > 1
        assert result == source.replace("world", "mundo")
        # Later segments carry the preceding text as read-only context
        assert any("## Context" in call["user"] for call in provider.calls[1:])
        assert "## Context" not in result

    @pytest.mark.asyncio
    async def test_empty_content_is_rejected_without_calls(self, make_translator, fake_provider):
        translator = make_translator(fake_provider)

        with pytest.raises(EmptyContentError):
            await translator.translate(TranslationUnit(content="", filename="empty.md"))
        assert fake_provider.calls == []

    @pytest.mark.asyncio
    async def test_empty_completion_is_retried(self, make_translator):
        provider = FakeLLMProvider(ScriptedResponses("", "   "))
        translator = make_translator(provider)
        unit = TranslationUnit(content="# Title\n\nHello world.\n", filename="a.md")

        result = await translator.translate(unit)

        assert result == "# Title\n\nHello mundo.\n"
        assert len(provider.calls) == 3

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self, make_translator):
        provider = FakeLLMProvider(ScriptedResponses(LLMServerError("busy", status=503)))
        translator = make_translator(provider)
        unit = TranslationUnit(content="# Title\n\nHello world.\n", filename="a.md")

        assert await translator.translate(unit) == "# Title\n\nHello mundo.\n"
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_auth_error_aborts_immediately(self, make_translator):
        provider = FakeLLMProvider(lambda s, u: LLMAuthenticationError("bad key", status=401))
        translator = make_translator(provider)
        unit = TranslationUnit(content="# Title\n\nHello.\n", filename="a.md")

        with pytest.raises(LLMAuthenticationError):
            await translator.translate(unit)
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_fatal_segment_cancels_remaining_segments(self, make_translator):
        provider = StallingProvider()
        translator = make_translator(provider)
        unit = TranslationUnit(content=make_document(sections=8), filename="big.md")

        with pytest.raises(LLMAuthenticationError):
            await translator.translate(unit)
        started = len(provider.calls)
        await asyncio.sleep(0.4)

        assert provider.finished == []
        assert len(provider.calls) == started
        assert translator.governor.get_metrics("llm").running_requests == 0

    @pytest.mark.asyncio
    async def test_simple_document_translates_without_warnings(self, make_translator):
        provider = FakeLLMProvider(lambda s, u: "# Olá\n\nBem-vindo.")
        translator = make_translator(provider)
        translator.validator = RecordingValidator()
        unit = TranslationUnit(content="# Hello\n\nWelcome.", filename="hello.md", path="docs/hello.md")

        result = await translator.translate(unit)

        assert result == "# Olá\n\nBem-vindo."
        assert len(translator.validator.reports) == 1
        assert translator.validator.reports[0].warnings == []

    @pytest.mark.asyncio
    async def test_validation_warnings_do_not_block(self, make_translator):
        block = "Run this:\n\n```\nnpm install\n```"
        source = "# Guide\n\n" + "\n\n".join([block] * 5) + "\n"
        translated = "# Guia\n\n" + "\n\n".join([block.replace("Run this", "Execute isto")] * 3) + "\n"
        translator = make_translator(FakeLLMProvider(lambda s, u: translated))
        translator.validator = RecordingValidator()

        result = await translator.translate(TranslationUnit(content=source, filename="guide.md"))

        assert result == translated
        report = translator.validator.reports[0]
        assert report.source_code_blocks == 5
        assert report.translated_code_blocks == 3
        assert "Significant code block count mismatch detected" in report.warnings

    @pytest.mark.asyncio
    async def test_lost_headings_fail_validation(self, make_translator):
        provider = FakeLLMProvider(lambda s, u: "Only prose came back.")
        translator = make_translator(provider)
        unit = TranslationUnit(content="# Title\n\nSome words.\n", filename="a.md")

        with pytest.raises(TranslationValidationError):
            await translator.translate(unit)

    @pytest.mark.asyncio
    async def test_chunk_count_mismatch_is_fatal(self, make_translator, small_chunking, word_tokenizer):
        class LossyChunkManager(ChunkManager):
            def reassemble(self, chunk_set):
                chunk_set.translated = chunk_set.translated[:-1]
                return super().reassemble(chunk_set)

        translator = make_translator(
            FakeLLMProvider(translate_words),
            chunk_manager=LossyChunkManager(small_chunking, tokenizer=word_tokenizer),
        )
        unit = TranslationUnit(content=make_document(sections=8), filename="big.md")

        with pytest.raises(ChunkProcessingError):
            await translator.translate(unit)


class TestCleanup:
    """Surface cleanup of model output."""

    @pytest.mark.asyncio
    async def test_preamble_is_stripped(self, make_translator):
        provider = FakeLLMProvider(
            lambda s, u: "Here's the translation:\n\n" + translate_words(s, u)
        )
        translator = make_translator(provider)
        unit = TranslationUnit(content="# Hello world\n", filename="a.md")

        assert await translator.translate(unit) == "# Hello mundo\n"

    def test_only_one_known_preamble_is_removed(self):
        assert strip_preamble("TRANSLATION: Translation: text").strip() == "Translation: text"
        assert strip_preamble("No preamble here") == "No preamble here"

    @pytest.mark.asyncio
    async def test_crlf_source_gets_crlf_output(self, make_translator):
        provider = FakeLLMProvider(lambda s, u: translate_words(s, u).replace("\r\n", "\n"))
        translator = make_translator(provider)
        unit = TranslationUnit(content="# Hello world\r\n\r\nBody world\r\n", filename="a.md")

        assert await translator.translate(unit) == "# Hello mundo\r\n\r\nBody mundo\r\n"

    def test_lf_source_keeps_lf_and_trailing_newlines(self, make_translator, fake_provider):
        translator = make_translator(fake_provider)

        assert translator.cleanup("  # Olá\n\ntexto  \n\n", "# Hi\n\ntext\n\n") == "# Olá\n\ntexto\n\n"
        assert translator.cleanup("# Olá\n", "# Hi") == "# Olá"


class TestPrompts:
    """System prompt assembly."""

    @pytest.mark.asyncio
    async def test_glossary_is_included_verbatim(self, make_translator):
        provider = FakeLLMProvider(translate_words)
        translator = make_translator(provider)
        translator.glossary = "component -> componente\nhook -> hook"

        await translator.translate(TranslationUnit(content="# Hello world\n", filename="a.md"))

        system = provider.calls[0]["system"]
        assert "## TERMINOLOGY GLOSSARY" in system
        assert "component -> componente\nhook -> hook" in system
        assert "Brazilian Portuguese" in system
        assert "PORTUGUESE (BRAZIL) SPECIFIC RULES" in system

    @pytest.mark.asyncio
    async def test_no_glossary_section_without_glossary(self, make_translator):
        provider = FakeLLMProvider(translate_words)
        translator = make_translator(provider, target="ru")

        await translator.translate(TranslationUnit(content="# Hello world\n", filename="a.md"))

        system = provider.calls[0]["system"]
        assert "TERMINOLOGY GLOSSARY" not in system
        assert "RUSSIAN SPECIFIC RULES" in system
        assert "from English to Russian" in system


class TestConnectivity:
    """test_connectivity()"""

    @pytest.mark.asyncio
    async def test_success(self, make_translator):
        provider = FakeLLMProvider(lambda s, u: "pong")
        translator = make_translator(provider)

        await translator.test_connectivity()

        assert provider.calls[0]["user"] == "ping"
        assert provider.calls[0]["max_tokens"] == 5

    @pytest.mark.asyncio
    async def test_empty_reply_is_initialization_error(self, make_translator):
        translator = make_translator(FakeLLMProvider(lambda s, u: ""))

        with pytest.raises(InitializationError):
            await translator.test_connectivity()

    @pytest.mark.asyncio
    async def test_provider_error_is_initialization_error(self, make_translator):
        translator = make_translator(
            FakeLLMProvider(lambda s, u: LLMAuthenticationError("bad key", status=401))
        )

        with pytest.raises(InitializationError) as exc_info:
            await translator.test_connectivity()
        assert exc_info.value.metadata["status"] == 401


class TestLanguageCheck:
    """is_content_translated()"""

    @pytest.mark.asyncio
    async def test_detector_answer_is_returned(self, make_translator, fake_provider):
        class Detector:
            def language_name(self, code):
                return None

            async def detect_primary_language(self, text):
                return None

            async def analyze_language(self, filename, content):
                return LanguageAnalysis(is_translated=True, ratio=0.9, detected_language="pt")

        translator = make_translator(fake_provider, language_detector=Detector())
        unit = TranslationUnit(content="Olá mundo", filename="a.md")

        assert await translator.is_content_translated(unit)

    @pytest.mark.asyncio
    async def test_detector_failure_means_not_translated(self, make_translator, fake_provider):
        class BrokenDetector:
            def language_name(self, code):
                return None

            async def detect_primary_language(self, text):
                return None

            async def analyze_language(self, filename, content):
                raise RuntimeError("detector crashed")

        translator = make_translator(fake_provider, language_detector=BrokenDetector())
        unit = TranslationUnit(content="Hello world", filename="a.md")

        assert not await translator.is_content_translated(unit)
