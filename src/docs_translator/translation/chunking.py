"""
Markdown-aware chunking with lossless reassembly.

Large documents are split with LangChain's MarkdownTextSplitter, measured in
tokens. For every pair of adjacent segments the exact text between them in
the source is recorded, so joining the segments back with those separators
reproduces the source byte for byte.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from langchain_text_splitters import MarkdownTextSplitter

from docs_translator.config import ChunkingConfig
from docs_translator.errors import ChunkProcessingError
from docs_translator.logging_config import ContextLoggerAdapter, get_logger
from docs_translator.translation.tokens import TiktokenTokenizer, Tokenizer

if TYPE_CHECKING:
    from docs_translator.translation.unit import TranslationUnit

DEFAULT_SEPARATOR = "\n\n"

FENCE_LINE = re.compile(r"^[ \t]*(`{3,}|~{3,})", re.MULTILINE)
LINE = re.compile(r"[^\n]*\n|[^\n]+\Z")

Span = tuple[int, int]

logger = get_logger(__name__)


@dataclass
class ChunkSet:
    """
    Ordered segments of one document.

    ``separators[i]`` is the verbatim source text between ``original[i]`` and
    ``original[i + 1]``. ``contexts[i]`` is read-only text preceding segment
    ``i``, passed to the model for continuity and never part of the output.
    """

    original: list[str]
    separators: list[str]
    leading: str = ""
    trailing: str = ""
    contexts: list[str] = field(default_factory=list)
    translated: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        expected = max(len(self.original) - 1, 0)
        if len(self.separators) != expected:
            raise ChunkProcessingError(
                "Separator count does not match segment count",
                operation="ChunkSet",
                metadata={"segments": len(self.original), "separators": len(self.separators)},
            )
        if not self.contexts:
            self.contexts = [""] * len(self.original)

    def __len__(self) -> int:
        return len(self.original)


def fence_spans(text: str) -> list[Span]:
    """
    Locate fenced code blocks.

    A fence closes on a line made only of the opening marker's character, at
    least as long as the marker. An unclosed fence runs to the end of ``text``.
    """
    spans: list[Span] = []
    marker: str | None = None
    start = 0
    for match in LINE.finditer(text):
        line = match.group()
        if marker is None:
            opening = FENCE_LINE.match(line)
            if opening:
                marker, start = opening.group(1), match.start()
            continue
        closing = line.strip()
        if closing.startswith(marker) and not closing.strip(marker[0]):
            spans.append((start, match.start() + len(line.rstrip("\r\n"))))
            marker = None
    if marker is not None:
        spans.append((start, len(text)))
    return spans


def _trim(text: str, start: int, end: int) -> Span | None:
    """Narrow ``[start, end)`` to exclude surrounding whitespace."""
    piece = text[start:end]
    stripped = piece.strip()
    if not stripped:
        return None
    start += len(piece) - len(piece.lstrip())
    return start, start + len(stripped)


class ChunkManager:
    """
    Decides whether a document needs chunking, splits it and reassembles it.

    Args:
        config: Token budgets.
        tokenizer: Token counter; tiktoken for ``model`` when None.
        model: Model name used to pick the tiktoken encoding.
    """

    def __init__(
        self,
        config: ChunkingConfig | None = None,
        tokenizer: Tokenizer | None = None,
        model: str = "gpt-4o",
    ):
        self.config = config or ChunkingConfig()
        self.tokenizer: Tokenizer = tokenizer or TiktokenTokenizer(model)

    def estimate_tokens(self, text: str) -> int:
        """
        Count tokens, falling back to ``ceil(len / chars_per_token)``.

        The fallback is used whenever the tokenizer raises.
        """
        if not text:
            return 0
        try:
            return self.tokenizer.count(text)
        except Exception as e:
            logger.debug("Tokenizer failed, using character estimate", extra={"error": str(e)})
            return math.ceil(len(text) / self.config.chars_per_token)

    def needs_chunking(self, unit: TranslationUnit | str) -> bool:
        """True when the content exceeds ``max_tokens - system_prompt_reserve``."""
        content = unit if isinstance(unit, str) else unit.content
        log = logger if isinstance(unit, str) else unit.logger
        estimated = self.estimate_tokens(content)
        needed = estimated > self.config.max_input_tokens
        log.debug(
            "Content exceeds token limit, chunking required"
            if needed
            else "Content within token limit, no chunking needed",
            extra={
                "estimated_tokens": estimated,
                "max_input_tokens": self.config.max_input_tokens,
                "content_length": len(content),
            },
        )
        return needed

    def chunk(
        self,
        text: str,
        max_tokens_per_segment: int | None = None,
        *,
        log: ContextLoggerAdapter | None = None,
    ) -> ChunkSet:
        """
        Split ``text`` into token-bounded segments.

        Segments never cut through a fenced code block; a fence larger than the
        budget stays whole in one oversized segment.

        Args:
            text: Source document.
            max_tokens_per_segment: Budget per segment (``max_tokens - token_buffer``
                when None).
            log: Logger carrying document context.

        Returns:
            ChunkSet with segments, separators and overlap contexts.
        """
        log = log or logger
        budget = max_tokens_per_segment or self.config.segment_tokens

        if not text.strip():
            return ChunkSet(original=[], separators=[], leading=text)

        splitter = MarkdownTextSplitter(
            chunk_size=budget,
            chunk_overlap=0,
            length_function=self.estimate_tokens,
            is_separator_regex=True,
        )
        pieces: list[tuple[str, Span | None]] = []
        for start, end, is_fence in self._blocks(text):
            if is_fence:
                span = _trim(text, start, end)
                if span is not None:
                    pieces.append((text[span[0] : span[1]], span))
                continue
            block = text[start:end]
            found = [s.strip() for s in splitter.split_text(block) if s.strip()]
            for piece, span in zip(found, self._locate(block, found)):
                pieces.append((piece, (span[0] + start, span[1] + start) if span else None))

        pieces = self._pack(text, pieces, budget)
        segments = [piece for piece, _ in pieces]
        spans = [span for _, span in pieces]
        separators = [
            self._separator(text, spans[i], spans[i + 1], i, log) for i in range(len(segments) - 1)
        ]

        first, last = spans[0], spans[-1]
        chunk_set = ChunkSet(
            original=segments,
            separators=separators,
            leading=text[: first[0]] if first else "",
            trailing=text[last[1] :] if last else "",
        )
        chunk_set.contexts = self._contexts(chunk_set.original)

        log.info(
            "Content split into chunks",
            extra={
                "chunks": len(chunk_set),
                "segment_budget": budget,
                "largest_chunk_tokens": max(self.estimate_tokens(s) for s in chunk_set.original),
            },
        )
        return chunk_set

    def reassemble(self, chunk_set: ChunkSet) -> str:
        """
        Join translated segments with the recorded separators.

        Raises:
            ChunkProcessingError: If the translated count differs from the original.
        """
        if len(chunk_set.translated) != len(chunk_set.original):
            raise ChunkProcessingError(
                "Translated chunk count does not match original chunk count",
                operation="ChunkManager.reassemble",
                metadata={
                    "expected": len(chunk_set.original),
                    "actual": len(chunk_set.translated),
                },
            )
        if not chunk_set.translated:
            return chunk_set.leading + chunk_set.trailing

        parts = [chunk_set.translated[0]]
        for separator, segment in zip(chunk_set.separators, chunk_set.translated[1:]):
            parts.append(separator)
            parts.append(segment)
        return chunk_set.leading + "".join(parts) + chunk_set.trailing

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _locate(text: str, segments: list[str]) -> list[tuple[int, int] | None]:
        spans: list[tuple[int, int] | None] = []
        cursor = 0
        for segment in segments:
            stripped = segment.strip()
            index = text.find(stripped, cursor) if stripped else -1
            if index == -1:
                spans.append(None)
                continue
            spans.append((index, index + len(stripped)))
            cursor = index + len(stripped)
        return spans

    @staticmethod
    def _separator(
        text: str,
        current: tuple[int, int] | None,
        following: tuple[int, int] | None,
        index: int,
        log: ContextLoggerAdapter,
    ) -> str:
        if current is None or following is None or following[0] < current[1]:
            log.warning(
                "Could not locate chunk in source, using default separator",
                extra={"boundary": index, "separator": repr(DEFAULT_SEPARATOR)},
            )
            return DEFAULT_SEPARATOR
        return text[current[1] : following[0]]

    @staticmethod
    def _blocks(text: str) -> list[tuple[int, int, bool]]:
        """Partition ``text`` into prose and fenced ``(start, end, is_fence)`` blocks."""
        blocks: list[tuple[int, int, bool]] = []
        cursor = 0
        for start, end in fence_spans(text):
            if start > cursor:
                blocks.append((cursor, start, False))
            blocks.append((start, end, True))
            cursor = end
        if cursor < len(text):
            blocks.append((cursor, len(text), False))
        return blocks

    def _pack(
        self, text: str, pieces: list[tuple[str, Span | None]], budget: int
    ) -> list[tuple[str, Span | None]]:
        """Greedily join adjacent pieces while the source slice fits ``budget``."""
        packed: list[tuple[str, Span | None]] = []
        for piece, span in pieces:
            if packed:
                previous = packed[-1][1]
                if previous is not None and span is not None:
                    candidate = text[previous[0] : span[1]]
                    if self.estimate_tokens(candidate) <= budget:
                        packed[-1] = (candidate, (previous[0], span[1]))
                        continue
            packed.append((piece, span))
        if not packed:
            stripped = text.strip()
            packed.append((stripped, _trim(text, 0, len(text))))
        return packed

    def _contexts(self, segments: list[str]) -> list[str]:
        overlap = self.config.overlap
        contexts = [""]
        for previous in segments[:-1]:
            contexts.append(self._tail(previous, overlap))
        return contexts

    def _tail(self, text: str, tokens: int) -> str:
        if tokens <= 0:
            return ""
        tail = getattr(self.tokenizer, "tail", None)
        if tail is not None:
            try:
                return tail(text, tokens)
            except Exception as e:
                logger.debug("Tokenizer tail failed, using character window", extra={"error": str(e)})
        return text[-int(tokens * self.config.chars_per_token) :]
