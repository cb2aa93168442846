"""
Structural validation of translated Markdown.

Two outcomes: fatal problems raise TranslationValidationError (empty output,
every heading lost); everything else is logged as a warning with the counts
and ratios involved and never blocks the translation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from docs_translator.config import RatioBand, ValidationConfig
from docs_translator.errors import TranslationValidationError
from docs_translator.logging_config import ContextLoggerAdapter, get_logger

if TYPE_CHECKING:
    from docs_translator.translation.unit import TranslationUnit

HEADING = re.compile(r"^#{1,6}\s", re.MULTILINE)
CODE_BLOCK = re.compile(r"^```[\s\S]*?^```", re.MULTILINE)
MARKDOWN_LINK = re.compile(r"\[([^\]]*)\]\(([^)\s]+)(?:\s+\"[^\"]*\")?\)")
FRONTMATTER = re.compile(r"^---\n([\s\S]*?)\n---")
FRONTMATTER_KEY = re.compile(r"^([a-zA-Z_][a-zA-Z0-9_]*):", re.MULTILINE)

logger = get_logger(__name__)


@dataclass
class ValidationReport:
    """Counts, ratios and warnings from one validation run."""

    size_ratio: float
    source_headings: int = 0
    translated_headings: int = 0
    heading_ratio: float | None = None
    source_code_blocks: int = 0
    translated_code_blocks: int = 0
    code_block_ratio: float | None = None
    source_links: int = 0
    translated_links: int = 0
    link_ratio: float | None = None
    frontmatter_lost: bool = False
    missing_required_keys: list[str] = field(default_factory=list)
    missing_keys: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when no warning was raised."""
        return not self.warnings


def _ratio(translated: int, source: int) -> float | None:
    return translated / source if source else None


def _frontmatter_keys(block: str) -> list[str]:
    return list(dict.fromkeys(FRONTMATTER_KEY.findall(block)))


def _normalize(text: str) -> str:
    return text.replace("\r\n", "\n")


class ValidationEngine:
    """
    Compares a translation against its source.

    Args:
        config: Thresholds and required front-matter keys.
    """

    def __init__(self, config: ValidationConfig | None = None):
        self.config = config or ValidationConfig()

    def validate(
        self,
        source: str,
        translated: str,
        *,
        unit: TranslationUnit | None = None,
    ) -> ValidationReport:
        """
        Validate ``translated`` against ``source``.

        Raises:
            TranslationValidationError: Output is empty, or the source has
                headings and the translation has none.
        """
        log = unit.logger if unit is not None else logger
        identity = {"path": unit.path, "filename": unit.filename} if unit is not None else {}

        if not translated or not translated.strip():
            log.error("Translated content is empty")
            raise TranslationValidationError(
                "Translation produced empty content",
                operation="ValidationEngine.validate",
                metadata={
                    **identity,
                    "source_length": len(source),
                    "translated_length": len(translated or ""),
                },
            )

        source_n, translated_n = _normalize(source), _normalize(translated)
        report = ValidationReport(size_ratio=len(translated) / len(source) if source else 1.0)

        if not self.config.size.contains(report.size_ratio):
            self._warn(
                report,
                log,
                f"Translation size ratio outside expected range "
                f"({self.config.size.min}-{self.config.size.max})",
                size_ratio=report.size_ratio,
                source_length=len(source),
                translated_length=len(translated),
            )

        self._check_headings(report, source_n, translated_n, log, identity)
        self._check_code_blocks(report, source_n, translated_n, log)
        self._check_links(report, source_n, translated_n, log)
        self._check_frontmatter(report, source_n, translated_n, log)

        log.debug(
            "Translation validation passed",
            extra={"size_ratio": report.size_ratio, "warnings": len(report.warnings)},
        )
        return report

    def _check_headings(
        self,
        report: ValidationReport,
        source: str,
        translated: str,
        log: ContextLoggerAdapter,
        identity: dict[str, str],
    ) -> None:
        report.source_headings = len(HEADING.findall(source))
        report.translated_headings = len(HEADING.findall(translated))
        report.heading_ratio = _ratio(report.translated_headings, report.source_headings)

        if report.source_headings == 0:
            log.debug("Source contains no markdown headings, skipping heading validation")
            return

        if report.translated_headings == 0:
            raise TranslationValidationError(
                "All markdown headings lost during translation",
                operation="ValidationEngine.validate",
                metadata={
                    **identity,
                    "source_headings": report.source_headings,
                    "translated_headings": 0,
                    "source_length": len(source),
                    "translated_length": len(translated),
                },
            )

        self._check_band(
            report,
            log,
            self.config.heading,
            report.heading_ratio,
            "Significant heading count mismatch detected",
            source_headings=report.source_headings,
            translated_headings=report.translated_headings,
        )

    def _check_code_blocks(
        self, report: ValidationReport, source: str, translated: str, log: ContextLoggerAdapter
    ) -> None:
        report.source_code_blocks = len(CODE_BLOCK.findall(source))
        report.translated_code_blocks = len(CODE_BLOCK.findall(translated))
        report.code_block_ratio = _ratio(report.translated_code_blocks, report.source_code_blocks)
        if not report.source_code_blocks:
            return
        self._check_band(
            report,
            log,
            self.config.code_block,
            report.code_block_ratio,
            "Significant code block count mismatch detected",
            source_code_blocks=report.source_code_blocks,
            translated_code_blocks=report.translated_code_blocks,
        )

    def _check_links(
        self, report: ValidationReport, source: str, translated: str, log: ContextLoggerAdapter
    ) -> None:
        report.source_links = len(MARKDOWN_LINK.findall(source))
        report.translated_links = len(MARKDOWN_LINK.findall(translated))
        report.link_ratio = _ratio(report.translated_links, report.source_links)
        if not report.source_links:
            return
        self._check_band(
            report,
            log,
            self.config.link,
            report.link_ratio,
            "Significant markdown link count mismatch detected",
            source_links=report.source_links,
            translated_links=report.translated_links,
        )

    def _check_frontmatter(
        self, report: ValidationReport, source: str, translated: str, log: ContextLoggerAdapter
    ) -> None:
        source_match = FRONTMATTER.match(source)
        if not source_match:
            return

        translated_match = FRONTMATTER.match(translated)
        if not translated_match:
            report.frontmatter_lost = True
            self._warn(report, log, "Frontmatter lost during translation")
            return

        source_keys = _frontmatter_keys(source_match.group(1))
        translated_keys = set(_frontmatter_keys(translated_match.group(1)))
        required = self.config.required_frontmatter_keys

        report.missing_required_keys = [
            k for k in source_keys if k in required and k not in translated_keys
        ]
        report.missing_keys = [
            k for k in source_keys if k not in required and k not in translated_keys
        ]

        if report.missing_required_keys:
            self._warn(
                report,
                log,
                "Required frontmatter keys missing in translation",
                missing_required_keys=report.missing_required_keys,
            )
        if report.missing_keys:
            self._warn(
                report,
                log,
                "Some frontmatter keys missing in translation",
                missing_keys=report.missing_keys,
            )

    def _check_band(
        self,
        report: ValidationReport,
        log: ContextLoggerAdapter,
        band: RatioBand,
        ratio: float | None,
        message: str,
        **fields: object,
    ) -> None:
        if ratio is None or band.contains(ratio):
            return
        self._warn(report, log, message, ratio=ratio, **fields)

    @staticmethod
    def _warn(report: ValidationReport, log: ContextLoggerAdapter, message: str, **fields: object) -> None:
        report.warnings.append(message)
        log.warning(message, extra=fields)
