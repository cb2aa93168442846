"""Tests for structural validation of translations."""

from __future__ import annotations

import logging

import pytest

from docs_translator.config import RatioBand, ValidationConfig
from docs_translator.errors import TranslationValidationError
from docs_translator.translation import TranslationUnit, ValidationEngine

SOURCE = """---
title: Quick Start
description: Learn the basics
---

# Quick Start

Read the [guide](https://example.com/guide) and the [API](https://example.com/api "API").

## Install

```bash
npm install react
```

## Use

```js
const root = createRoot(el);
```
"""


@pytest.fixture
def engine() -> ValidationEngine:
    return ValidationEngine()


class TestFatal:
    """Errors that reject the translation."""

    @pytest.mark.parametrize("translated", ["", "   \n\t"])
    def test_empty_output(self, engine, translated):
        with pytest.raises(TranslationValidationError) as exc_info:
            engine.validate(SOURCE, translated)
        assert exc_info.value.metadata["source_length"] == len(SOURCE)

    def test_all_headings_lost(self, engine):
        unit = TranslationUnit(content=SOURCE, filename="start.md", path="docs/start.md")
        translated = SOURCE.replace("# ", "").replace("#", "")

        with pytest.raises(TranslationValidationError) as exc_info:
            engine.validate(SOURCE, translated, unit=unit)
        assert exc_info.value.metadata["source_headings"] == 3
        assert exc_info.value.metadata["path"] == "docs/start.md"

    def test_no_headings_anywhere_is_fine(self, engine):
        report = engine.validate("plain text only", "texto simples apenas")
        assert report.heading_ratio is None
        assert report.ok


class TestWarnings:
    """Problems that are logged but never block."""

    def test_identical_translation_passes(self, engine):
        report = engine.validate(SOURCE, SOURCE)

        assert report.ok
        assert report.size_ratio == 1.0
        assert report.heading_ratio == 1.0
        assert report.source_code_blocks == 2
        assert report.source_links == 2

    def test_size_ratio_out_of_band(self, engine, caplog):
        caplog.set_level(logging.WARNING, logger="docs_translator")
        report = engine.validate(SOURCE, SOURCE * 3)

        assert report.size_ratio > 2.0
        assert any("size ratio" in w for w in report.warnings)
        assert "size_ratio=" in caplog.text

    def test_lost_code_block(self, engine):
        translated = SOURCE.replace("```js\nconst root = createRoot(el);\n```\n", "")
        report = engine.validate(SOURCE, translated)

        assert report.translated_code_blocks == 1
        assert report.code_block_ratio == 0.5
        assert any("code block" in w for w in report.warnings)

    def test_lost_link(self, engine):
        translated = SOURCE.replace("[guide](https://example.com/guide)", "guide")
        report = engine.validate(SOURCE, translated)

        assert report.link_ratio == 0.5
        assert any("link" in w for w in report.warnings)

    def test_frontmatter_lost(self, engine):
        translated = SOURCE.split("---\n", 2)[2]
        report = engine.validate(SOURCE, translated)

        assert report.frontmatter_lost
        assert any("Frontmatter lost" in w for w in report.warnings)

    def test_required_key_reported_separately(self, engine):
        translated = SOURCE.replace("title: Quick Start\n", "").replace(
            "description: Learn the basics", "summary: Aprenda o básico"
        )
        report = engine.validate(SOURCE, translated)

        assert report.missing_required_keys == ["title"]
        assert report.missing_keys == ["description"]

    def test_crlf_output_is_compared_structurally(self, engine):
        report = engine.validate(SOURCE, SOURCE.replace("\n", "\r\n"))

        assert report.heading_ratio == 1.0
        assert report.code_block_ratio == 1.0
        assert not report.frontmatter_lost

    def test_thresholds_are_configurable(self):
        engine = ValidationEngine(ValidationConfig(size=RatioBand(min=0.9, max=1.1)))
        report = engine.validate(SOURCE, SOURCE + "x" * int(len(SOURCE) * 0.3))

        assert any("size ratio" in w for w in report.warnings)
