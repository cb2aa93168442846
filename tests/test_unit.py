"""Tests for TranslationUnit."""

from __future__ import annotations

import dataclasses
import uuid

import pytest

from docs_translator.translation import TranslationUnit, extract_doc_title


class TestTitle:
    @pytest.mark.parametrize(
        "content, expected",
        [
            ("---\ntitle: Quick Start\n---\n# Body", "Quick Start"),
            ("---\ntitle: 'Quoted Title'\n---\n", "Quoted Title"),
            ('---\nlayout: doc\ntitle: "Double"\n---\n', "Double"),
            ("---\nlayout: doc\n---\n\ntitle: not front matter\n", None),
            ("# No front matter\n", None),
            ("", None),
        ],
    )
    def test_extract_doc_title(self, content, expected):
        assert extract_doc_title(content) == expected


class TestTranslationUnit:
    def test_derived_fields(self):
        unit = TranslationUnit(
            content="---\ntitle: Intro\n---\n", filename="intro.md", path="src/intro.md", revision="abc123"
        )

        assert unit.title == "Intro"
        assert uuid.UUID(unit.correlation_id).version == 4
        assert unit.logger.extra == {
            "file": "intro.md",
            "path": "src/intro.md",
            "correlation_id": unit.correlation_id,
        }

    def test_correlation_ids_are_unique(self):
        first = TranslationUnit(content="a", filename="a.md")
        second = TranslationUnit(content="a", filename="a.md")

        assert first.correlation_id != second.correlation_id

    def test_is_immutable(self):
        unit = TranslationUnit(content="a", filename="a.md")

        with pytest.raises(dataclasses.FrozenInstanceError):
            unit.content = "b"  # type: ignore[misc]
