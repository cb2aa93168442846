"""
docs-translator: LLM-powered documentation translation pipeline.

This package provides:
- Markdown-aware chunking with lossless reassembly
- A per-service concurrency and rate governor with retry/backoff
- Structural validation of translated output
"""

__version__ = "0.1.0"

from docs_translator.config import GOVERNOR_PRESETS, Settings, load_config
from docs_translator.governor import Governor
from docs_translator.translation import DocumentTranslator, TranslationUnit

__all__ = [
    "GOVERNOR_PRESETS",
    "Settings",
    "load_config",
    "Governor",
    "DocumentTranslator",
    "TranslationUnit",
]
