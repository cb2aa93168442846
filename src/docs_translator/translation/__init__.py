"""Translation pipeline: chunking, prompting, validation and orchestration."""

from docs_translator.translation.chunking import ChunkManager, ChunkSet
from docs_translator.translation.language import LanguageAnalysis, LanguageDetector, StaticLanguageDetector
from docs_translator.translation.tokens import TiktokenTokenizer, Tokenizer
from docs_translator.translation.translator import DocumentTranslator, TranslatorDependencies
from docs_translator.translation.unit import TranslationUnit, extract_doc_title
from docs_translator.translation.validation import ValidationEngine, ValidationReport

__all__ = [
    "ChunkManager",
    "ChunkSet",
    "DocumentTranslator",
    "LanguageAnalysis",
    "LanguageDetector",
    "StaticLanguageDetector",
    "TiktokenTokenizer",
    "Tokenizer",
    "TranslationUnit",
    "TranslatorDependencies",
    "ValidationEngine",
    "ValidationReport",
    "extract_doc_title",
]
