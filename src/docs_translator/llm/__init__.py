"""
LLM provider abstraction layer.

Every provider speaks the OpenAI chat-completions dialect:
- OpenRouter (default): free and paid models behind one API key
- Any other OpenAI-compatible endpoint via ``base_url``
"""

from docs_translator.llm.base import LLMProvider, LLMResponse
from docs_translator.llm.factory import LLMProviderType, create_llm_provider, create_provider_from_config

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "LLMProviderType",
    "create_llm_provider",
    "create_provider_from_config",
]
