"""
LLM provider factory.

Creates the appropriate LLM provider based on configuration.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from docs_translator.config import LLMConfig
from docs_translator.errors import ConfigurationError
from docs_translator.llm.base import LLMProvider


class LLMProviderType(str, Enum):
    """Available LLM provider types."""

    OPENROUTER = "openrouter"
    OPENAI_COMPATIBLE = "openai-compatible"


def create_llm_provider(
    provider_type: LLMProviderType | str,
    *,
    api_key: str | None = None,
    model: str = "default",
    **kwargs: Any,
) -> LLMProvider:
    """
    Create an LLM provider instance.

    Args:
        provider_type: Type of provider to create.
        api_key: API key for the endpoint.
        model: Model name or alias.
        **kwargs: Additional provider-specific options (base_url, timeout).

    Returns:
        LLMProvider instance.

    Raises:
        ConfigurationError: If provider_type is invalid or the API key is missing.

    Examples:
        provider = create_llm_provider(
            "openrouter",
            api_key="sk-or-...",
            model="google/gemini-2.0-flash-exp:free",
        )

        provider = create_llm_provider(
            "openai-compatible",
            api_key="sk-...",
            model="gpt-4o-mini",
            base_url="https://api.openai.com/v1",
        )
    """
    # Normalize provider type
    if isinstance(provider_type, str):
        normalized = provider_type.lower().replace("_", "-")
        try:
            provider_type = LLMProviderType(normalized)
        except ValueError:
            valid = [p.value for p in LLMProviderType]
            raise ConfigurationError(
                f"Invalid provider type: {normalized}. Valid options: {valid}",
                operation="create_llm_provider",
            ) from None

    if not api_key:
        raise ConfigurationError(
            f"{provider_type.value} provider requires an API key (set LLM_API_KEY)",
            operation="create_llm_provider",
        )

    from docs_translator.llm.openrouter import OpenRouterProvider

    if provider_type == LLMProviderType.OPENAI_COMPATIBLE and "base_url" not in kwargs:
        raise ConfigurationError(
            "openai-compatible provider requires base_url",
            operation="create_llm_provider",
        )

    return OpenRouterProvider(
        api_key=api_key,
        model=model,
        provider_name=provider_type.value,
        **kwargs,
    )


def create_provider_from_config(config: LLMConfig) -> LLMProvider:
    """Build the provider described by the ``llm`` settings section."""
    return create_llm_provider(
        config.provider,
        api_key=config.api_key,
        model=config.model,
        base_url=config.base_url,
        timeout=config.timeout,
    )
