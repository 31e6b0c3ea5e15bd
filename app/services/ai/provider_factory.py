"""Factory for creating LLM providers."""

import logging
from typing import Dict, Any, Optional

from app.services.ai.llm_provider import LLMProvider
from app.services.ai.mock_provider import MockProvider
from app.services.ai.ollama_provider import OllamaProvider
from app.services.ai.openai_provider import OpenAIProvider
from app.utils.config import get_ai_config

logger = logging.getLogger(__name__)

PROVIDERS = {
    "openai": OpenAIProvider,
    "ollama": OllamaProvider,
    "mock": MockProvider,
}

# Global provider cache
_provider_cache: Dict[str, LLMProvider] = {}


def create_llm_provider(config: Dict[str, Any]) -> Optional[LLMProvider]:
    """
    Create an LLM provider based on configuration.

    Args:
        config: Provider configuration with 'provider' field

    Returns:
        LLMProvider instance or None if disabled

    Raises:
        ValueError: If the provider is unknown or misconfigured
    """
    if not config.get("enabled", False):
        logger.debug("AI provider disabled in config")
        return None

    provider_type = config.get("provider", "none")
    if provider_type == "none":
        return None

    provider_class = PROVIDERS.get(provider_type)
    if provider_class is None:
        raise ValueError(f"Unknown AI provider: {provider_type}")

    cache_key = f"{provider_type}_{config.get('model_name', 'default')}_{config.get('base_url')}"
    if cache_key in _provider_cache:
        return _provider_cache[cache_key]

    provider = provider_class(config)
    _provider_cache[cache_key] = provider
    logger.info(f"Created {provider_type} provider with model {provider.model_name}")
    return provider


def get_llm_provider(config: Optional[Dict[str, Any]] = None) -> Optional[LLMProvider]:
    """
    Get or create an LLM provider.

    Args:
        config: Provider configuration, built from settings when omitted

    Returns:
        LLMProvider instance or None
    """
    return create_llm_provider(config or get_ai_config())


async def close_providers():
    """Close every cached provider."""
    for provider in list(_provider_cache.values()):
        try:
            await provider.close()
        except Exception as e:
            logger.warning(f"Error closing {provider.name} provider: {e}")
    _provider_cache.clear()


def clear_provider_cache():
    """Clear the provider cache (useful for testing)."""
    _provider_cache.clear()
