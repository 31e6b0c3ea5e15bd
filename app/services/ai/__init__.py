"""LLM providers backing the page agent."""

from app.services.ai.llm_provider import LLMProvider, LLMProviderError
from app.services.ai.mock_provider import MockProvider
from app.services.ai.provider_factory import (
    clear_provider_cache,
    close_providers,
    create_llm_provider,
    get_llm_provider,
)

__all__ = [
    "LLMProvider",
    "LLMProviderError",
    "MockProvider",
    "clear_provider_cache",
    "close_providers",
    "create_llm_provider",
    "get_llm_provider"
]
