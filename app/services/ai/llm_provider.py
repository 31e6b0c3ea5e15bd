"""Abstract base class for LLM providers."""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


class LLMProviderError(Exception):
    """A model request failed or returned unusable output."""


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    name = "base"

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize LLM provider.

        Args:
            config: Provider-specific configuration
        """
        self.config = config
        self.enabled = config.get("enabled", False)
        self.model_name = config.get("model_name")
        self.temperature = config.get("temperature", 0.2)

    @abstractmethod
    async def generate_text(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: int = 2000
    ) -> str:
        """
        Generate text from prompt.

        Args:
            prompt: User prompt
            system_prompt: Optional system prompt
            temperature: Sampling temperature (0.0-2.0), provider default if None
            max_tokens: Maximum tokens to generate

        Returns:
            Generated text
        """
        pass

    @abstractmethod
    async def generate_structured(
        self,
        prompt: str,
        schema: Dict[str, Any],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Generate structured JSON output.

        Args:
            prompt: User prompt
            schema: JSON schema for expected output
            system_prompt: Optional system prompt
            temperature: Sampling temperature

        Returns:
            Structured data matching schema

        Raises:
            LLMProviderError: If the model cannot produce parsable output
        """
        pass

    @abstractmethod
    async def is_available(self) -> bool:
        """
        Check if provider is available and ready.

        Returns:
            True if provider is available
        """
        pass

    async def close(self):
        """Release network resources held by the provider."""

    def _temperature(self, temperature: Optional[float]) -> float:
        return self.temperature if temperature is None else temperature
