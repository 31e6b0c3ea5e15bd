"""Ollama LLM provider for local model inference."""

import json
import logging
from typing import Dict, Any, Optional
import aiohttp
from urllib.parse import urljoin

from app.services.ai.llm_provider import LLMProvider, LLMProviderError

logger = logging.getLogger(__name__)


def extract_json(text: str) -> Dict[str, Any]:
    """Parse JSON from model output, tolerating markdown code fences."""
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0]
    elif "```" in text:
        text = text.split("```")[1].split("```")[0]
    return json.loads(text.strip())


class OllamaProvider(LLMProvider):
    """Ollama provider for local LLM models."""

    name = "ollama"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.base_url = config.get("base_url") or "http://localhost:11434"
        self.model_name = config.get("model_name") or "llama3"
        self.timeout = config.get("timeout", 60)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def generate_text(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: int = 2000,
        json_mode: bool = False
    ) -> str:
        """Generate text using Ollama API."""
        payload = {
            "model": self.model_name,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self._temperature(temperature),
                "num_predict": max_tokens
            }
        }
        if system_prompt:
            payload["system"] = system_prompt
        if json_mode:
            payload["format"] = "json"

        try:
            session = await self._get_session()
            async with session.post(urljoin(self.base_url, "/api/generate"), json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.error(f"Ollama API error {response.status}: {error_text}")
                    raise LLMProviderError(f"Ollama API error: {error_text}")

                result = await response.json()
                return result.get("response", "")

        except aiohttp.ClientError as e:
            logger.error(f"Ollama connection error: {e}")
            raise LLMProviderError(f"Failed to connect to Ollama: {e}") from e

    async def generate_structured(
        self,
        prompt: str,
        schema: Dict[str, Any],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None
    ) -> Dict[str, Any]:
        """Generate structured JSON output."""
        schema_prompt = f"""
Generate a JSON response matching this schema:
{json.dumps(schema, indent=2)}

{prompt}

Respond with ONLY valid JSON matching the schema above.
"""

        response_text = await self.generate_text(
            prompt=schema_prompt,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=4000,
            json_mode=True
        )

        try:
            return extract_json(response_text)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse JSON from Ollama response: {e}")
            logger.debug(f"Response text: {response_text[:500]}")
            raise LLMProviderError(f"Invalid JSON from Ollama: {e}") from e

    async def is_available(self) -> bool:
        """Check if Ollama is available."""
        try:
            session = await self._get_session()
            url = urljoin(self.base_url, "/api/tags")

            async with session.get(url, timeout=aiohttp.ClientTimeout(total=5)) as response:
                return response.status == 200
        except Exception as e:
            logger.debug(f"Ollama availability check failed: {e}")
            return False

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
