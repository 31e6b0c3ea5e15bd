"""OpenAI LLM provider for cloud-based model inference."""

import json
import logging
from typing import Dict, Any, Optional

import openai

from app.services.ai.llm_provider import LLMProvider, LLMProviderError

logger = logging.getLogger(__name__)

RESPONSE_TOOL = "submit_response"


class OpenAIProvider(LLMProvider):
    """OpenAI provider for GPT models and OpenAI-compatible endpoints."""

    name = "openai"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)

        self.api_key = config.get("api_key")
        if not self.api_key:
            raise ValueError("OpenAI API key is required")

        self.model_name = config.get("model_name") or "gpt-4o-mini"
        self.timeout = config.get("timeout", 60)

        self.client = openai.AsyncOpenAI(
            api_key=self.api_key,
            base_url=config.get("base_url") or None,
            timeout=self.timeout
        )

    def _messages(self, prompt: str, system_prompt: Optional[str]):
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def generate_text(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: int = 2000
    ) -> str:
        """Generate text using OpenAI API."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=self._messages(prompt, system_prompt),
                temperature=self._temperature(temperature),
                max_tokens=max_tokens
            )
            return response.choices[0].message.content or ""

        except openai.OpenAIError as e:
            logger.error(f"OpenAI generation error: {e}")
            raise LLMProviderError(f"OpenAI API error: {e}") from e

    async def generate_structured(
        self,
        prompt: str,
        schema: Dict[str, Any],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None
    ) -> Dict[str, Any]:
        """Generate structured JSON output using a forced tool call."""
        tools = [{
            "type": "function",
            "function": {
                "name": RESPONSE_TOOL,
                "description": "Submit the structured response",
                "parameters": schema
            }
        }]

        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=self._messages(prompt, system_prompt),
                tools=tools,
                tool_choice={"type": "function", "function": {"name": RESPONSE_TOOL}},
                temperature=self._temperature(temperature)
            )
        except openai.OpenAIError as e:
            logger.error(f"OpenAI structured generation error: {e}")
            raise LLMProviderError(f"OpenAI API error: {e}") from e

        message = response.choices[0].message
        raw = message.tool_calls[0].function.arguments if message.tool_calls else message.content
        try:
            return json.loads(raw or "")
        except json.JSONDecodeError as e:
            logger.warning(f"OpenAI returned unparsable JSON: {(raw or '')[:200]}")
            raise LLMProviderError(f"Invalid JSON from OpenAI: {e}") from e

    async def is_available(self) -> bool:
        """Check if OpenAI is available."""
        try:
            await self.client.models.list()
            return True
        except Exception as e:
            logger.debug(f"OpenAI availability check failed: {e}")
            return False

    async def close(self):
        await self.client.close()
