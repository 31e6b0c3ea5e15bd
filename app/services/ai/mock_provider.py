"""Offline provider for development and tests."""

import logging
from collections import deque
from typing import Any, Dict, Optional

from app.services.ai.llm_provider import LLMProvider

logger = logging.getLogger(__name__)


class MockProvider(LLMProvider):
    """
    Replays scripted responses, then declares every instruction done.

    config["responses"] may hold a list of structured responses returned
    in order by generate_structured.
    """

    name = "mock"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.responses = deque(config.get("responses") or [])
        self.prompts = []

    async def generate_text(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: int = 2000
    ) -> str:
        self.prompts.append(prompt)
        return ""

    async def generate_structured(
        self,
        prompt: str,
        schema: Dict[str, Any],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None
    ) -> Dict[str, Any]:
        self.prompts.append(prompt)
        if self.responses:
            return self.responses.popleft()
        logger.debug("Mock provider: no scripted response, reporting done")
        return {"actions": [], "done": True, "summary": "Mock provider: no browser actions taken"}

    async def is_available(self) -> bool:
        return True
