"""
Concurrency control for automation executions.

Each execution holds a browser for its whole lifetime, so an optional
global cap bounds how many run at once. A cap of 0 means unlimited.
"""

import asyncio
import logging
from typing import Dict
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class ExecutionSlot:
    """Information about an active execution."""
    execution_id: str
    framework: str


class RateLimiter:
    """Tracks active executions against a global concurrency limit."""

    def __init__(self, max_concurrent: int = 0):
        self.max_concurrent = max_concurrent
        self._active: Dict[str, ExecutionSlot] = {}
        self._lock = asyncio.Lock()

        logger.info(f"RateLimiter initialized: max_concurrent={max_concurrent or 'unlimited'}")

    @property
    def unlimited(self) -> bool:
        return self.max_concurrent <= 0

    async def acquire(self, execution_id: str, framework: str) -> bool:
        """
        Try to acquire a slot for an execution.

        Returns:
            True if slot acquired, False if at limit
        """
        async with self._lock:
            if not self.unlimited and len(self._active) >= self.max_concurrent:
                logger.warning(
                    f"Rate limit: max concurrent executions ({self.max_concurrent}) reached"
                )
                return False

            self._active[execution_id] = ExecutionSlot(execution_id=execution_id, framework=framework)
            logger.debug(
                f"Acquired slot for execution {execution_id} ({framework}). "
                f"Active: {len(self._active)}/{self.max_concurrent or 'unlimited'}"
            )
            return True

    async def release(self, execution_id: str) -> bool:
        """
        Release the slot held by an execution.

        Returns:
            True if released, False if not found
        """
        async with self._lock:
            slot = self._active.pop(execution_id, None)
            if slot:
                logger.debug(
                    f"Released slot for execution {execution_id}. "
                    f"Active: {len(self._active)}/{self.max_concurrent or 'unlimited'}"
                )
                return True
            return False

    def discard(self, execution_id: str):
        """Drop a slot without waiting for the lock, for use in task callbacks."""
        self._active.pop(execution_id, None)

    async def get_status(self) -> Dict:
        """Get current limiter status."""
        async with self._lock:
            return {
                "max_concurrent": self.max_concurrent,
                "active_executions": len(self._active),
                "available_slots": None if self.unlimited else self.max_concurrent - len(self._active),
                "active_execution_ids": list(self._active.keys()),
            }
