"""Uniform async page API over the supported browser libraries."""

from abc import ABC, abstractmethod
from typing import Any, Optional


class PageDriver(ABC):
    """
    The page operations the automation workflow and the agent rely on.

    Each automation service wraps its library's page object in one of
    these, so the workflow never touches library-specific calls.
    """

    @property
    @abstractmethod
    def url(self) -> str:
        pass

    @abstractmethod
    async def goto(self, url: str, timeout_ms: Optional[int] = None):
        """Navigate and wait for the network to settle."""
        pass

    @abstractmethod
    async def title(self) -> str:
        pass

    @abstractmethod
    async def screenshot(self, path: str, full_page: bool = True):
        pass

    @abstractmethod
    async def click(self, selector: str):
        pass

    @abstractmethod
    async def fill(self, selector: str, value: str):
        """Replace the value of an input."""
        pass

    @abstractmethod
    async def press(self, key: str, selector: Optional[str] = None):
        pass

    @abstractmethod
    async def scroll(self, delta_x: int = 0, delta_y: int = 600):
        pass

    @abstractmethod
    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        """Run a JavaScript function in the page and return its result."""
        pass

    @abstractmethod
    async def wait(self, ms: int):
        pass
