"""Playwright implementation of the automation service."""

import logging
from typing import Any, Dict, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright

from app.services.automation_service import LAUNCH_ARGS, AutomationService, browser_logger
from app.services.page_driver import PageDriver

logger = logging.getLogger(__name__)


class PlaywrightPageDriver(PageDriver):
    """PageDriver over a Playwright page."""

    def __init__(self, page: Page):
        self.page = page

    @property
    def url(self) -> str:
        return self.page.url

    async def goto(self, url: str, timeout_ms: Optional[int] = None):
        await self.page.goto(url, wait_until="networkidle", timeout=timeout_ms)

    async def title(self) -> str:
        return await self.page.title()

    async def screenshot(self, path: str, full_page: bool = True):
        await self.page.screenshot(path=path, full_page=full_page)

    async def click(self, selector: str):
        await self.page.click(selector)

    async def fill(self, selector: str, value: str):
        await self.page.fill(selector, value)

    async def press(self, key: str, selector: Optional[str] = None):
        if selector:
            await self.page.press(selector, key)
        else:
            await self.page.keyboard.press(key)

    async def scroll(self, delta_x: int = 0, delta_y: int = 600):
        await self.page.mouse.wheel(delta_x, delta_y)

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        return await self.page.evaluate(expression, arg)

    async def wait(self, ms: int):
        await self.page.wait_for_timeout(ms)


class PlaywrightAutomationService(AutomationService):
    """Runs tasks in Chromium, Firefox or WebKit through Playwright."""

    framework = "playwright"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def _launch(self, options: Dict[str, Any]) -> PageDriver:
        self._playwright = await async_playwright().start()

        engine = {
            "firefox": self._playwright.firefox,
            "webkit": self._playwright.webkit,
        }.get(options["browser_type"], self._playwright.chromium)

        self._browser = await engine.launch(
            headless=options["headless"],
            slow_mo=options["slow_mo"],
            timeout=options["timeout"],
            args=LAUNCH_ARGS
        )
        context = await self._browser.new_context(
            viewport=options["viewport"],
            user_agent=options["user_agent"]
        )
        page = await context.new_page()
        page.set_default_timeout(options["timeout"])
        page.set_default_navigation_timeout(options["timeout"])

        page.on("console", lambda msg: browser_logger.info(f"Browser console [{msg.type}]: {msg.text}"))
        page.on("pageerror", lambda error: browser_logger.error(f"Page error: {error}"))
        page.on(
            "requestfailed",
            lambda request: browser_logger.warning(f"Request failed: {request.url} {request.failure}")
        )

        return PlaywrightPageDriver(page)

    async def _close(self):
        try:
            if self._browser:
                await self._browser.close()
        finally:
            self._browser = None
            if self._playwright:
                await self._playwright.stop()
                self._playwright = None
