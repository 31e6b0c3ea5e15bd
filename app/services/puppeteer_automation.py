"""Puppeteer (pyppeteer) implementation of the automation service."""

import asyncio
import logging
from typing import Any, Dict, Optional

from app.services.automation_service import LAUNCH_ARGS, AutomationService, browser_logger
from app.services.page_driver import PageDriver

logger = logging.getLogger(__name__)

PUPPETEER_EXTRA_ARGS = [
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
]

CLEAR_INPUT_SCRIPT = """(selector) => {
  const el = document.querySelector(selector);
  if (el && 'value' in el) { el.value = ''; }
  else if (el && el.isContentEditable) { el.textContent = ''; }
}"""


class PuppeteerPageDriver(PageDriver):
    """PageDriver over a pyppeteer page."""

    def __init__(self, page):
        self.page = page

    @property
    def url(self) -> str:
        return self.page.url

    async def goto(self, url: str, timeout_ms: Optional[int] = None):
        options = {"waitUntil": "networkidle2"}
        if timeout_ms:
            options["timeout"] = timeout_ms
        await self.page.goto(url, options)

    async def title(self) -> str:
        return await self.page.title()

    async def screenshot(self, path: str, full_page: bool = True):
        await self.page.screenshot({"path": path, "fullPage": full_page})

    async def click(self, selector: str):
        await self.page.click(selector)

    async def fill(self, selector: str, value: str):
        await self.page.evaluate(CLEAR_INPUT_SCRIPT, selector)
        await self.page.type(selector, value)

    async def press(self, key: str, selector: Optional[str] = None):
        if selector:
            await self.page.focus(selector)
        await self.page.keyboard.press(key)

    async def scroll(self, delta_x: int = 0, delta_y: int = 600):
        await self.page.evaluate("(dx, dy) => window.scrollBy(dx, dy)", delta_x, delta_y)

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        if arg is None:
            return await self.page.evaluate(expression)
        return await self.page.evaluate(expression, arg)

    async def wait(self, ms: int):
        await asyncio.sleep(ms / 1000)


class PuppeteerAutomationService(AutomationService):
    """Runs tasks in Chromium through pyppeteer."""

    framework = "puppeteer"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._browser = None

    async def _launch(self, options: Dict[str, Any]) -> PageDriver:
        from pyppeteer import launch

        if options["browser_type"] != "chromium":
            logger.info(f"Puppeteer ignores browserType={options['browser_type']}, using chromium")

        viewport = options["viewport"]
        self._browser = await launch(
            headless=options["headless"],
            slowMo=options["slow_mo"],
            args=LAUNCH_ARGS + PUPPETEER_EXTRA_ARGS,
            defaultViewport=viewport,
            handleSIGINT=False,
            handleSIGTERM=False,
            handleSIGHUP=False
        )
        page = await self._browser.newPage()
        await page.setViewport(viewport)
        await page.setUserAgent(options["user_agent"])
        page.setDefaultNavigationTimeout(options["timeout"])

        page.on("console", lambda msg: browser_logger.info(f"Browser console [{msg.type}]: {msg.text}"))
        page.on("pageerror", lambda error: browser_logger.error(f"Page error: {error}"))
        page.on(
            "requestfailed",
            lambda request: browser_logger.warning(f"Request failed: {request.url} {request.failure()}")
        )

        return PuppeteerPageDriver(page)

    async def _close(self):
        if self._browser:
            try:
                await self._browser.close()
            finally:
                self._browser = None
