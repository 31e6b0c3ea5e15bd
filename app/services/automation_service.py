"""
Shared browser automation workflow.

AutomationService runs a natural-language task in a browser: it captures
screenshots before and after, splits and preprocesses the task, hands each
step to the PageAgent, writes a static HTML report and rebrands the agent's
own reports. Subclasses only launch and close their browser library and
wrap its page in a PageDriver.
"""

import asyncio
import inspect
import logging
import time
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from app.models.automation import (
    ArtifactRecord,
    AutomationOptions,
    AutomationResult,
    StepRecord,
    Viewport,
)
from app.services.ai.llm_provider import LLMProvider
from app.services.ai.provider_factory import get_llm_provider
from app.services.artifact_manager import ArtifactManager, get_artifact_manager
from app.services.page_agent import PageAgent
from app.services.page_driver import PageDriver
from app.services.report_branding import ReportBranding
from app.services.report_generator import get_report_generator
from app.services.task_preprocessor import (
    PreprocessedTask,
    preprocess_task,
    split_task_steps,
)
from app.utils.config import settings
from app.utils.logging import redact_dict

logger = logging.getLogger(__name__)
browser_logger = logging.getLogger("app.browser")

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-web-security",
    "--disable-features=VizDisplayCompositor",
]

ProgressCallback = Callable[[Dict[str, Any]], Any]


def resolve_options(options: Union[AutomationOptions, Dict[str, Any], None]) -> Dict[str, Any]:
    """Merge request options with the configured browser defaults."""
    if options is None:
        options = AutomationOptions()
    elif isinstance(options, dict):
        options = AutomationOptions.model_validate(options)

    viewport = options.viewport or Viewport(
        width=settings.BROWSER_VIEWPORT_WIDTH,
        height=settings.BROWSER_VIEWPORT_HEIGHT
    )
    return {
        "headless": settings.BROWSER_HEADLESS if options.headless is None else options.headless,
        "viewport": {"width": viewport.width, "height": viewport.height},
        "timeout": options.timeout or settings.BROWSER_TIMEOUT_MS,
        "slow_mo": settings.BROWSER_SLOW_MO_MS if options.slow_mo is None else options.slow_mo,
        "browser_type": options.browser_type,
        "user_agent": settings.BROWSER_USER_AGENT,
    }


def _file_size(path: Path) -> Optional[int]:
    try:
        return path.stat().st_size
    except OSError:
        return None


class AutomationService(ABC):
    """Base class for framework-specific automation services."""

    framework = "base"

    def __init__(
        self,
        execution_id: Optional[str] = None,
        artifact_manager: Optional[ArtifactManager] = None,
        provider: Optional[LLMProvider] = None
    ):
        self.execution_id = execution_id or str(uuid.uuid4())
        self.artifact_manager = artifact_manager or get_artifact_manager()
        self.provider = provider
        self.report_generator = get_report_generator()
        self.branding = ReportBranding(report_dirs=self.artifact_manager.agent_report_dirs)

        self.driver: Optional[PageDriver] = None
        self.agent: Optional[PageAgent] = None
        self.options: Dict[str, Any] = {}
        self.steps: List[StepRecord] = []
        self.artifacts: List[ArtifactRecord] = []
        self.on_progress: Optional[ProgressCallback] = None

    @abstractmethod
    async def _launch(self, options: Dict[str, Any]) -> PageDriver:
        """Start the browser and return a driver for a fresh page."""
        pass

    @abstractmethod
    async def _close(self):
        """Close the browser and release library resources."""
        pass

    async def initialize(self, options: Union[AutomationOptions, Dict[str, Any], None] = None):
        """
        Launch the browser and build the page agent.

        Raises:
            Exception: Launch failures are logged and re-raised
        """
        self.options = resolve_options(options)
        logger.info(f"[{self.execution_id}] Launching {self.framework}: {redact_dict(self.options)}")

        try:
            self.driver = await self._launch(self.options)
        except Exception as e:
            logger.error(f"[{self.execution_id}] {self.framework} initialization failed: {e}")
            await self.cleanup()
            raise

        provider = self.provider or get_llm_provider()
        if provider is None:
            await self.cleanup()
            raise RuntimeError("No AI provider configured for the page agent")

        self.agent = PageAgent(
            self.driver, provider, report_id=self.execution_id, artifact_manager=self.artifact_manager
        )
        logger.info(f"[{self.execution_id}] {self.framework} initialized with {self.options['browser_type']}")

    async def run_task(self, task: str) -> AutomationResult:
        """
        Run a task to completion.

        Step failures end the run with success=False; they are not raised.

        Raises:
            RuntimeError: If initialize() has not been called
        """
        if self.agent is None or self.driver is None:
            raise RuntimeError("Service not initialized. Call initialize() first.")

        start = time.monotonic()
        self.steps = []
        self.artifacts = []

        try:
            await self.capture_screenshot("initial_state")
            await self._emit_progress({"step": "Starting automation", "action": "initialize"})

            results = []
            for instruction in split_task_steps(task):
                prepared = await self.preprocess_task(instruction)
                results.append(await self.execute_task_with_tracking(prepared))

            await self.capture_screenshot("final_state")
            report_path = await self.generate_report()

            return AutomationResult(
                success=True,
                result="\n".join(r for r in results if r) or None,
                steps=self.steps,
                artifacts=self.artifacts,
                report_url=self._report_url(report_path),
                duration_ms=int((time.monotonic() - start) * 1000)
            )

        except Exception as e:
            logger.error(f"[{self.execution_id}] Task execution failed: {e}")
            await self.capture_screenshot("error_state")
            report_path = await self.generate_report()

            return AutomationResult(
                success=False,
                error=str(e),
                steps=self.steps,
                artifacts=self.artifacts,
                report_url=self._report_url(report_path),
                duration_ms=int((time.monotonic() - start) * 1000)
            )

        finally:
            self.apply_branding()

    async def preprocess_task(self, task: str) -> PreprocessedTask:
        """Rewrite a step and perform direct navigation where possible."""
        return await preprocess_task(task, self._navigate)

    async def _navigate(self, url: str):
        logger.info(f"[{self.execution_id}] Navigating to {url} (from {self.driver.url})")
        await self.driver.goto(url, timeout_ms=settings.NAVIGATION_TIMEOUT_MS)
        logger.info(f"[{self.execution_id}] Now at {self.driver.url}")

    async def execute_task_with_tracking(self, task: Union[PreprocessedTask, str]) -> Optional[str]:
        """
        Execute one step and record it.

        Raises:
            Exception: Whatever the agent raised, after the step is recorded
        """
        if isinstance(task, str):
            task = PreprocessedTask(instruction=task)

        step = StepRecord(
            step_number=len(self.steps) + 1,
            action_type="aiAction" if task.needs_agent else "navigate",
            instruction=task.instruction,
        )
        if task.navigated_url:
            step.metadata["navigatedUrl"] = task.navigated_url
        self.steps.append(step)

        instruction = task.instruction
        await self._emit_progress({
            "step": f"Executing: {instruction[:100]}{'...' if len(instruction) > 100 else ''}",
            "action": "executing",
            "stepNumber": step.step_number,
        })

        step_start = time.monotonic()
        try:
            if task.needs_agent:
                logger.info(f"[{self.execution_id}] AI action: {instruction!r} at {self.driver.url}")
                result = await self.agent.ai_action(instruction)
            else:
                result = f"Navigated to {task.navigated_url}"

            step.success = True
            step.duration_ms = int((time.monotonic() - step_start) * 1000)
            step.target_url = self.driver.url
            step.metadata["result"] = result
            step.screenshot_path = await self.capture_screenshot(f"step_{step.step_number}")
            logger.info(f"[{self.execution_id}] Step {step.step_number} completed")
            return result

        except asyncio.CancelledError:
            step.duration_ms = int((time.monotonic() - step_start) * 1000)
            step.error_message = "Stopped by user"
            raise

        except Exception as e:
            step.duration_ms = int((time.monotonic() - step_start) * 1000)
            step.error_message = str(e)
            step.target_url = self.driver.url
            step.screenshot_path = await self.capture_screenshot(f"step_{step.step_number}_error")
            raise

    async def capture_screenshot(self, name: str) -> Optional[str]:
        """
        Save a full-page screenshot and record it as an artifact.

        Returns:
            File path, or None when there is no page or the capture failed
        """
        if self.driver is None:
            return None

        try:
            path = self.artifact_manager.screenshot_path(self.execution_id, name)
            await self.driver.screenshot(str(path), full_page=True)
        except Exception as e:
            logger.error(f"[{self.execution_id}] Screenshot capture failed: {e}")
            return None

        self.artifacts.append(ArtifactRecord(
            id=str(uuid.uuid4()),
            artifact_type="screenshot",
            file_path=str(path),
            file_size=_file_size(path),
            mime_type="image/png",
            description=f"Screenshot: {name}"
        ))
        return str(path)

    async def generate_report(self) -> Optional[str]:
        """Write the HTML execution report and record it as an artifact."""
        try:
            path = self.artifact_manager.report_path(self.execution_id)
            self.report_generator.generate_html_report(
                execution_id=self.execution_id,
                framework=self.framework,
                steps=self.steps,
                output_path=path,
                screenshot_url=self.artifact_manager.to_url
            )
        except Exception as e:
            logger.error(f"[{self.execution_id}] Report generation failed: {e}")
            return None

        self.artifacts.append(ArtifactRecord(
            id=str(uuid.uuid4()),
            artifact_type="html_report",
            file_path=str(path),
            file_size=_file_size(path),
            mime_type="text/html",
            description="Automation execution report"
        ))
        return str(path)

    def apply_branding(self) -> int:
        try:
            return self.branding.apply()
        except Exception as e:
            logger.warning(f"Branding customization skipped: {e}")
            return 0

    async def cleanup(self):
        """Close the browser; errors are logged, not raised."""
        try:
            await self._close()
            logger.info(f"[{self.execution_id}] {self.framework} browser closed")
        except Exception as e:
            logger.error(f"[{self.execution_id}] Cleanup error: {e}")
        finally:
            self.driver = None
            self.agent = None

    def _report_url(self, report_path: Optional[str]) -> Optional[str]:
        if not report_path:
            return None
        return f"/api/artifacts/{self.execution_id}/report"

    async def _emit_progress(self, update: Dict[str, Any]):
        if self.on_progress is None:
            return
        payload = {**update, "timestamp": datetime.utcnow().isoformat() + "Z"}
        try:
            result = self.on_progress(payload)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"[{self.execution_id}] Progress callback failed: {e}")
