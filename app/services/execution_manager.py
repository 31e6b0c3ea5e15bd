"""
Automation execution management.

Creates execution records, runs automation services in background tasks,
persists their results and broadcasts lifecycle events.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession

from app.database.connection import AsyncSessionLocal
from app.database.repositories import (
    ArtifactRepository,
    ExecutionRepository,
    RequirementRepository,
    StepRepository,
)
from app.models.automation import (
    ArtifactRecord,
    AutomationResult,
    RequirementInput,
    RunAutomationRequest,
    StepRecord,
)
from app.services.automation_service import AutomationService
from app.services.broadcaster import AutomationBroadcaster, get_broadcaster
from app.services.playwright_automation import PlaywrightAutomationService
from app.services.puppeteer_automation import PuppeteerAutomationService
from app.services.rate_limiter import RateLimiter
from app.utils.config import settings

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_CLASSES: Dict[str, Type[AutomationService]] = {
    "playwright": PlaywrightAutomationService,
    "puppeteer": PuppeteerAutomationService,
}

STOP_MESSAGE = "Stopped by user"
CANCEL_MESSAGE = "Cancelled on server shutdown"


class ExecutionError(Exception):
    """Base error for execution lifecycle operations."""
    status_code = 500

    def __init__(self, message: str, execution_id: Optional[str] = None):
        super().__init__(message)
        self.execution_id = execution_id


class ExecutionNotFoundError(ExecutionError):
    status_code = 404


class ExecutionStateError(ExecutionError):
    status_code = 409


class ExecutionLimitError(ExecutionError):
    status_code = 429


class ExecutionStartError(ExecutionError):
    """The execution row exists but the run could not be scheduled."""
    status_code = 500


def _now_iso() -> str:
    return datetime.utcnow().isoformat() + "Z"


class ExecutionManager:
    """Manages automation execution lifecycle."""

    def __init__(
        self,
        broadcaster: Optional[AutomationBroadcaster] = None,
        rate_limiter: Optional[RateLimiter] = None,
        service_classes: Optional[Dict[str, Type[AutomationService]]] = None,
        session_factory=None
    ):
        self.broadcaster = broadcaster or get_broadcaster()
        self.rate_limiter = rate_limiter or RateLimiter(settings.MAX_CONCURRENT_EXECUTIONS)
        self.service_classes = dict(service_classes or DEFAULT_SERVICE_CLASSES)
        self.session_factory = session_factory or AsyncSessionLocal

        self._tasks: Dict[str, asyncio.Task] = {}

    async def broadcast(self, execution_id: str, status: str, **fields: Any):
        payload = {"status": status, "timestamp": _now_iso()}
        payload.update(fields)
        await self.broadcaster.broadcast_automation_update(execution_id, payload)

    async def start_execution(self, db: AsyncSession, request: RunAutomationRequest) -> str:
        """
        Create an execution and start it in the background.

        Returns:
            The new execution id

        Raises:
            ExecutionLimitError: If the concurrency cap is reached
            ExecutionStartError: If the run could not be scheduled
        """
        execution_id = str(uuid.uuid4())
        framework = request.framework.value

        if not await self.rate_limiter.acquire(execution_id, framework):
            raise ExecutionLimitError(
                f"Too many automations running (limit {self.rate_limiter.max_concurrent}). "
                f"Please wait for current runs to complete."
            )

        try:
            await ExecutionRepository.create_execution(
                db,
                task_description=request.task,
                framework=framework,
                execution_id=execution_id,
                user_id=request.user_id,
                browser_info=request.options.to_wire()
            )
        except Exception:
            await self.rate_limiter.release(execution_id)
            raise

        try:
            await self.broadcast(execution_id, "started", task=request.task, framework=framework)
            task = asyncio.create_task(self._run_execution(execution_id, request))
        except Exception as e:
            logger.error(f"Failed to start execution {execution_id}: {e}", exc_info=True)
            await self.rate_limiter.release(execution_id)
            await ExecutionRepository.update_execution(
                db, execution_id,
                status="error",
                completed_at=datetime.utcnow(),
                error_message=str(e)
            )
            await self.broadcast(execution_id, "error", error=str(e))
            raise ExecutionStartError(str(e), execution_id=execution_id) from e

        self._tasks[execution_id] = task
        task.add_done_callback(lambda _: self._on_task_done(execution_id))

        logger.info(f"Started {framework} execution {execution_id}")
        return execution_id

    def _on_task_done(self, execution_id: str):
        self._tasks.pop(execution_id, None)
        # A run cancelled before its first step never reaches its finally block
        self.rate_limiter.discard(execution_id)

    async def _run_execution(self, execution_id: str, request: RunAutomationRequest):
        """Run the automation and record its outcome."""
        framework = request.framework.value
        start = time.monotonic()
        service: Optional[AutomationService] = None
        finishing: Optional[asyncio.Future] = None

        def elapsed_ms() -> int:
            return int((time.monotonic() - start) * 1000)

        try:
            service = self.service_classes[framework](execution_id=execution_id)
            service.on_progress = lambda update: self.broadcast(execution_id, "progress", **update)

            await service.initialize(request.options)
            result = await service.run_task(request.task)

            # Final writes complete even if the run is stopped meanwhile
            finishing = asyncio.ensure_future(
                self._record_outcome(execution_id, result, request.requirements, elapsed_ms())
            )
            await asyncio.shield(finishing)

        except asyncio.CancelledError:
            logger.info(f"Execution {execution_id} cancelled after {elapsed_ms()}ms")
            if finishing is not None:
                await asyncio.wait({finishing})
            else:
                await self._record_cancellation(execution_id, service, request.requirements, elapsed_ms())
            raise

        except Exception as e:
            logger.error(f"Automation execution {execution_id} error: {e}", exc_info=True)
            duration = elapsed_ms()
            try:
                async with self.session_factory() as db:
                    updated = await ExecutionRepository.update_execution(
                        db, execution_id,
                        status="error",
                        completed_at=datetime.utcnow(),
                        duration_ms=duration,
                        error_message=str(e)
                    )
            except Exception as db_error:
                logger.error(f"Could not record error for {execution_id}: {db_error}")
                updated = False

            if updated:
                await self.broadcast(execution_id, "error", duration=duration, error=str(e))

        finally:
            if service is not None:
                await service.cleanup()
            await self.rate_limiter.release(execution_id)

    async def _record_outcome(
        self,
        execution_id: str,
        result: AutomationResult,
        requirements: List[RequirementInput],
        duration: int
    ):
        async with self.session_factory() as db:
            await self._persist_results(db, execution_id, result.steps, result.artifacts, requirements)
            updated = await ExecutionRepository.update_execution(
                db, execution_id,
                status="passed" if result.success else "failed",
                completed_at=datetime.utcnow(),
                duration_ms=duration,
                error_message=result.error
            )
            if not updated:
                # Stopped while finishing: the stop status stands
                await ExecutionRepository.update_execution(db, execution_id, duration_ms=duration)

        if updated:
            await self.broadcast(
                execution_id,
                "completed" if result.success else "failed",
                duration=duration,
                error=result.error,
                reportUrl=result.report_url
            )
        logger.info(f"Execution {execution_id} finished: success={result.success} in {duration}ms")

    async def _persist_results(
        self,
        db: AsyncSession,
        execution_id: str,
        steps: List[StepRecord],
        artifacts: List[ArtifactRecord],
        requirements: List[RequirementInput]
    ):
        for step in steps:
            await StepRepository.add_step(db, execution_id, step.model_dump())
        for artifact in artifacts:
            await ArtifactRepository.add_artifact(db, execution_id, artifact.model_dump())
        for requirement in requirements:
            await RequirementRepository.add_requirement(db, execution_id, requirement.model_dump())

    async def _record_cancellation(
        self,
        execution_id: str,
        service: Optional[AutomationService],
        requirements: List[RequirementInput],
        duration: int
    ):
        """
        Close out an interrupted run and keep what it produced.

        A user stop has already set ``stopped``; any other cancellation
        (shutdown) sets it here.
        """
        steps = list(service.steps) if service else []
        artifacts = list(service.artifacts) if service else []
        try:
            async with self.session_factory() as db:
                updated = await ExecutionRepository.update_execution(
                    db, execution_id,
                    status="stopped",
                    completed_at=datetime.utcnow(),
                    error_message=CANCEL_MESSAGE
                )
                await ExecutionRepository.update_execution(db, execution_id, duration_ms=duration)
                await self._persist_results(db, execution_id, steps, artifacts, requirements)
        except Exception as e:
            logger.error(f"Could not persist partial results for {execution_id}: {e}")
            return

        if updated:
            await self.broadcast(execution_id, "stopped", message=CANCEL_MESSAGE)

    async def stop_execution(self, db: AsyncSession, execution_id: str) -> bool:
        """
        Stop a running execution.

        Returns:
            True if an in-flight run was cancelled

        Raises:
            ExecutionNotFoundError: Unknown execution
            ExecutionStateError: Execution already finished
        """
        execution = await ExecutionRepository.get_execution(db, execution_id)
        if execution is None:
            raise ExecutionNotFoundError("Execution not found", execution_id=execution_id)

        updated = await ExecutionRepository.update_execution(
            db, execution_id,
            status="stopped",
            completed_at=datetime.utcnow(),
            error_message=STOP_MESSAGE
        )
        if not updated:
            raise ExecutionStateError(
                f"Execution is no longer running (status: {execution.status})",
                execution_id=execution_id
            )

        await self.broadcast(execution_id, "stopped", message="Automation stopped by user")

        task = self._tasks.get(execution_id)
        cancelled = task is not None and not task.done()
        if cancelled:
            task.cancel()

        logger.info(f"Stopped execution {execution_id} (cancelled={cancelled})")
        return cancelled

    async def wait_for(self, execution_id: str, timeout: Optional[float] = None) -> bool:
        """
        Wait for a background run to finish.

        Returns:
            True if no run is in flight for the id anymore
        """
        task = self._tasks.get(execution_id)
        if task is None:
            return True
        done, _ = await asyncio.wait({task}, timeout=timeout)
        return bool(done)

    async def shutdown(self):
        """Cancel all in-flight runs."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} running executions on shutdown")
