"""Automation run endpoints."""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.connection import get_db
from app.database.repositories import ArtifactRepository, ExecutionRepository, StepRepository
from app.models.automation import RunAutomationRequest
from app.services.execution_manager import (
    ExecutionError,
    ExecutionManager,
    ExecutionStartError,
)
from app.utils.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()

FRAMEWORKS = [
    {
        "name": "playwright",
        "displayName": "Playwright",
        "description": "Multi-browser support (Chromium, Firefox, WebKit)",
        "features": ["Multi-browser", "Mobile testing", "Network interception", "Auto-wait"],
        "recommended": True
    },
    {
        "name": "puppeteer",
        "displayName": "Puppeteer",
        "description": "Chrome/Chromium focused with DevTools integration",
        "features": ["Chrome DevTools", "PDF generation", "Performance profiling", "Lightweight"],
        "recommended": False
    }
]


def get_execution_manager(request: Request) -> ExecutionManager:
    """Get or create ExecutionManager instance."""
    if not hasattr(request.app.state, 'execution_manager'):
        request.app.state.execution_manager = ExecutionManager()
    return request.app.state.execution_manager


@router.post("/run")
async def run_automation(
    request: Request,
    run_request: RunAutomationRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Start an automation in the background.

    Returns immediately; follow progress over the WebSocket or by polling
    the status URL.
    """
    manager = get_execution_manager(request)

    try:
        execution_id = await manager.start_execution(db, run_request)
    except ExecutionStartError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail={"success": False, "executionId": e.execution_id, "error": str(e)}
        )
    except ExecutionError as e:
        raise HTTPException(status_code=e.status_code, detail={"success": False, "error": str(e)})

    return {
        "success": True,
        "executionId": execution_id,
        "status": "started",
        "framework": run_request.framework.value,
        "task": run_request.task,
        "message": "Automation started. Use WebSocket or polling to get updates.",
        "statusUrl": f"/api/automation/status/{execution_id}"
    }


@router.get("/status/{execution_id}")
async def get_automation_status(execution_id: str, db: AsyncSession = Depends(get_db)):
    """Get execution state with its steps and artifacts."""
    execution = await ExecutionRepository.get_execution(db, execution_id)
    if not execution:
        raise HTTPException(
            status_code=404,
            detail={"error": "Execution not found", "executionId": execution_id}
        )

    steps = await StepRepository.get_steps(db, execution_id)
    artifacts = await ArtifactRepository.get_artifacts(db, execution_id)

    return {
        "success": True,
        "execution": execution.to_dict(),
        "steps": [s.to_dict() for s in steps],
        "artifacts": [a.to_dict() for a in artifacts],
        "isComplete": execution.is_complete
    }


@router.post("/stop/{execution_id}")
async def stop_automation(
    request: Request,
    execution_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Stop a running automation and cancel its browser session."""
    manager = get_execution_manager(request)

    try:
        cancelled = await manager.stop_execution(db, execution_id)
    except ExecutionError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail={"success": False, "error": str(e), "executionId": execution_id}
        )

    return {
        "success": True,
        "executionId": execution_id,
        "status": "stopped",
        "cancelled": cancelled,
        "message": "Automation stopped successfully"
    }


@router.get("/frameworks")
async def list_frameworks():
    """Supported frameworks and default browser options."""
    return {
        "frameworks": FRAMEWORKS,
        "defaultOptions": {
            "headless": settings.BROWSER_HEADLESS,
            "viewport": {
                "width": settings.BROWSER_VIEWPORT_WIDTH,
                "height": settings.BROWSER_VIEWPORT_HEIGHT
            },
            "timeout": settings.BROWSER_TIMEOUT_MS,
            "slowMo": settings.BROWSER_SLOW_MO_MS
        }
    }
