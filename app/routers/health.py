"""Health check endpoints."""

import logging
from datetime import datetime
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.database.connection import check_db
from app.services.broadcaster import get_broadcaster
from app.utils.config import resolve_ai_provider, settings

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: the database answers and the execution manager is up."""
    checks = {
        "api": True,
        "database": await check_db(),
        "execution_manager": hasattr(request.app.state, 'execution_manager')
    }

    all_ready = all(checks.values())
    if not all_ready:
        logger.warning(f"Readiness check failed: {checks}")

    return JSONResponse(
        status_code=200 if all_ready else 503,
        content={
            "ready": all_ready,
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat() + "Z"
        }
    )


@router.get("/health/config")
async def config_check(request: Request):
    """Show non-sensitive configuration."""
    manager = getattr(request.app.state, "execution_manager", None)
    limiter = await manager.rate_limiter.get_status() if manager else None
    return {
        "environment": settings.ENVIRONMENT,
        "ai_provider": resolve_ai_provider(),
        "max_concurrent_executions": settings.MAX_CONCURRENT_EXECUTIONS,
        "active_executions": limiter["active_executions"] if limiter else 0,
        "agent_max_iterations": settings.AGENT_MAX_ITERATIONS,
        "browser_headless": settings.BROWSER_HEADLESS,
        "navigation_timeout_ms": settings.NAVIGATION_TIMEOUT_MS,
        "websocket_clients": get_broadcaster().connection_count
    }
