"""
Automation API - natural-language browser automation

Endpoints:
- POST /api/automation/run - Start an automation run
- GET /api/automation/status/{id} - Poll a run
- POST /api/automation/stop/{id} - Stop a run
- GET /api/test-results - Stored executions and statistics
- GET /api/artifacts/{id}/... - Reports and screenshots
- WS /ws - Live automation updates
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.database.connection import AsyncSessionLocal, close_db, init_db
from app.database.repositories import ExecutionRepository
from app.routers import artifacts, automation, health, test_results, websocket
from app.services.ai import close_providers
from app.services.artifact_manager import STATIC_PREFIX, get_artifact_manager
from app.services.execution_manager import ExecutionManager
from app.utils import settings, setup_logging, validate_settings

logger = logging.getLogger(__name__)

TASK_ERROR = "Task description is required and must be a string"
FRAMEWORK_ERROR = 'Framework must be either "playwright" or "puppeteer"'

INTERRUPTED_MESSAGE = "Interrupted by server restart"

FIELD_ERRORS = {
    "task": TASK_ERROR,
    "framework": FRAMEWORK_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    validate_settings()
    logger.info(f"Automation API starting ({settings.ENVIRONMENT})...")

    await init_db()
    async with AsyncSessionLocal() as db:
        await ExecutionRepository.fail_running_executions(db, INTERRUPTED_MESSAGE)
    get_artifact_manager().ensure_base_path()
    app.state.execution_manager = ExecutionManager()

    yield

    logger.info("Automation API shutting down...")
    await app.state.execution_manager.shutdown()
    await close_providers()
    await close_db()


app = FastAPI(
    title="Automation API",
    description="Natural-language browser automation with Playwright and Puppeteer",
    version="1.0.0",
    docs_url="/docs" if settings.ENABLE_DOCS else None,
    redoc_url="/redoc" if settings.ENABLE_DOCS else None,
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _validation_message(errors) -> str:
    for error in errors:
        loc = [part for part in error.get("loc", ()) if part != "body"]
        if not loc:
            # No body at all
            return TASK_ERROR
        if loc[0] in FIELD_ERRORS:
            return FIELD_ERRORS[loc[0]]
    return errors[0].get("msg", "Invalid request") if errors else "Invalid request"


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    logger.info(f"Rejected request to {request.url.path}: {len(errors)} validation errors")
    return JSONResponse(
        status_code=400,
        content={
            "error": _validation_message(errors),
            "details": [
                {
                    "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
                    "message": error.get("msg")
                }
                for error in errors
            ]
        }
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        content = exc.detail
    elif exc.status_code == 404 and exc.detail == "Not Found":
        content = {
            "error": "Endpoint not found",
            "path": request.url.path,
            "method": request.method
        }
    else:
        content = {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Server error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error" if settings.is_production else str(exc),
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "path": request.url.path
        }
    )


app.include_router(health.router, tags=["health"])
app.include_router(automation.router, prefix="/api/automation", tags=["automation"])
app.include_router(test_results.router, prefix="/api/test-results", tags=["test-results"])
app.include_router(artifacts.router, prefix="/api/artifacts", tags=["artifacts"])
app.include_router(websocket.router, tags=["websocket"])

# Directory is created on startup
app.mount(
    STATIC_PREFIX,
    StaticFiles(directory=settings.ARTIFACTS_PATH, check_dir=False),
    name="artifacts"
)


@app.get("/")
async def root():
    return {
        "service": "Automation API",
        "version": "1.0.0",
        "docs": "/docs" if settings.ENABLE_DOCS else None,
        "endpoints": ["/api/automation", "/api/test-results", "/api/artifacts", "/ws", "/health"]
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host=settings.API_HOST, port=settings.API_PORT)
