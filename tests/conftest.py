"""Shared fixtures: isolated storage, fake browsers and an ASGI client."""

import json
import os
import tempfile

_TEST_ROOT = tempfile.mkdtemp(prefix="automation-api-tests-")

# Must be set before any app module reads settings
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_ROOT}/test-results.db"
os.environ["ARTIFACTS_PATH"] = f"{_TEST_ROOT}/artifacts"
os.environ["AGENT_REPORT_DIRS"] = json.dumps([f"{_TEST_ROOT}/agent-reports"])
os.environ["AI_PROVIDER"] = "mock"
os.environ["LOG_FORMAT"] = "text"
os.environ["BROWSER_SLOW_MO_MS"] = "0"

import httpx
import pytest
import pytest_asyncio

from app.database.connection import AsyncSessionLocal, engine
from app.main import app
from app.models.database import Base
from app.services.broadcaster import AutomationBroadcaster
from app.services.execution_manager import ExecutionManager
from app.services.rate_limiter import RateLimiter
from app.utils.config import settings
from tests.fakes import FakeAutomationService


@pytest_asyncio.fixture
async def db_tables():
    """Fresh tables for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db(db_tables):
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def broadcaster():
    return AutomationBroadcaster()


@pytest_asyncio.fixture
async def make_manager(db_tables, broadcaster):
    """Build an ExecutionManager over fake services and install it on the app."""
    created = []

    def factory(service_class=FakeAutomationService, max_concurrent=0):
        execution_manager = ExecutionManager(
            broadcaster=broadcaster,
            rate_limiter=RateLimiter(max_concurrent),
            service_classes={"playwright": service_class, "puppeteer": service_class}
        )
        created.append(execution_manager)
        app.state.execution_manager = execution_manager
        return execution_manager

    FakeAutomationService.instances.clear()
    yield factory

    for execution_manager in created:
        await execution_manager.shutdown()
    if hasattr(app.state, "execution_manager"):
        del app.state.execution_manager


@pytest_asyncio.fixture
async def manager(make_manager):
    return make_manager()


@pytest_asyncio.fixture
async def client(manager):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client


@pytest.fixture
def artifacts_root():
    return settings.ARTIFACTS_PATH


@pytest.fixture
def agent_report_dir():
    return settings.AGENT_REPORT_DIRS[0]
