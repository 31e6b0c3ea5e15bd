"""Tests for the automation endpoints."""

import asyncio

import pytest
from sqlalchemy import func, select

from app.database.connection import AsyncSessionLocal
from app.models.database import Execution
from tests.fakes import BlockingAutomationService, FailingLaunchService, FakeAutomationService


async def _execution_count():
    async with AsyncSessionLocal() as session:
        return await session.scalar(select(func.count()).select_from(Execution))


async def _start(client, **body):
    body.setdefault("task", "click the sign in button")
    response = await client.post("/api/automation/run", json=body)
    assert response.status_code == 200, response.text
    return response.json()


class TestRunValidation:
    """Tests for request validation on POST /api/automation/run."""

    @pytest.mark.asyncio
    async def test_missing_task(self, client):
        """Should reject a body without a task."""
        response = await client.post("/api/automation/run", json={"framework": "playwright"})

        assert response.status_code == 400
        assert response.json()["error"] == "Task description is required and must be a string"
        assert await _execution_count() == 0

    @pytest.mark.asyncio
    async def test_non_string_task(self, client):
        """Should reject a numeric task."""
        response = await client.post("/api/automation/run", json={"task": 42})

        assert response.status_code == 400
        assert response.json()["error"] == "Task description is required and must be a string"
        assert await _execution_count() == 0

    @pytest.mark.asyncio
    async def test_blank_task(self, client):
        """Should reject a whitespace-only task."""
        response = await client.post("/api/automation/run", json={"task": "   "})

        assert response.status_code == 400
        assert await _execution_count() == 0

    @pytest.mark.asyncio
    async def test_unknown_framework(self, client):
        """Should reject frameworks other than playwright and puppeteer."""
        response = await client.post(
            "/api/automation/run", json={"task": "open github", "framework": "selenium"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == 'Framework must be either "playwright" or "puppeteer"'
        assert await _execution_count() == 0


class TestRunAutomation:
    """Tests for starting and polling runs."""

    @pytest.mark.asyncio
    async def test_run_returns_started(self, client):
        """Should start a run and point at the status URL."""
        data = await _start(client, task="navigate to github", framework="puppeteer")

        assert data["success"] is True
        assert data["status"] == "started"
        assert data["framework"] == "puppeteer"
        assert data["statusUrl"] == f"/api/automation/status/{data['executionId']}"

    @pytest.mark.asyncio
    async def test_run_reaches_passed(self, client, manager):
        """Should record steps and artifacts and finish as passed."""
        data = await _start(client, task="navigate to github", options={"headless": True, "slowMo": 0})
        execution_id = data["executionId"]

        assert await manager.wait_for(execution_id, timeout=10)

        response = await client.get(f"/api/automation/status/{execution_id}")
        body = response.json()

        assert response.status_code == 200
        assert body["isComplete"] is True
        assert body["execution"]["status"] == "passed"
        assert body["execution"]["browser_info"]["slowMo"] == 0
        assert [s["action_type"] for s in body["steps"]] == ["navigate"]
        assert body["steps"][0]["metadata"]["navigatedUrl"] == "https://github.com"

        types = {a["artifact_type"] for a in body["artifacts"]}
        assert types == {"screenshot", "html_report"}

        service = FakeAutomationService.instances[-1]
        assert ("goto", "https://github.com") in service.fake_driver.calls
        assert service.closed is True

    @pytest.mark.asyncio
    async def test_requirements_recorded(self, client, manager):
        """Should link requirements passed with the run."""
        data = await _start(client, requirements=[
            {"requirementId": "REQ-1", "requirementName": "Login", "coverageStatus": "partial"}
        ])
        await manager.wait_for(data["executionId"], timeout=10)

        response = await client.get(f"/api/test-results/{data['executionId']}")
        requirements = response.json()["requirements"]

        assert [(r["requirement_id"], r["coverage_status"]) for r in requirements] == [("REQ-1", "partial")]

    @pytest.mark.asyncio
    async def test_launch_failure_marks_error(self, client, make_manager):
        """Should finish as error when the browser cannot start."""
        manager = make_manager(FailingLaunchService)

        data = await _start(client)
        await manager.wait_for(data["executionId"], timeout=10)

        body = (await client.get(f"/api/automation/status/{data['executionId']}")).json()
        assert body["execution"]["status"] == "error"
        assert "Browser executable not found" in body["execution"]["error_message"]

    @pytest.mark.asyncio
    async def test_concurrency_cap(self, client, make_manager):
        """Should answer 429 when every slot is busy."""
        make_manager(BlockingAutomationService, max_concurrent=1)

        await _start(client)
        response = await client.post("/api/automation/run", json={"task": "click again"})

        assert response.status_code == 429
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_status_unknown(self, client):
        """Should answer 404 for an unknown execution."""
        response = await client.get("/api/automation/status/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {"error": "Execution not found", "executionId": "does-not-exist"}


class TestStopAutomation:
    """Tests for POST /api/automation/stop/{id}."""

    @pytest.mark.asyncio
    async def test_stop_cancels_run(self, client, make_manager):
        """Should mark the run stopped and cancel the in-flight step."""
        manager = make_manager(BlockingAutomationService)

        data = await _start(client, task="click the sign in button")
        execution_id = data["executionId"]

        # Wait until the agent is inside the page
        service = None
        for _ in range(200):
            if BlockingAutomationService.instances:
                service = BlockingAutomationService.instances[-1]
                if service.fake_driver.entered.is_set():
                    break
            await asyncio.sleep(0.01)
        assert service is not None and service.fake_driver.entered.is_set()

        response = await client.post(f"/api/automation/stop/{execution_id}")
        body = response.json()

        assert response.status_code == 200
        assert body["status"] == "stopped"
        assert body["cancelled"] is True

        assert await manager.wait_for(execution_id, timeout=10)

        status = (await client.get(f"/api/automation/status/{execution_id}")).json()
        assert status["execution"]["status"] == "stopped"
        assert status["execution"]["error_message"] == "Stopped by user"
        assert status["steps"][0]["error_message"] == "Stopped by user"
        assert service.closed is True
        assert (await manager.rate_limiter.get_status())["active_executions"] == 0

    @pytest.mark.asyncio
    async def test_stop_unknown(self, client):
        """Should answer 404 for an unknown execution."""
        response = await client.post("/api/automation/stop/nope")

        assert response.status_code == 404
        assert response.json()["executionId"] == "nope"

    @pytest.mark.asyncio
    async def test_stop_finished(self, client, manager):
        """Should answer 409 once the run has finished."""
        data = await _start(client)
        await manager.wait_for(data["executionId"], timeout=10)

        response = await client.post(f"/api/automation/stop/{data['executionId']}")

        assert response.status_code == 409
        status = (await client.get(f"/api/automation/status/{data['executionId']}")).json()
        assert status["execution"]["status"] == "passed"


class TestFrameworks:
    """Tests for GET /api/automation/frameworks."""

    @pytest.mark.asyncio
    async def test_lists_both(self, client):
        """Should describe playwright and puppeteer with defaults."""
        body = (await client.get("/api/automation/frameworks")).json()

        assert [f["name"] for f in body["frameworks"]] == ["playwright", "puppeteer"]
        assert body["defaultOptions"]["viewport"] == {"width": 1280, "height": 720}
