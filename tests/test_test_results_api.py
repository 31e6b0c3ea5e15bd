"""Tests for the stored test result endpoints."""

import pytest

from app.database.connection import AsyncSessionLocal
from app.database.repositories import ArtifactRepository, ExecutionRepository, StepRepository


async def _seed(framework="playwright", status=None, user_id=None, steps=0):
    async with AsyncSessionLocal() as db:
        execution = await ExecutionRepository.create_execution(
            db, task_description="navigate to github", framework=framework, user_id=user_id
        )
        for n in range(steps):
            await StepRepository.add_step(db, execution.id, {"instruction": f"step {n + 1}", "success": True})
        await ArtifactRepository.add_artifact(db, execution.id, {
            "artifact_type": "screenshot",
            "file_path": "/tmp/missing.png"
        })
        if status:
            await ExecutionRepository.update_execution(db, execution.id, status=status, duration_ms=500)
        return execution.id


class TestListTestResults:
    """Tests for GET /api/test-results."""

    @pytest.mark.asyncio
    async def test_lists_all(self, client):
        """Should list executions with a count."""
        await _seed()
        await _seed(framework="puppeteer")

        body = (await client.get("/api/test-results")).json()

        assert body["success"] is True
        assert body["count"] == 2
        assert body["filters"] == {"limit": 50}

    @pytest.mark.asyncio
    async def test_filters(self, client):
        """Should apply status, framework and user filters."""
        await _seed(status="passed", user_id="u1")
        await _seed(framework="puppeteer", status="failed")

        body = (await client.get(
            "/api/test-results", params={"status": "passed", "userId": "u1"}
        )).json()

        assert body["count"] == 1
        assert body["executions"][0]["user_id"] == "u1"
        assert body["filters"]["status"] == "passed"


class TestStatistics:
    """Tests for GET /api/test-results/statistics."""

    @pytest.mark.asyncio
    async def test_statistics(self, client):
        """Should not be mistaken for an execution id."""
        await _seed(status="passed")
        await _seed(status="failed")

        response = await client.get("/api/test-results/statistics")
        stats = response.json()["statistics"]

        assert response.status_code == 200
        assert stats["overall"]["total_executions"] == 2
        assert stats["overall"]["passed_executions"] == 1

    @pytest.mark.asyncio
    async def test_framework_filter(self, client):
        """Should narrow statistics to a framework."""
        await _seed(framework="playwright", status="passed")
        await _seed(framework="puppeteer", status="passed")

        body = (await client.get("/api/test-results/statistics", params={"framework": "puppeteer"})).json()

        assert body["statistics"]["overall"]["total_executions"] == 1
        assert body["filters"] == {"framework": "puppeteer"}


class TestTestResultDetail:
    """Tests for the per-execution endpoints."""

    @pytest.mark.asyncio
    async def test_detail(self, client):
        """Should include steps, artifacts and requirements."""
        execution_id = await _seed(status="passed", steps=2)

        body = (await client.get(f"/api/test-results/{execution_id}")).json()

        assert body["execution"]["id"] == execution_id
        assert [s["step_number"] for s in body["steps"]] == [1, 2]
        assert len(body["artifacts"]) == 1
        assert body["requirements"] == []
        assert body["isComplete"] is True

    @pytest.mark.asyncio
    async def test_steps_and_artifacts(self, client):
        """Should serve steps and artifacts separately."""
        execution_id = await _seed(steps=1)

        steps = (await client.get(f"/api/test-results/{execution_id}/steps")).json()
        artifacts = (await client.get(f"/api/test-results/{execution_id}/artifacts")).json()

        assert steps["executionId"] == execution_id
        assert len(steps["steps"]) == 1
        assert artifacts["artifacts"][0]["artifact_type"] == "screenshot"

    @pytest.mark.asyncio
    async def test_unknown_execution(self, client):
        """Should answer 404 with the execution id."""
        response = await client.get("/api/test-results/unknown")

        assert response.status_code == 404
        assert response.json() == {"error": "Test execution not found", "executionId": "unknown"}

    @pytest.mark.asyncio
    async def test_delete(self, client):
        """Should delete the execution and everything under it."""
        execution_id = await _seed(steps=2)

        response = await client.delete(f"/api/test-results/{execution_id}")

        assert response.status_code == 200
        assert response.json()["message"] == "Test execution deleted successfully"
        assert (await client.get(f"/api/test-results/{execution_id}")).status_code == 404
        assert (await client.get(f"/api/test-results/{execution_id}/steps")).status_code == 404

    @pytest.mark.asyncio
    async def test_delete_unknown(self, client):
        """Should answer 404 when deleting an unknown execution."""
        response = await client.delete("/api/test-results/unknown")

        assert response.status_code == 404
