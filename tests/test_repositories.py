"""Tests for the result repositories."""

import pytest
from sqlalchemy import func, select

from app.database.repositories import (
    ArtifactRepository,
    ExecutionRepository,
    RequirementRepository,
    StepRepository,
)
from app.models.database import Artifact, Requirement, Step


async def _execution(db, task="go to github", framework="playwright", **kwargs):
    return await ExecutionRepository.create_execution(db, task_description=task, framework=framework, **kwargs)


class TestExecutionRepository:
    """Tests for ExecutionRepository."""

    @pytest.mark.asyncio
    async def test_create_sets_running_and_name(self, db):
        """Should start in running with a name built from the task."""
        execution = await _execution(db, task="navigate to github")

        assert execution.status == "running"
        assert execution.test_name == "Automation: navigate to github"
        assert execution.started_at is not None
        assert execution.is_complete is False

    @pytest.mark.asyncio
    async def test_long_task_name_truncated(self, db):
        """Should cut the name after 50 characters of task."""
        task = "x" * 80
        execution = await _execution(db, task=task)

        assert execution.test_name == "Automation: " + "x" * 50 + "..."
        assert execution.task_description == task

    @pytest.mark.asyncio
    async def test_status_only_moves_forward(self, db):
        """Should ignore a status change once the execution is terminal."""
        execution = await _execution(db)

        assert await ExecutionRepository.update_execution(db, execution.id, status="stopped") is True
        assert await ExecutionRepository.update_execution(db, execution.id, status="passed") is False

        await db.refresh(execution)
        assert execution.status == "stopped"

    @pytest.mark.asyncio
    async def test_rejects_return_to_running(self, db):
        """Should refuse running as a target status."""
        execution = await _execution(db)

        with pytest.raises(ValueError):
            await ExecutionRepository.update_execution(db, execution.id, status="running")

    @pytest.mark.asyncio
    async def test_non_status_update_after_terminal(self, db):
        """Should still allow duration updates on a finished execution."""
        execution = await _execution(db)
        await ExecutionRepository.update_execution(db, execution.id, status="failed")

        assert await ExecutionRepository.update_execution(db, execution.id, duration_ms=1200) is True

    @pytest.mark.asyncio
    async def test_update_unknown_execution(self, db):
        """Should report no update for an unknown id."""
        assert await ExecutionRepository.update_execution(db, "missing", status="error") is False

    @pytest.mark.asyncio
    async def test_fail_running_executions(self, db):
        """Should close out rows left running by a previous process."""
        interrupted = await _execution(db)
        finished = await _execution(db)
        await ExecutionRepository.update_execution(db, finished.id, status="passed")

        assert await ExecutionRepository.fail_running_executions(db, "Interrupted by server restart") == 1

        await db.refresh(interrupted)
        await db.refresh(finished)
        assert interrupted.status == "error"
        assert interrupted.error_message == "Interrupted by server restart"
        assert interrupted.completed_at is not None
        assert finished.status == "passed"
        assert await ExecutionRepository.fail_running_executions(db, "again") == 0

    @pytest.mark.asyncio
    async def test_list_filters(self, db):
        """Should filter by status and framework."""
        first = await _execution(db, framework="playwright")
        await _execution(db, framework="puppeteer")
        await ExecutionRepository.update_execution(db, first.id, status="passed")

        passed = await ExecutionRepository.list_executions(db, status="passed")
        puppeteer = await ExecutionRepository.list_executions(db, framework="puppeteer")

        assert [e.id for e in passed] == [first.id]
        assert len(puppeteer) == 1
        assert len(await ExecutionRepository.list_executions(db, limit=1)) == 1

    @pytest.mark.asyncio
    async def test_delete_cascades(self, db):
        """Should remove steps, artifacts and requirements with the execution."""
        execution = await _execution(db)
        await StepRepository.add_step(db, execution.id, {"instruction": "click", "success": True})
        await ArtifactRepository.add_artifact(db, execution.id, {
            "artifact_type": "screenshot",
            "file_path": "/tmp/shot.png"
        })
        await RequirementRepository.add_requirement(db, execution.id, {"requirement_id": "REQ-1"})

        assert await ExecutionRepository.delete_execution(db, execution.id) is True
        assert await ExecutionRepository.get_execution(db, execution.id) is None

        for model in (Step, Artifact, Requirement):
            count = await db.scalar(select(func.count()).select_from(model))
            assert count == 0

    @pytest.mark.asyncio
    async def test_statistics(self, db):
        """Should aggregate counts and durations overall and per framework."""
        passed = await _execution(db, framework="playwright")
        failed = await _execution(db, framework="playwright")
        await _execution(db, framework="puppeteer")
        await ExecutionRepository.update_execution(db, passed.id, status="passed", duration_ms=1000)
        await ExecutionRepository.update_execution(db, failed.id, status="failed", duration_ms=3000)

        stats = await ExecutionRepository.get_statistics(db)

        assert stats["overall"]["total_executions"] == 3
        assert stats["overall"]["passed_executions"] == 1
        assert stats["overall"]["failed_executions"] == 1
        assert stats["overall"]["avg_duration_ms"] == 2000
        assert stats["overall"]["max_duration_ms"] == 3000

        by_framework = {row["framework"]: row for row in stats["by_framework"]}
        assert by_framework["playwright"]["count"] == 2
        assert by_framework["playwright"]["passed"] == 1
        assert by_framework["puppeteer"]["count"] == 1

    @pytest.mark.asyncio
    async def test_statistics_empty(self, db):
        """Should return zero counts with no executions."""
        stats = await ExecutionRepository.get_statistics(db)

        assert stats["overall"]["total_executions"] == 0
        assert stats["overall"]["passed_executions"] == 0
        assert stats["by_framework"] == []


class TestStepRepository:
    """Tests for StepRepository."""

    @pytest.mark.asyncio
    async def test_assigns_next_number(self, db):
        """Should number steps consecutively when no number is given."""
        execution = await _execution(db)
        first = await StepRepository.add_step(db, execution.id, {"instruction": "one"})
        second = await StepRepository.add_step(db, execution.id, {"instruction": "two"})

        assert (first.step_number, second.step_number) == (1, 2)

    @pytest.mark.asyncio
    async def test_rejects_non_increasing_number(self, db):
        """Should refuse a step number that is not greater than the last."""
        execution = await _execution(db)
        await StepRepository.add_step(db, execution.id, {"step_number": 2, "instruction": "two"})

        with pytest.raises(ValueError):
            await StepRepository.add_step(db, execution.id, {"step_number": 2, "instruction": "again"})

    @pytest.mark.asyncio
    async def test_steps_ordered_with_metadata(self, db):
        """Should return steps by number with their metadata."""
        execution = await _execution(db)
        await StepRepository.add_step(db, execution.id, {
            "step_number": 1,
            "action_type": "navigate",
            "instruction": "interact with the current page",
            "metadata": {"navigatedUrl": "https://github.com"}
        })
        await StepRepository.add_step(db, execution.id, {"step_number": 3, "instruction": "click"})

        steps = await StepRepository.get_steps(db, execution.id)

        assert [s.step_number for s in steps] == [1, 3]
        assert steps[0].to_dict()["metadata"] == {"navigatedUrl": "https://github.com"}


class TestArtifactRepository:
    """Tests for ArtifactRepository."""

    @pytest.mark.asyncio
    async def test_rejects_unknown_type(self, db):
        """Should refuse unsupported artifact types."""
        execution = await _execution(db)

        with pytest.raises(ValueError):
            await ArtifactRepository.add_artifact(db, execution.id, {
                "artifact_type": "trace",
                "file_path": "/tmp/trace.zip"
            })

    @pytest.mark.asyncio
    async def test_filter_by_type(self, db):
        """Should filter artifacts by type and look them up by id."""
        execution = await _execution(db)
        shot = await ArtifactRepository.add_artifact(db, execution.id, {
            "id": "shot-1",
            "artifact_type": "screenshot",
            "file_path": "/tmp/a.png"
        })
        await ArtifactRepository.add_artifact(db, execution.id, {
            "artifact_type": "html_report",
            "file_path": "/tmp/report.html"
        })

        screenshots = await ArtifactRepository.get_artifacts(db, execution.id, artifact_type="screenshot")

        assert [a.id for a in screenshots] == ["shot-1"]
        assert (await ArtifactRepository.get_artifact(db, execution.id, shot.id)).file_path == "/tmp/a.png"
        assert await ArtifactRepository.get_artifact(db, "other", shot.id) is None


class TestRequirementRepository:
    """Tests for RequirementRepository."""

    @pytest.mark.asyncio
    async def test_default_coverage(self, db):
        """Should default coverage to covered."""
        execution = await _execution(db)
        requirement = await RequirementRepository.add_requirement(db, execution.id, {
            "requirement_id": "REQ-7",
            "requirement_name": "Checkout"
        })

        assert requirement.coverage_status == "covered"

    @pytest.mark.asyncio
    async def test_rejects_unknown_coverage(self, db):
        """Should refuse unknown coverage values."""
        execution = await _execution(db)

        with pytest.raises(ValueError):
            await RequirementRepository.add_requirement(db, execution.id, {
                "requirement_id": "REQ-7",
                "coverage_status": "mostly"
            })
