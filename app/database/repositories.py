"""Database repositories for CRUD operations on automation results."""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import case, delete, desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.database import (
    ARTIFACT_TYPES,
    COVERAGE_STATUSES,
    EXECUTION_STATUSES,
    Artifact,
    Execution,
    Requirement,
    Step,
)

logger = logging.getLogger(__name__)

UPDATABLE_EXECUTION_FIELDS = {"status", "completed_at", "duration_ms", "error_message"}


def _new_id() -> str:
    return str(uuid.uuid4())


class ExecutionRepository:
    """Repository for Execution operations."""

    @staticmethod
    async def create_execution(
        db: AsyncSession,
        task_description: str,
        framework: str,
        execution_id: Optional[str] = None,
        status: str = "running",
        **kwargs
    ) -> Execution:
        """Create a new execution."""
        test_name = f"Automation: {task_description[:50]}"
        if len(task_description) > 50:
            test_name += "..."

        execution = Execution(
            id=execution_id or _new_id(),
            test_name=kwargs.pop("test_name", test_name),
            task_description=task_description,
            framework=framework,
            status=status,
            started_at=kwargs.pop("started_at", datetime.utcnow()),
            **kwargs
        )
        db.add(execution)
        await db.commit()
        await db.refresh(execution)
        logger.info(f"Created execution: {execution.id}")
        return execution

    @staticmethod
    async def get_execution(db: AsyncSession, execution_id: str) -> Optional[Execution]:
        """Get execution by ID."""
        result = await db.execute(select(Execution).where(Execution.id == execution_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_executions(
        db: AsyncSession,
        status: Optional[str] = None,
        framework: Optional[str] = None,
        user_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = 50
    ) -> List[Execution]:
        """List executions with optional filters, newest first."""
        query = select(Execution).order_by(desc(Execution.created_at))

        if status:
            query = query.where(Execution.status == status)
        if framework:
            query = query.where(Execution.framework == framework)
        if user_id:
            query = query.where(Execution.user_id == user_id)
        if start_date:
            query = query.where(Execution.created_at >= start_date)
        if end_date:
            query = query.where(Execution.created_at <= end_date)
        if limit:
            query = query.limit(limit)

        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def update_execution(db: AsyncSession, execution_id: str, **updates) -> bool:
        """
        Update execution fields.

        Status only moves forward: a status change is applied while the
        stored status is still ``running`` and ignored afterwards.

        Returns:
            True if a row was updated
        """
        values = {k: v for k, v in updates.items() if k in UPDATABLE_EXECUTION_FIELDS}
        if not values:
            return False

        query = update(Execution).where(Execution.id == execution_id)

        if "status" in values:
            new_status = values["status"]
            if new_status not in EXECUTION_STATUSES or new_status == "running":
                raise ValueError(f"Invalid status transition to '{new_status}'")
            query = query.where(Execution.status == "running")

        result = await db.execute(query.values(**values))
        await db.commit()

        updated = result.rowcount > 0
        if updated:
            logger.info(f"Updated execution: {execution_id} {sorted(values)}")
        else:
            logger.debug(f"Execution {execution_id} not updated (missing or already finished)")
        return updated

    @staticmethod
    async def fail_running_executions(db: AsyncSession, error_message: str) -> int:
        """
        Mark every execution still in ``running`` as ``error``.

        Used at startup: no run survives a restart.

        Returns:
            Number of executions marked
        """
        result = await db.execute(
            update(Execution)
            .where(Execution.status == "running")
            .values(status="error", completed_at=datetime.utcnow(), error_message=error_message)
        )
        await db.commit()
        if result.rowcount:
            logger.warning(f"Marked {result.rowcount} interrupted executions as error")
        return result.rowcount

    @staticmethod
    async def delete_execution(db: AsyncSession, execution_id: str) -> bool:
        """Delete an execution; steps, artifacts and requirements cascade."""
        result = await db.execute(delete(Execution).where(Execution.id == execution_id))
        await db.commit()
        deleted = result.rowcount > 0
        if deleted:
            logger.info(f"Deleted execution: {execution_id}")
        return deleted

    @staticmethod
    async def get_statistics(
        db: AsyncSession,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        framework: Optional[str] = None
    ) -> Dict[str, Any]:
        """Aggregate pass/fail counts and durations, overall and per framework."""
        conditions = []
        if start_date:
            conditions.append(Execution.created_at >= start_date)
        if end_date:
            conditions.append(Execution.created_at <= end_date)
        if framework:
            conditions.append(Execution.framework == framework)

        def count_status(status: str):
            return func.coalesce(func.sum(case((Execution.status == status, 1), else_=0)), 0)

        overall_query = select(
            func.count(Execution.id).label("total_executions"),
            count_status("passed").label("passed_executions"),
            count_status("failed").label("failed_executions"),
            count_status("error").label("error_executions"),
            count_status("stopped").label("stopped_executions"),
            func.avg(Execution.duration_ms).label("avg_duration_ms"),
            func.min(Execution.duration_ms).label("min_duration_ms"),
            func.max(Execution.duration_ms).label("max_duration_ms"),
        ).where(*conditions)

        overall = (await db.execute(overall_query)).mappings().one()

        framework_query = (
            select(
                Execution.framework.label("framework"),
                func.count(Execution.id).label("count"),
                count_status("passed").label("passed"),
                func.avg(Execution.duration_ms).label("avg_duration"),
            )
            .where(*conditions)
            .group_by(Execution.framework)
            .order_by(Execution.framework)
        )
        by_framework = (await db.execute(framework_query)).mappings().all()

        return {
            "overall": dict(overall),
            "by_framework": [dict(row) for row in by_framework],
        }


class StepRepository:
    """Repository for Step operations."""

    @staticmethod
    async def add_step(db: AsyncSession, execution_id: str, step_data: Dict[str, Any]) -> Step:
        """
        Add a step to an execution.

        Step numbers must be strictly increasing within an execution; a
        missing number is assigned as the next one.
        """
        current_max = await db.scalar(
            select(func.max(Step.step_number)).where(Step.execution_id == execution_id)
        )
        step_number = step_data.get("step_number")
        if step_number is None:
            step_number = (current_max or 0) + 1
        elif current_max is not None and step_number <= current_max:
            raise ValueError(
                f"Step number {step_number} must be greater than {current_max} "
                f"for execution {execution_id}"
            )

        step = Step(
            id=step_data.get("id") or _new_id(),
            execution_id=execution_id,
            step_number=step_number,
            action_type=step_data.get("action_type"),
            instruction=step_data.get("instruction"),
            target_url=step_data.get("target_url"),
            duration_ms=step_data.get("duration_ms"),
            success=bool(step_data.get("success", False)),
            error_message=step_data.get("error_message"),
            screenshot_path=step_data.get("screenshot_path"),
            step_metadata=step_data.get("metadata") or {},
        )
        db.add(step)
        await db.commit()
        await db.refresh(step)
        return step

    @staticmethod
    async def get_steps(db: AsyncSession, execution_id: str) -> List[Step]:
        """Get all steps for an execution in step order."""
        result = await db.execute(
            select(Step)
            .where(Step.execution_id == execution_id)
            .order_by(Step.step_number)
        )
        return list(result.scalars().all())


class ArtifactRepository:
    """Repository for Artifact operations."""

    @staticmethod
    async def add_artifact(db: AsyncSession, execution_id: str, artifact_data: Dict[str, Any]) -> Artifact:
        """Record a file produced by an execution."""
        artifact_type = artifact_data.get("artifact_type")
        if artifact_type not in ARTIFACT_TYPES:
            raise ValueError(f"Unsupported artifact type: {artifact_type}")

        artifact = Artifact(
            id=artifact_data.get("id") or _new_id(),
            execution_id=execution_id,
            artifact_type=artifact_type,
            file_path=artifact_data["file_path"],
            file_size=artifact_data.get("file_size"),
            mime_type=artifact_data.get("mime_type"),
            description=artifact_data.get("description"),
        )
        db.add(artifact)
        await db.commit()
        await db.refresh(artifact)
        return artifact

    @staticmethod
    async def get_artifacts(
        db: AsyncSession,
        execution_id: str,
        artifact_type: Optional[str] = None
    ) -> List[Artifact]:
        """Get artifacts for an execution in creation order."""
        query = select(Artifact).where(Artifact.execution_id == execution_id)
        if artifact_type:
            query = query.where(Artifact.artifact_type == artifact_type)
        result = await db.execute(query.order_by(Artifact.created_at))
        return list(result.scalars().all())

    @staticmethod
    async def get_artifact(db: AsyncSession, execution_id: str, artifact_id: str) -> Optional[Artifact]:
        """Get a single artifact belonging to an execution."""
        result = await db.execute(
            select(Artifact).where(
                Artifact.execution_id == execution_id,
                Artifact.id == artifact_id
            )
        )
        return result.scalar_one_or_none()


class RequirementRepository:
    """Repository for Requirement operations."""

    @staticmethod
    async def add_requirement(
        db: AsyncSession,
        execution_id: str,
        requirement_data: Dict[str, Any]
    ) -> Requirement:
        """Link an execution to a requirement."""
        coverage_status = requirement_data.get("coverage_status") or "covered"
        if coverage_status not in COVERAGE_STATUSES:
            raise ValueError(f"Unsupported coverage status: {coverage_status}")

        requirement = Requirement(
            id=_new_id(),
            execution_id=execution_id,
            requirement_id=requirement_data["requirement_id"],
            requirement_name=requirement_data.get("requirement_name"),
            coverage_status=coverage_status,
        )
        db.add(requirement)
        await db.commit()
        await db.refresh(requirement)
        return requirement

    @staticmethod
    async def get_requirements(db: AsyncSession, execution_id: str) -> List[Requirement]:
        """Get requirement mappings for an execution."""
        result = await db.execute(
            select(Requirement)
            .where(Requirement.execution_id == execution_id)
            .order_by(Requirement.created_at)
        )
        return list(result.scalars().all())
