"""Database models for automation run results."""

from datetime import datetime
from typing import Any, Dict
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

EXECUTION_STATUSES = ("running", "passed", "failed", "error", "stopped")
TERMINAL_STATUSES = ("passed", "failed", "error", "stopped")
ARTIFACT_TYPES = ("screenshot", "html_report", "video", "log", "performance")
COVERAGE_STATUSES = ("covered", "partial", "not_covered")


def _in_clause(column: str, values) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


def _isoformat(value):
    return value.isoformat() if isinstance(value, datetime) else value


class Execution(Base):
    """One request to run a natural-language task."""
    __tablename__ = "test_executions"
    __table_args__ = (
        CheckConstraint(_in_clause("status", EXECUTION_STATUSES), name="ck_execution_status"),
    )

    id = Column(String(36), primary_key=True)
    test_name = Column(String(200), nullable=False)
    task_description = Column(Text, nullable=True)
    framework = Column(String(20), nullable=False, default="playwright", index=True)
    status = Column(String(20), nullable=False, index=True)

    # Timing
    duration_ms = Column(Integer, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    user_id = Column(String(100), nullable=True, index=True)
    browser_info = Column(JSON, nullable=True)  # launch options as requested
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    # Relationships (rows are removed by ON DELETE CASCADE in the database)
    steps = relationship(
        "Step", back_populates="execution",
        cascade="all, delete-orphan", passive_deletes=True,
        order_by="Step.step_number"
    )
    artifacts = relationship(
        "Artifact", back_populates="execution",
        cascade="all, delete-orphan", passive_deletes=True
    )
    requirements = relationship(
        "Requirement", back_populates="execution",
        cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def is_complete(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "test_name": self.test_name,
            "task_description": self.task_description,
            "framework": self.framework,
            "status": self.status,
            "duration_ms": self.duration_ms,
            "started_at": _isoformat(self.started_at),
            "completed_at": _isoformat(self.completed_at),
            "user_id": self.user_id,
            "browser_info": self.browser_info,
            "error_message": self.error_message,
            "created_at": _isoformat(self.created_at),
        }


class Step(Base):
    """One executed instruction within an execution."""
    __tablename__ = "test_steps"
    __table_args__ = (
        UniqueConstraint("execution_id", "step_number", name="uq_step_number"),
    )

    id = Column(String(36), primary_key=True)
    execution_id = Column(
        String(36), ForeignKey("test_executions.id", ondelete="CASCADE"),
        nullable=False, index=True
    )
    step_number = Column(Integer, nullable=False)
    action_type = Column(String(50), nullable=True)
    instruction = Column(Text, nullable=True)
    target_url = Column(String(2000), nullable=True)
    duration_ms = Column(Integer, nullable=True)
    success = Column(Boolean, nullable=False, default=False)
    error_message = Column(Text, nullable=True)
    screenshot_path = Column(String(1000), nullable=True)
    # "metadata" is reserved on declarative classes
    step_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    execution = relationship("Execution", back_populates="steps")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "execution_id": self.execution_id,
            "step_number": self.step_number,
            "action_type": self.action_type,
            "instruction": self.instruction,
            "target_url": self.target_url,
            "duration_ms": self.duration_ms,
            "success": bool(self.success),
            "error_message": self.error_message,
            "screenshot_path": self.screenshot_path,
            "metadata": self.step_metadata or {},
            "created_at": _isoformat(self.created_at),
        }


class Artifact(Base):
    """A file produced during an execution."""
    __tablename__ = "test_artifacts"
    __table_args__ = (
        CheckConstraint(_in_clause("artifact_type", ARTIFACT_TYPES), name="ck_artifact_type"),
    )

    id = Column(String(36), primary_key=True)
    execution_id = Column(
        String(36), ForeignKey("test_executions.id", ondelete="CASCADE"),
        nullable=False, index=True
    )
    artifact_type = Column(String(20), nullable=False)
    file_path = Column(String(1000), nullable=False)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String(100), nullable=True)
    description = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    execution = relationship("Execution", back_populates="artifacts")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "execution_id": self.execution_id,
            "artifact_type": self.artifact_type,
            "file_path": self.file_path,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "description": self.description,
            "created_at": _isoformat(self.created_at),
        }


class Requirement(Base):
    """Traceability link between an execution and a product requirement."""
    __tablename__ = "test_requirements"
    __table_args__ = (
        CheckConstraint(_in_clause("coverage_status", COVERAGE_STATUSES), name="ck_coverage_status"),
    )

    id = Column(String(36), primary_key=True)
    execution_id = Column(
        String(36), ForeignKey("test_executions.id", ondelete="CASCADE"),
        nullable=False, index=True
    )
    requirement_id = Column(String(100), nullable=False)
    requirement_name = Column(String(500), nullable=True)
    coverage_status = Column(String(20), nullable=False, default="covered")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    execution = relationship("Execution", back_populates="requirements")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "execution_id": self.execution_id,
            "requirement_id": self.requirement_id,
            "requirement_name": self.requirement_name,
            "coverage_status": self.coverage_status,
            "created_at": _isoformat(self.created_at),
        }
