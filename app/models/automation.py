"""Models for automation requests and results."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator


class Framework(str, Enum):
    """Browser automation frameworks a task can run on."""
    PLAYWRIGHT = "playwright"
    PUPPETEER = "puppeteer"


class Viewport(BaseModel):
    """Browser viewport size."""
    width: int = Field(1280, ge=200, le=7680)
    height: int = Field(720, ge=200, le=4320)


class AutomationOptions(BaseModel):
    """Browser launch options; unset fields fall back to settings."""
    headless: Optional[bool] = Field(None, description="Run without a visible window")
    viewport: Optional[Viewport] = Field(None, description="Viewport size")
    timeout: Optional[int] = Field(
        None,
        ge=1000,
        le=600000,
        description="Default action timeout in milliseconds"
    )
    slow_mo: Optional[int] = Field(
        None,
        alias="slowMo",
        ge=0,
        le=10000,
        description="Delay between browser operations in milliseconds"
    )
    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        "chromium",
        alias="browserType",
        description="Playwright engine; puppeteer always uses chromium"
    )

    class Config:
        populate_by_name = True

    def to_wire(self) -> Dict[str, Any]:
        """Options as the client sent them, camelCase and without unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class RequirementInput(BaseModel):
    """Requirement covered by an automation run."""
    requirement_id: str = Field(..., alias="requirementId", min_length=1, max_length=100)
    requirement_name: Optional[str] = Field(None, alias="requirementName", max_length=500)
    coverage_status: Literal["covered", "partial", "not_covered"] = Field(
        "covered",
        alias="coverageStatus"
    )

    class Config:
        populate_by_name = True


class RunAutomationRequest(BaseModel):
    """Request to run a natural-language task in a browser."""
    task: str = Field(
        ...,
        description="Natural-language task, e.g. 'go to amazon and buy a toaster'",
        max_length=10000
    )
    framework: Framework = Field(Framework.PLAYWRIGHT, description="Automation framework")
    options: AutomationOptions = Field(default_factory=AutomationOptions)
    requirements: List[RequirementInput] = Field(default_factory=list)
    user_id: Optional[str] = Field(None, alias="userId", max_length=100)

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "task": "navigate to github and search for fastapi",
                "framework": "playwright",
                "options": {"headless": True, "viewport": {"width": 1280, "height": 720}},
                "requirements": [{"requirementId": "REQ-12", "requirementName": "Search"}]
            }
        }

    @field_validator("task", mode="before")
    @classmethod
    def task_must_be_text(cls, value):
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Task description is required and must be a string")
        return value


class StepRecord(BaseModel):
    """One executed instruction, as tracked during a run."""
    step_number: int
    action_type: str = "aiAction"
    instruction: str
    target_url: Optional[str] = None
    duration_ms: Optional[int] = None
    success: bool = False
    error_message: Optional[str] = None
    screenshot_path: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    started_at: datetime = Field(default_factory=datetime.utcnow)


class ArtifactRecord(BaseModel):
    """A file written during a run."""
    id: str
    artifact_type: str
    file_path: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    description: Optional[str] = None


class AutomationResult(BaseModel):
    """Outcome of AutomationService.run_task."""
    success: bool
    steps: List[StepRecord] = Field(default_factory=list)
    artifacts: List[ArtifactRecord] = Field(default_factory=list)
    report_url: Optional[str] = None
    error: Optional[str] = None
    duration_ms: int = 0
    result: Optional[str] = None
