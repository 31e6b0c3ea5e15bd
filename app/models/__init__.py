"""Data models for the Automation API."""

from app.models.automation import (
    ArtifactRecord,
    AutomationOptions,
    AutomationResult,
    Framework,
    RequirementInput,
    RunAutomationRequest,
    StepRecord,
    Viewport,
)
from app.models.database import (
    Artifact,
    Base,
    Execution,
    Requirement,
    Step,
)

__all__ = [
    'ArtifactRecord',
    'AutomationOptions',
    'AutomationResult',
    'Framework',
    'RequirementInput',
    'RunAutomationRequest',
    'StepRecord',
    'Viewport',
    'Artifact',
    'Base',
    'Execution',
    'Requirement',
    'Step',
]
