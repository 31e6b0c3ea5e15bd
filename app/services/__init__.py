"""Services for the Automation API."""

from app.services.artifact_manager import ArtifactManager, get_artifact_manager
from app.services.automation_service import AutomationService
from app.services.broadcaster import AutomationBroadcaster, get_broadcaster
from app.services.execution_manager import (
    ExecutionError,
    ExecutionLimitError,
    ExecutionManager,
    ExecutionNotFoundError,
    ExecutionStartError,
    ExecutionStateError,
)
from app.services.page_agent import AgentActionError, PageAgent
from app.services.rate_limiter import RateLimiter
from app.services.report_branding import ReportBranding
from app.services.report_generator import ReportGenerator, get_report_generator

__all__ = [
    'ArtifactManager',
    'get_artifact_manager',
    'AutomationService',
    'AutomationBroadcaster',
    'get_broadcaster',
    'ExecutionError',
    'ExecutionLimitError',
    'ExecutionManager',
    'ExecutionNotFoundError',
    'ExecutionStartError',
    'ExecutionStateError',
    'AgentActionError',
    'PageAgent',
    'RateLimiter',
    'ReportBranding',
    'ReportGenerator',
    'get_report_generator',
]
