"""
Artifact storage layout for automation executions.

Every execution owns a directory under ARTIFACTS_PATH:

    <ARTIFACTS_PATH>/<execution_id>/screenshots/<name>_<ms>.png
    <ARTIFACTS_PATH>/<execution_id>/reports/report_<execution_id>.html

Agent reports live in the AGENT_REPORT_DIRS directories instead.
"""

import logging
import time
from pathlib import Path
from typing import List, Optional

from app.utils.config import settings

logger = logging.getLogger(__name__)

MIME_TYPES = {
    '.html': 'text/html',
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.gif': 'image/gif',
    '.svg': 'image/svg+xml',
    '.pdf': 'application/pdf',
    '.json': 'application/json',
    '.txt': 'text/plain',
    '.log': 'text/plain',
    '.mp4': 'video/mp4',
    '.webm': 'video/webm',
}

STATIC_PREFIX = "/artifacts"


def get_mime_type(path: str) -> str:
    """Guess a MIME type from a file extension."""
    return MIME_TYPES.get(Path(path).suffix.lower(), 'application/octet-stream')


class ArtifactManager:
    """Builds and resolves artifact paths for executions."""

    def __init__(self, base_path: Optional[str] = None, agent_report_dirs: Optional[List[str]] = None):
        self.base_path = Path(base_path or settings.ARTIFACTS_PATH)
        self.agent_report_dirs = [Path(d) for d in (agent_report_dirs or settings.AGENT_REPORT_DIRS)]

    def ensure_base_path(self):
        """Ensure the base artifacts directory exists."""
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Artifacts base path: {self.base_path}")

    def get_execution_path(self, execution_id: str) -> Path:
        """Get the artifact directory for an execution."""
        return self.base_path / execution_id

    def screenshot_path(self, execution_id: str, name: str) -> Path:
        """Path for a new screenshot, stamped with the current time in ms."""
        directory = self.get_execution_path(execution_id) / 'screenshots'
        directory.mkdir(parents=True, exist_ok=True)
        return directory / f"{name}_{int(time.time() * 1000)}.png"

    def report_path(self, execution_id: str) -> Path:
        """Path of the static HTML report for an execution."""
        directory = self.get_execution_path(execution_id) / 'reports'
        directory.mkdir(parents=True, exist_ok=True)
        return directory / f"report_{execution_id}.html"

    def agent_report_path(self, report_id: str) -> Path:
        """Path the agent writes its own report to."""
        directory = self.agent_report_dirs[0]
        directory.mkdir(parents=True, exist_ok=True)
        return directory / f"agent-report_{report_id}.html"

    def find_agent_report(self, report_id: str) -> Optional[Path]:
        """Look for an agent report in every configured directory."""
        name = f"agent-report_{report_id}.html"
        for directory in self.agent_report_dirs:
            candidate = directory / name
            if candidate.is_file():
                return candidate
        return None

    def list_agent_reports(self) -> List[str]:
        """Names of all agent reports on disk."""
        names = []
        for directory in self.agent_report_dirs:
            if directory.is_dir():
                names.extend(sorted(p.name for p in directory.glob("agent-report_*.html")))
        return names

    def to_url(self, file_path: str) -> Optional[str]:
        """
        Map a file under the artifacts root to its static URL.

        Returns:
            URL under /artifacts, or None when the file lies elsewhere
        """
        try:
            relative = Path(file_path).resolve().relative_to(self.base_path.resolve())
        except ValueError:
            return None
        return f"{STATIC_PREFIX}/{relative.as_posix()}"

    def resolve(self, file_path: str) -> Optional[Path]:
        """Return the path if the recorded file still exists on disk."""
        path = Path(file_path)
        if not path.is_file():
            logger.warning(f"Artifact file missing on disk: {file_path}")
            return None
        return path


_artifact_manager: Optional[ArtifactManager] = None


def get_artifact_manager() -> ArtifactManager:
    """Get the global artifact manager."""
    global _artifact_manager
    if _artifact_manager is None:
        _artifact_manager = ArtifactManager()
    return _artifact_manager
