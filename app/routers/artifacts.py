"""Artifact serving endpoints."""

import logging
from pathlib import Path
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.connection import get_db
from app.database.repositories import ArtifactRepository, ExecutionRepository
from app.models.database import ARTIFACT_TYPES
from app.services.artifact_manager import ArtifactManager, get_mime_type

logger = logging.getLogger(__name__)
router = APIRouter()

REPORT_HEADERS = {
    "Cache-Control": "public, max-age=3600",
    "X-Frame-Options": "SAMEORIGIN",
    "Content-Security-Policy": "frame-ancestors 'self' http://localhost:* https://localhost:*",
}

SCREENSHOT_HEADERS = {"Cache-Control": "public, max-age=86400"}


def get_artifact_manager(request: Request) -> ArtifactManager:
    """Get or create ArtifactManager instance."""
    if not hasattr(request.app.state, 'artifact_manager'):
        request.app.state.artifact_manager = ArtifactManager()
    return request.app.state.artifact_manager


async def _require_execution(db: AsyncSession, execution_id: str, **context):
    execution = await ExecutionRepository.get_execution(db, execution_id)
    if not execution:
        raise HTTPException(
            status_code=404,
            detail={"error": "Execution not found", "executionId": execution_id, **context}
        )
    return execution


def _require_file(manager: ArtifactManager, artifact, execution_id: str) -> Path:
    path = manager.resolve(artifact.file_path)
    if path is None:
        raise HTTPException(
            status_code=404,
            detail={
                "error": "Artifact file not found on disk",
                "executionId": execution_id,
                "artifactType": artifact.artifact_type,
                "filePath": artifact.file_path
            }
        )
    return path


@router.get("/{execution_id}/debug")
async def debug_artifacts(execution_id: str, db: AsyncSession = Depends(get_db)):
    """Raw artifact listing for troubleshooting."""
    execution = await ExecutionRepository.get_execution(db, execution_id)
    artifacts = await ArtifactRepository.get_artifacts(db, execution_id)
    report = next((a for a in artifacts if a.artifact_type == "html_report"), None)
    return {
        "executionId": execution_id,
        "executionExists": execution is not None,
        "artifactCount": len(artifacts),
        "artifacts": [
            {"id": a.id, "type": a.artifact_type, "path": a.file_path}
            for a in artifacts
        ],
        "reportArtifact": report.to_dict() if report else None
    }


@router.get("/{execution_id}/report")
async def get_report(request: Request, execution_id: str, db: AsyncSession = Depends(get_db)):
    """Serve the execution HTML report, embeddable in same-origin frames."""
    await _require_execution(db, execution_id, artifactType="html_report")
    manager = get_artifact_manager(request)

    reports = await ArtifactRepository.get_artifacts(db, execution_id, artifact_type="html_report")
    if not reports:
        artifacts = await ArtifactRepository.get_artifacts(db, execution_id)
        raise HTTPException(
            status_code=404,
            detail={
                "error": "HTML report not found",
                "executionId": execution_id,
                "availableArtifacts": [a.artifact_type for a in artifacts]
            }
        )

    path = _require_file(manager, reports[0], execution_id)
    return FileResponse(path, media_type="text/html; charset=utf-8", headers=REPORT_HEADERS)


@router.get("/{execution_id}/agent-report")
async def get_agent_report(request: Request, execution_id: str, db: AsyncSession = Depends(get_db)):
    """Serve the branded agent report for an execution."""
    await _require_execution(db, execution_id, artifactType="agent_report")
    manager = get_artifact_manager(request)

    path = manager.find_agent_report(execution_id)
    if path is None:
        raise HTTPException(
            status_code=404,
            detail={
                "error": "Agent report not found",
                "executionId": execution_id,
                "availableReports": manager.list_agent_reports()
            }
        )
    return FileResponse(path, media_type="text/html; charset=utf-8", headers=REPORT_HEADERS)


@router.get("/{execution_id}/screenshots")
async def list_screenshots(request: Request, execution_id: str, db: AsyncSession = Depends(get_db)):
    """List screenshots with inline and download links."""
    await _require_execution(db, execution_id, artifactType="screenshot")
    manager = get_artifact_manager(request)

    screenshots = await ArtifactRepository.get_artifacts(db, execution_id, artifact_type="screenshot")
    items = [
        {
            "id": s.id,
            "description": s.description,
            "url": f"/api/artifacts/{execution_id}/screenshots/{s.id}",
            "downloadUrl": f"/api/artifacts/{execution_id}/screenshots/{s.id}?download=true",
            "staticUrl": manager.to_url(s.file_path),
            "createdAt": s.created_at.isoformat() if s.created_at else None
        }
        for s in screenshots
    ]
    return {
        "success": True,
        "screenshots": items,
        "count": len(items),
        "executionId": execution_id
    }


@router.get("/{execution_id}/screenshots/{screenshot_id}")
async def get_screenshot(
    request: Request,
    execution_id: str,
    screenshot_id: str,
    download: bool = False,
    db: AsyncSession = Depends(get_db)
):
    await _require_execution(db, execution_id, screenshotId=screenshot_id)
    manager = get_artifact_manager(request)

    screenshot = await ArtifactRepository.get_artifact(db, execution_id, screenshot_id)
    if screenshot is None or screenshot.artifact_type != "screenshot":
        raise HTTPException(
            status_code=404,
            detail={
                "error": "Screenshot not found",
                "executionId": execution_id,
                "screenshotId": screenshot_id
            }
        )

    path = _require_file(manager, screenshot, execution_id)
    return FileResponse(
        path,
        media_type="image/png",
        filename=path.name,
        content_disposition_type="attachment" if download else "inline",
        headers=SCREENSHOT_HEADERS
    )


async def _find_typed_artifact(db: AsyncSession, execution_id: str, artifact_type: str):
    await _require_execution(db, execution_id, artifactType=artifact_type)

    if artifact_type not in ARTIFACT_TYPES:
        raise HTTPException(
            status_code=404,
            detail={
                "error": "Unknown artifact type",
                "executionId": execution_id,
                "artifactType": artifact_type,
                "supportedTypes": list(ARTIFACT_TYPES)
            }
        )

    artifacts = await ArtifactRepository.get_artifacts(db, execution_id, artifact_type=artifact_type)
    if not artifacts:
        raise HTTPException(
            status_code=404,
            detail={
                "error": "Artifact not found",
                "executionId": execution_id,
                "artifactType": artifact_type
            }
        )
    # Newest artifact of the type wins
    return artifacts[-1]


@router.get("/{execution_id}/{artifact_type}/download")
async def download_artifact(
    request: Request,
    execution_id: str,
    artifact_type: str,
    db: AsyncSession = Depends(get_db)
):
    """Download an artifact as an attachment."""
    artifact = await _find_typed_artifact(db, execution_id, artifact_type)
    path = _require_file(get_artifact_manager(request), artifact, execution_id)

    logger.info(f"Serving download: {path}")
    return FileResponse(
        path,
        media_type="application/octet-stream",
        filename=f"{artifact_type}_{execution_id}{path.suffix}"
    )


@router.get("/{execution_id}/{artifact_type}")
async def get_artifact(
    request: Request,
    execution_id: str,
    artifact_type: str,
    db: AsyncSession = Depends(get_db)
):
    """Serve the latest artifact of a type inline."""
    artifact = await _find_typed_artifact(db, execution_id, artifact_type)
    path = _require_file(get_artifact_manager(request), artifact, execution_id)

    return FileResponse(
        path,
        media_type=artifact.mime_type or get_mime_type(str(path)),
        filename=f"{artifact_type}{path.suffix}",
        content_disposition_type="inline"
    )
