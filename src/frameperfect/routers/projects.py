from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from frameperfect.config import settings
from frameperfect.dependencies import get_registry
from frameperfect.exceptions import FramePerfectError
from frameperfect.schemas.frame import Frame, FrameSummary
from frameperfect.schemas.pipeline import PipelineStatusResponse
from frameperfect.schemas.project import (
    Project,
    ProjectResponse,
    ProjectUpdateRequest,
    ScanRange,
)
from frameperfect.services.projects import ProjectRegistry
from frameperfect.services.sampler import estimate_frame_count
from frameperfect.services.session import ScanSession

_VIDEO_EXTENSIONS = {
    e.strip().lower()
    for e in settings.video_extensions.split(",")
    if e.strip()
}

router = APIRouter(prefix="/api/v1", tags=["projects"])


def _project_response(project: Project) -> ProjectResponse:
    return ProjectResponse(
        project=project,
        estimated_frames=estimate_frame_count(project.duration, project.scan_interval),
    )


def _status_response(session: ScanSession) -> PipelineStatusResponse:
    return PipelineStatusResponse(
        project_id=session.project.id,
        status=session.status,
        notifications=list(session.notifications),
    )


@router.post("/projects", response_model=ProjectResponse, status_code=201)
async def create_project(
    file: UploadFile = File(...),
    name: str = Form(default=""),
    frame_naming_template: str | None = Form(default=None),
    scan_range: ScanRange | None = Form(default=None),
    scan_interval: float | None = Form(default=None, gt=0),
    registry: ProjectRegistry = Depends(get_registry),
) -> ProjectResponse:
    """Upload a video and create a project bound to it."""
    filename = file.filename or "upload.bin"
    if Path(filename).suffix.lower() not in _VIDEO_EXTENSIONS:
        raise HTTPException(status_code=415, detail="Unsupported video format")

    content = await file.read()
    if len(content) > settings.max_upload_size_bytes:
        raise HTTPException(status_code=413, detail="File too large")

    media_path = await registry.save_media(filename, content)
    try:
        session = await registry.create_project(
            name or Path(filename).stem,
            media_path,
            frame_naming_template=frame_naming_template,
            scan_range=scan_range,
            scan_interval=scan_interval,
        )
    except FramePerfectError:
        media_path.unlink(missing_ok=True)
        raise
    return _project_response(session.project)


@router.get("/projects", response_model=list[Project])
async def list_projects(
    registry: ProjectRegistry = Depends(get_registry),
) -> list[Project]:
    return registry.list_projects()


@router.get("/projects/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: str,
    registry: ProjectRegistry = Depends(get_registry),
) -> ProjectResponse:
    return _project_response(registry.get(project_id).project)


@router.patch("/projects/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str,
    body: ProjectUpdateRequest,
    registry: ProjectRegistry = Depends(get_registry),
) -> ProjectResponse:
    """Change the scan range and/or interval of an idle project."""
    project = await registry.update_scan_settings(
        project_id, scan_range=body.scan_range, scan_interval=body.scan_interval
    )
    return _project_response(project)


@router.delete("/projects/{project_id}")
async def delete_project(
    project_id: str,
    registry: ProjectRegistry = Depends(get_registry),
) -> dict:
    removed = await registry.delete_project(project_id)
    return {"project_id": project_id, "deleted_frames": removed}


# -- scan control ------------------------------------------------------------


@router.post("/projects/{project_id}/scan", response_model=PipelineStatusResponse, status_code=202)
async def start_scan(
    project_id: str,
    registry: ProjectRegistry = Depends(get_registry),
) -> PipelineStatusResponse:
    """Start a background scan; poll ``/status`` for progress."""
    registry.start_scan(project_id)
    return _status_response(registry.get(project_id))


@router.post("/projects/{project_id}/reset", response_model=PipelineStatusResponse)
async def reset_scan(
    project_id: str,
    registry: ProjectRegistry = Depends(get_registry),
) -> PipelineStatusResponse:
    """Return the pipeline to idle; a running scan's late results are dropped."""
    return _status_response(await registry.reset_scan(project_id))


@router.get("/projects/{project_id}/status", response_model=PipelineStatusResponse)
async def get_scan_status(
    project_id: str,
    registry: ProjectRegistry = Depends(get_registry),
) -> PipelineStatusResponse:
    return _status_response(registry.get(project_id))


# -- frames of a project -----------------------------------------------------


@router.get("/projects/{project_id}/frames", response_model=list[Frame])
async def list_frames(
    project_id: str,
    registry: ProjectRegistry = Depends(get_registry),
) -> list[Frame]:
    registry.get(project_id)
    return registry.frame_store.list_frames(project_id)


@router.get("/projects/{project_id}/frames/summary", response_model=list[FrameSummary])
async def list_frame_summaries(
    project_id: str,
    registry: ProjectRegistry = Depends(get_registry),
) -> list[FrameSummary]:
    """Frames without image payloads."""
    registry.get(project_id)
    return [FrameSummary.from_frame(f) for f in registry.frame_store.list_frames(project_id)]
