import asyncio
import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from frameperfect.dependencies import get_frame_store, get_registry, get_suggester
from frameperfect.schemas.frame import CategorySuggestionResponse, Frame
from frameperfect.services.categories import CategorySuggester
from frameperfect.services.exporter import (
    LibraryView,
    archive_filename,
    export_library,
    filter_library,
)
from frameperfect.services.frame_store import FrameStore
from frameperfect.services.projects import ProjectRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["library"])


@router.get("/library", response_model=list[Frame])
async def get_library(
    filter: LibraryView = Query(default=LibraryView.ALL),
    store: FrameStore = Depends(get_frame_store),
) -> list[Frame]:
    """Keeper frames across all projects, newest first."""
    keepers = await store.all_keepers()
    keepers.sort(key=lambda f: f.created_at, reverse=True)
    return filter_library(keepers, filter)


@router.post(
    "/projects/{project_id}/categories/suggest",
    response_model=CategorySuggestionResponse,
)
async def suggest_categories(
    project_id: str,
    registry: ProjectRegistry = Depends(get_registry),
    suggester: CategorySuggester = Depends(get_suggester),
) -> CategorySuggestionResponse:
    """Suggest library categories from the project's keepers.

    Suggestions are merged into the project's category list.
    """
    session = registry.get(project_id)
    suggestions = await suggester.suggest(registry.frame_store.keepers(project_id))
    if suggestions:
        await registry.set_categories(
            project_id, [*session.project.categories, *suggestions]
        )
    return CategorySuggestionResponse(suggestions=suggestions)


@router.get("/projects/{project_id}/export")
async def export_project_library(
    project_id: str,
    registry: ProjectRegistry = Depends(get_registry),
) -> Response:
    """Download the project's keepers as a ZIP with a ``manifest.json``."""
    session = registry.get(project_id)
    frames = registry.frame_store.list_frames(project_id)
    archive = await asyncio.to_thread(export_library, session.project.name, frames)
    filename = archive_filename(session.project.name)
    session.notify("success", f"Exported library as {filename}")
    return Response(
        content=archive,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/health")
async def health(registry: ProjectRegistry = Depends(get_registry)) -> dict:
    return {"status": "ok", "projects": len(registry.list_projects())}
