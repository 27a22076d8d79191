from fastapi import APIRouter, Depends

from frameperfect.dependencies import get_frame_store, get_history
from frameperfect.schemas.frame import (
    BatchEnhanceRequest,
    BatchEnhanceResponse,
    CategoriesRequest,
    EnhanceRequest,
    Frame,
)
from frameperfect.services.frame_store import FrameStore
from frameperfect.services.history import EnhancementHistoryManager

router = APIRouter(prefix="/api/v1", tags=["frames"])


@router.get("/frames/{frame_id}", response_model=Frame)
async def get_frame(
    frame_id: str,
    store: FrameStore = Depends(get_frame_store),
) -> Frame:
    return store.get(frame_id)


@router.patch("/frames/{frame_id}/keeper", response_model=Frame)
async def toggle_keeper(
    frame_id: str,
    store: FrameStore = Depends(get_frame_store),
) -> Frame:
    """Flip the keeper flag."""
    return await store.toggle_keeper(frame_id)


@router.put("/frames/{frame_id}/categories", response_model=Frame)
async def set_categories(
    frame_id: str,
    body: CategoriesRequest,
    store: FrameStore = Depends(get_frame_store),
) -> Frame:
    return await store.set_categories(frame_id, body.categories)


@router.delete("/frames/{frame_id}")
async def delete_frame(
    frame_id: str,
    store: FrameStore = Depends(get_frame_store),
) -> dict:
    await store.delete(frame_id)
    return {"frame_id": frame_id, "deleted": True}


# -- enhancement -------------------------------------------------------------


@router.post("/frames/batch-enhance", response_model=BatchEnhanceResponse)
async def batch_enhance(
    body: BatchEnhanceRequest,
    history: EnhancementHistoryManager = Depends(get_history),
) -> BatchEnhanceResponse:
    """Enhance up to the batch limit of frames with the same styles, one by one."""
    results = await history.batch_enhance(body.frame_ids, body.styles)
    return BatchEnhanceResponse(results=results)


@router.post("/frames/{frame_id}/enhance", response_model=Frame)
async def enhance_frame(
    frame_id: str,
    body: EnhanceRequest,
    history: EnhancementHistoryManager = Depends(get_history),
) -> Frame:
    """Apply the selected styles on top of the frame's latest image."""
    return await history.enhance(frame_id, body.styles)


@router.post("/frames/{frame_id}/save-as-new", response_model=Frame, status_code=201)
async def save_as_new(
    frame_id: str,
    history: EnhancementHistoryManager = Depends(get_history),
) -> Frame:
    return await history.save_as_new(frame_id)
