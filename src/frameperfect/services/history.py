"""Per-frame enhancement history and "save as new" flattening.

Enhancements always chain on the latest visible image: the first one consumes
the original, each later one consumes the previous output. Every applied edit
is recorded as an immutable ``EnhancementRecord``; the frame's
``enhanced_image`` is simply the output of the last record. A frame's history
never branches. ``save_as_new`` starts a fresh lineage by copying the current
enhanced image into a brand-new frame.

Author: afu
"""

import logging
from collections.abc import Iterable

from frameperfect.exceptions import (
    BatchSizeExceededError,
    FrameNotEnhancedError,
    NoStyleSelectedError,
)
from frameperfect.schemas.frame import (
    BatchEnhanceResult,
    EnhancementRecord,
    EnhancementStyle,
    Frame,
    new_id,
    now_ms,
)
from frameperfect.services.enhancement import EnhancementClient, normalize_styles
from frameperfect.services.frame_store import FrameStore
from frameperfect.utils.types import ProgressCallback

logger = logging.getLogger(__name__)


class EnhancementHistoryManager:
    def __init__(
        self,
        store: FrameStore,
        client: EnhancementClient,
        max_batch_size: int = 10,
    ) -> None:
        self._store = store
        self._client = client
        self._max_batch_size = max_batch_size

    async def enhance(
        self, frame_id: str, styles: Iterable[EnhancementStyle | str]
    ) -> Frame:
        """Apply one enhancement to a frame and append it to the history.

        On failure the processing flag is cleared, the error is re-raised and
        every other field keeps its last good value.
        """
        selected = normalize_styles(styles)
        if not selected:
            raise NoStyleSelectedError("Select at least one enhancement style")

        frame = await self._store.begin_processing(frame_id)
        input_image = frame.display_image
        try:
            output_image = await self._client.enhance(input_image, selected)
        except BaseException:
            await self._store.end_processing(frame_id)
            raise

        record = EnhancementRecord(
            styles=selected,
            input_image=input_image,
            output_image=output_image,
        )

        def _apply(current: Frame) -> dict:
            applied = list(current.applied_enhancements)
            applied.extend(s for s in selected if s not in applied)
            return {
                "enhanced_image": output_image,
                "is_enhanced": True,
                "is_processing": False,
                "enhancement_history": [*current.enhancement_history, record],
                "applied_enhancements": applied,
            }

        try:
            updated = await self._store.mutate(frame_id, _apply)
        except BaseException:
            await self._store.end_processing(frame_id)
            raise
        logger.info(
            "Frame %s enhanced (%s), history length %d",
            frame_id,
            ",".join(selected),
            len(updated.enhancement_history),
        )
        return updated

    async def save_as_new(self, frame_id: str) -> Frame:
        """Flatten a frame's current enhancement into a new, independent frame.

        The history is not carried over; ``applied_enhancements`` and
        ``parent_frame_id`` keep the provenance. The source frame is unchanged.
        """
        source = self._store.get(frame_id)
        if not source.is_enhanced or not source.enhanced_image:
            raise FrameNotEnhancedError(f"Frame {frame_id} has no enhancement to save")

        new_frame = source.model_copy(
            update={
                "id": new_id(),
                "image": source.enhanced_image,
                "enhanced_image": None,
                "is_enhanced": False,
                "is_processing": False,
                "enhancement_history": [],
                "applied_enhancements": list(source.applied_enhancements),
                "categories": list(source.categories),
                "parent_frame_id": source.id,
                "is_saved_state": True,
                "created_at": now_ms(),
            }
        )
        await self._store.add(new_frame)
        logger.info("Frame %s saved as new frame %s", frame_id, new_frame.id)
        return new_frame

    async def batch_enhance(
        self,
        frame_ids: list[str],
        styles: Iterable[EnhancementStyle | str],
        on_progress: ProgressCallback | None = None,
    ) -> list[BatchEnhanceResult]:
        """Enhance frames one after another with the same style selection.

        A failing frame is reported in its result and does not stop the batch.
        """
        if len(frame_ids) > self._max_batch_size:
            raise BatchSizeExceededError(
                f"Batch of {len(frame_ids)} frames exceeds the maximum of {self._max_batch_size}"
            )
        selected = normalize_styles(styles)
        if not selected:
            raise NoStyleSelectedError("Select at least one enhancement style")

        results: list[BatchEnhanceResult] = []
        total = len(frame_ids)
        for i, frame_id in enumerate(frame_ids):
            try:
                await self.enhance(frame_id, selected)
                results.append(BatchEnhanceResult(frame_id=frame_id, ok=True))
            except Exception as e:
                logger.warning("Batch enhancement of frame %s failed: %s", frame_id, e)
                results.append(
                    BatchEnhanceResult(frame_id=frame_id, ok=False, error=str(e) or type(e).__name__)
                )
            if on_progress:
                on_progress(i + 1, total)

        succeeded = sum(1 for r in results if r.ok)
        logger.info("Batch enhancement finished: %d/%d succeeded", succeeded, total)
        return results
