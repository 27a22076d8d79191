"""Stage: Frame sampling.

Computes the sample timestamps for the project's scan range and interval,
grabs one still per timestamp and adds each successful grab to the frame
store. A timestamp that cannot be decoded is logged and skipped; the rest
of the scan continues.

Author: afu
"""

import logging

from frameperfect.exceptions import MediaSeekError
from frameperfect.schemas.frame import Frame
from frameperfect.schemas.pipeline import PipelineStage
from frameperfect.services.frame_grabber import FrameGrabber
from frameperfect.services.frame_store import FrameStore
from frameperfect.services.pipeline.base import ScanContext
from frameperfect.services.sampler import format_timestamp, sample_timestamps
from frameperfect.utils.types import ProgressCallback

logger = logging.getLogger(__name__)


def frame_name(template: str | None, index: int) -> str | None:
    """``{template}_{index:03d}`` for a 1-based extraction index, or None."""
    if not template:
        return None
    return f"{template}_{index:03d}"


class SamplingStage:
    name = PipelineStage.SAMPLING

    def __init__(
        self,
        grabber: FrameGrabber,
        store: FrameStore,
        epsilon: float = 0.1,
    ) -> None:
        self._grabber = grabber
        self._store = store
        self._epsilon = epsilon

    def should_run(self, ctx: ScanContext) -> bool:
        return True

    async def execute(
        self,
        ctx: ScanContext,
        on_progress: ProgressCallback | None = None,
    ) -> ScanContext:
        project = ctx.project
        ctx.timestamps = sample_timestamps(
            project.duration, project.scan_range, project.scan_interval, self._epsilon
        )
        total = len(ctx.timestamps)
        logger.info(
            "Sampling %d timestamps (%s, every %.2fs) from %s",
            total, project.scan_range, project.scan_interval, ctx.media_path.name,
        )

        for i, timestamp in enumerate(ctx.timestamps):
            image: str | None = None
            try:
                image = await self._grabber.grab(ctx.media_path, timestamp)
            except MediaSeekError as e:
                ctx.failed_timestamps.append(timestamp)
                logger.warning("Skipping frame at %s: %s", format_timestamp(timestamp), e)

            # A reset while the grab was in flight orphans its result
            if not ctx.is_current():
                logger.info("Scan %d superseded during sampling", ctx.generation)
                return ctx

            if image is not None:
                frame = Frame(
                    project_id=project.id,
                    timestamp=timestamp,
                    image=image,
                    custom_name=frame_name(project.frame_naming_template, len(ctx.frame_ids) + 1),
                )
                await self._store.add(frame)
                ctx.frame_ids.append(frame.id)

            ctx.publish(
                sampling_progress=(i + 1) / total * 100,
                extracted_count=len(ctx.frame_ids),
            )
            if on_progress:
                on_progress(i + 1, total)

        logger.info(
            "Sampling done: %d frames extracted, %d timestamps skipped",
            len(ctx.frame_ids), len(ctx.failed_timestamps),
        )
        return ctx
