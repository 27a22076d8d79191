"""Stage: Frame analysis.

Analyzes every frame extracted by the sampling stage, in timestamp order,
one request at a time. A frame whose analysis fails stays unanalyzed and
the stage moves on.
"""

import logging

from frameperfect.exceptions import FramePerfectError
from frameperfect.schemas.pipeline import PipelineStage
from frameperfect.services.analysis import AnalysisClient
from frameperfect.services.frame_store import FrameStore
from frameperfect.services.pipeline.base import ScanContext
from frameperfect.utils.types import ProgressCallback

logger = logging.getLogger(__name__)


class AnalysisStage:
    name = PipelineStage.ANALYZING

    def __init__(self, client: AnalysisClient, store: FrameStore) -> None:
        self._client = client
        self._store = store

    def should_run(self, ctx: ScanContext) -> bool:
        return True

    async def execute(
        self,
        ctx: ScanContext,
        on_progress: ProgressCallback | None = None,
    ) -> ScanContext:
        # Frames deleted by the user since sampling are dropped here
        frames = [f for f in map(self._store.find, ctx.frame_ids) if f is not None]
        frames.sort(key=lambda f: f.timestamp)
        total = len(frames)
        ctx.publish(analyzing_current=0, analyzing_total=total)

        for i, frame in enumerate(frames):
            try:
                async with self._store.processing(frame.id) as current:
                    analysis = await self._client.analyze(current.image)
                    if ctx.is_current():
                        await self._store.update(frame.id, analysis=analysis)
                        ctx.analyzed_ids.append(frame.id)
            except FramePerfectError as e:
                ctx.failed_analyses.append(frame.id)
                logger.warning(
                    "Analysis of frame %s at %.2fs failed: %s", frame.id, frame.timestamp, e
                )

            if not ctx.is_current():
                logger.info("Scan %d superseded during analysis", ctx.generation)
                return ctx

            ctx.publish(analyzing_current=i + 1)
            if on_progress:
                on_progress(i + 1, total)

        logger.info(
            "Analysis done: %d/%d frames analyzed", len(ctx.analyzed_ids), total
        )
        return ctx
