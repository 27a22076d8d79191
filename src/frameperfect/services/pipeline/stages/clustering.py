"""Stage: Clustering.

Holds the pipeline in the ``clustering`` stage for a short, fixed delay
before the scan completes. Frames are not grouped or modified.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from frameperfect.schemas.pipeline import PipelineStage
from frameperfect.services.pipeline.base import ScanContext
from frameperfect.utils.types import ProgressCallback

logger = logging.getLogger(__name__)


class ClusteringStage:
    name = PipelineStage.CLUSTERING

    def __init__(
        self,
        delay_s: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._delay_s = delay_s
        self._sleep = sleep

    def should_run(self, ctx: ScanContext) -> bool:
        return True

    async def execute(
        self,
        ctx: ScanContext,
        on_progress: ProgressCallback | None = None,
    ) -> ScanContext:
        # TODO: group near-duplicate frames by analysis tags and shot type
        await self._sleep(self._delay_s)
        if on_progress:
            on_progress(1, 1)
        return ctx
