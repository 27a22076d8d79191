"""Pipeline service facade.

A scan runs sampling, analysis and clustering through a Stage-based
orchestrator. Failures of a single frame are absorbed inside the stages;
anything that escapes them aborts the run, returns the session to ``idle``
and leaves an error notification. Frames extracted before the failure stay
in the store until the next scan, which starts from an empty working set.

Author: afu
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING

from frameperfect.services.analysis import AnalysisClient
from frameperfect.services.frame_grabber import FrameGrabber
from frameperfect.services.frame_store import FrameStore
from frameperfect.services.pipeline.base import ScanContext, Stage
from frameperfect.services.pipeline.orchestrator import PipelineOrchestrator
from frameperfect.services.pipeline.stages import (
    AnalysisStage,
    ClusteringStage,
    SamplingStage,
)
from frameperfect.services.session import ScanSession

if TYPE_CHECKING:
    from frameperfect.config import Settings

logger = logging.getLogger(__name__)

__all__ = [
    "PipelineService",
    "ScanContext",
    "Stage",
]


class PipelineService:
    """Facade: scan pipeline uses Stage orchestrator."""

    def __init__(
        self,
        grabber: FrameGrabber,
        frame_store: FrameStore,
        analysis_client: AnalysisClient,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        epsilon = settings.sampler_epsilon if settings else 0.1
        clustering_delay = settings.clustering_delay_s if settings else 1.0

        self._frame_store = frame_store

        self._scan_pipeline = (
            PipelineOrchestrator()
            .register(SamplingStage(grabber, frame_store, epsilon))
            .register(AnalysisStage(analysis_client, frame_store))
            .register(ClusteringStage(clustering_delay, sleep=sleep))
        )

    async def run_scan(self, session: ScanSession, generation: int) -> ScanContext:
        """Run one scan for ``session`` on behalf of run ``generation``.

        The session must already have been moved to ``sampling`` via
        ``ScanSession.begin_run``.
        """
        project = session.project
        logger.info("Pipeline run_scan started for project %s (%s)", project.id, project.name)
        start = time.perf_counter()

        ctx = ScanContext(
            session=session,
            generation=generation,
            media_path=Path(project.media_path),
        )

        def _stage_progress(
            stage_name: str,
            stage_idx: int,
            total_stages: int,
            current: int,
            total: int,
        ) -> None:
            logger.debug(
                "[%d/%d] %s: %d/%d", stage_idx + 1, total_stages, stage_name, current, total
            )

        try:
            if session.is_current(generation):
                await self._frame_store.release_project(project.id)
            ctx = await self._scan_pipeline.run(ctx, on_stage_progress=_stage_progress)
        except Exception as e:
            logger.error("Scan of project %s failed: %s", project.id, e, exc_info=True)
            if session.is_current(generation):
                session.reset()
                session.notify("error", f"Scan failed: {str(e) or type(e).__name__}")
            return ctx

        elapsed_ms = (time.perf_counter() - start) * 1000
        if ctx.is_current():
            session.notify(
                "success",
                f"Scan complete: {len(ctx.frame_ids)} frames extracted, "
                f"{len(ctx.analyzed_ids)} analyzed",
            )
            logger.info("Scan of project %s finished in %.0fms", project.id, elapsed_ms)
        return ctx
