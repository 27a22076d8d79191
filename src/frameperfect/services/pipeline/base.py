"""Pipeline core abstractions: ScanContext and Stage protocol."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from frameperfect.schemas.pipeline import PipelineStage
from frameperfect.schemas.project import Project
from frameperfect.services.session import ScanSession
from frameperfect.utils.types import ProgressCallback

logger = logging.getLogger(__name__)

# (stage_name, stage_index, total_stages, current, total)
StageProgressCallback = Callable[[str, int, int, int, int], None]


@dataclass
class ScanContext:
    """Shared data bus passed through all stages of one scan run."""

    session: ScanSession
    generation: int
    media_path: Path

    # Sampling output
    timestamps: list[float] = field(default_factory=list)
    frame_ids: list[str] = field(default_factory=list)
    failed_timestamps: list[float] = field(default_factory=list)

    # Analysis output
    analyzed_ids: list[str] = field(default_factory=list)
    failed_analyses: list[str] = field(default_factory=list)

    # Timing
    processing_times: dict[str, float] = field(default_factory=dict)

    @property
    def project(self) -> Project:
        return self.session.project

    def is_current(self) -> bool:
        """False once the session was reset after this run started."""
        return self.session.is_current(self.generation)

    def publish(self, **changes: Any) -> bool:
        return self.session.publish(self.generation, **changes)


@runtime_checkable
class Stage(Protocol):
    """Protocol that all pipeline stages must implement."""

    name: PipelineStage

    async def execute(
        self,
        ctx: ScanContext,
        on_progress: ProgressCallback | None = None,
    ) -> ScanContext: ...

    def should_run(self, ctx: ScanContext) -> bool: ...
