"""FramePerfect schemas."""

from frameperfect.schemas.frame import (
    Analysis,
    EnhancementRecord,
    EnhancementStyle,
    Frame,
)
from frameperfect.schemas.pipeline import PipelineStage, PipelineStatus
from frameperfect.schemas.project import Project, ScanRange

__all__ = [
    "Analysis",
    "EnhancementRecord",
    "EnhancementStyle",
    "Frame",
    "PipelineStage",
    "PipelineStatus",
    "Project",
    "ScanRange",
]
