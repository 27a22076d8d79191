from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from frameperfect.schemas.frame import now_ms


class PipelineStage(StrEnum):
    IDLE = "idle"
    SAMPLING = "sampling"
    ANALYZING = "analyzing"
    CLUSTERING = "clustering"
    COMPLETE = "complete"


class PipelineStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    stage: PipelineStage = PipelineStage.IDLE
    sampling_progress: float = 0.0
    analyzing_current: int = 0
    analyzing_total: int = 0
    extracted_count: int = 0


class Notification(BaseModel):
    """Human-readable outcome of a terminal operation."""

    level: Literal["info", "success", "warning", "error"]
    message: str
    created_at: int = Field(default_factory=now_ms)


class PipelineStatusResponse(BaseModel):
    project_id: str
    status: PipelineStatus
    notifications: list[Notification] = Field(default_factory=list)
