from enum import StrEnum

from pydantic import BaseModel, Field

from frameperfect.schemas.frame import new_id, now_ms


class ScanRange(StrEnum):
    FULL = "full"
    FIRST_HALF = "first-half"
    SECOND_HALF = "second-half"
    FIRST_QUARTER = "first-quarter"
    LAST_QUARTER = "last-quarter"


class Project(BaseModel):
    """A video being scanned; owns its frames through ``project_id``."""

    id: str = Field(default_factory=new_id)
    name: str
    media_path: str
    duration: float = Field(gt=0)
    scan_range: ScanRange = ScanRange.FULL
    scan_interval: float = Field(default=2.0, gt=0)
    created_at: int = Field(default_factory=now_ms)
    last_modified: int = Field(default_factory=now_ms)
    frame_naming_template: str | None = None
    categories: list[str] = Field(default_factory=list)


class ProjectUpdateRequest(BaseModel):
    scan_range: ScanRange | None = None
    scan_interval: float | None = Field(default=None, gt=0)


class ProjectResponse(BaseModel):
    project: Project
    estimated_frames: int
