"""Frame, analysis and enhancement schemas."""

import time
import uuid
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class EnhancementStyle(StrEnum):
    UNBLUR = "unblur"
    CINEMATIC_LIGHTING = "cinematic_lighting"
    PORTRAIT_BOKEH = "portrait_bokeh"
    REMOVE_BACKGROUND = "remove_background"
    COLOR_POP = "color_pop"
    HDR = "hdr"
    ENHANCE_DETAIL = "enhance_detail"
    UPSCALE = "upscale"
    DENOISE = "denoise"


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return uuid.uuid4().hex


class Analysis(BaseModel):
    """Vision model assessment of a single frame."""

    quality: Literal["excellent", "good", "fair"]
    quality_reason: str
    people: list[str]
    shot_type: Literal["posed", "candid", "uncertain"]
    tags: list[str]
    composition_score: float = Field(ge=0, le=100)
    technical_advice: list[str]


class EnhancementRecord(BaseModel):
    """One applied enhancement; immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    timestamp: int = Field(default_factory=now_ms)
    styles: list[EnhancementStyle]
    input_image: str
    output_image: str


class Frame(BaseModel):
    """A still grabbed from the project's media, plus curation state.

    Instances are frozen; the frame store replaces them with updated copies.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    project_id: str
    timestamp: float
    image: str
    enhanced_image: str | None = None
    analysis: Analysis | None = None
    is_keeper: bool = False
    is_enhanced: bool = False
    is_processing: bool = False
    created_at: int = Field(default_factory=now_ms)
    enhancement_history: list[EnhancementRecord] = Field(default_factory=list)
    applied_enhancements: list[EnhancementStyle] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    parent_frame_id: str | None = None
    is_saved_state: bool = False
    custom_name: str | None = None
    # set when a new scan replaces the working set; the frame stays in the library
    is_archived: bool = False

    @property
    def display_image(self) -> str:
        """Latest visible image: the enhancement if any, else the original."""
        return self.enhanced_image or self.image


class FrameSummary(BaseModel):
    """Frame without image payloads, for list views."""

    id: str
    project_id: str
    timestamp: float
    analysis: Analysis | None = None
    is_keeper: bool
    is_enhanced: bool
    is_processing: bool
    created_at: int
    history_length: int
    applied_enhancements: list[EnhancementStyle]
    categories: list[str]
    parent_frame_id: str | None = None
    is_saved_state: bool
    custom_name: str | None = None
    is_archived: bool = False

    @classmethod
    def from_frame(cls, frame: Frame) -> "FrameSummary":
        return cls(
            **frame.model_dump(
                exclude={"image", "enhanced_image", "enhancement_history"}
            ),
            history_length=len(frame.enhancement_history),
        )


class EnhanceRequest(BaseModel):
    styles: list[EnhancementStyle]


class BatchEnhanceRequest(BaseModel):
    frame_ids: list[str]
    styles: list[EnhancementStyle]


class BatchEnhanceResult(BaseModel):
    frame_id: str
    ok: bool
    error: str | None = None


class BatchEnhanceResponse(BaseModel):
    results: list[BatchEnhanceResult]


class CategoriesRequest(BaseModel):
    categories: list[str]


class CategorySuggestionResponse(BaseModel):
    suggestions: list[str]
