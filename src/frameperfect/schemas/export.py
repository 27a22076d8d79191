from pydantic import BaseModel, Field

from frameperfect.schemas.frame import Analysis


class ManifestEntry(BaseModel):
    filename: str
    timestamp: float
    analysis: Analysis


class ExportManifest(BaseModel):
    project_name: str
    export_date: str
    frames: list[ManifestEntry] = Field(default_factory=list)
