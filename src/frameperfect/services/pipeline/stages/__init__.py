"""Pipeline stages."""

from frameperfect.services.pipeline.stages.analysis import AnalysisStage
from frameperfect.services.pipeline.stages.clustering import ClusteringStage
from frameperfect.services.pipeline.stages.sampling import SamplingStage, frame_name

__all__ = [
    "AnalysisStage",
    "ClusteringStage",
    "SamplingStage",
    "frame_name",
]
