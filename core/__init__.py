"""Core contracts and shared types for the station video pipeline."""

from .contracts import (
    AnalysisCallback,
    BasicContent,
    NewsroomAsset,
    ObjectArrivalEvent,
    PipelineState,
    ProcessingState,
    StationTopics,
    StationTopicSnapshot,
    Story,
    VideoMetadata,
)

__all__ = [
    "AnalysisCallback",
    "BasicContent",
    "NewsroomAsset",
    "ObjectArrivalEvent",
    "PipelineState",
    "ProcessingState",
    "StationTopics",
    "StationTopicSnapshot",
    "Story",
    "VideoMetadata",
]
