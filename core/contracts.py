"""Canonical data contracts for the station video pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlparse
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProcessingState(str, Enum):
    """Analysis-service processing states reported on the callback."""

    UPLOADED = "Uploaded"
    PROCESSING = "Processing"
    PROCESSED = "Processed"
    FAILED = "Failed"


class PipelineState(str, Enum):
    """Lifecycle states of one pipeline instance."""

    DETECTED = "Detected"
    SKIPPED = "Skipped"
    ELIGIBLE = "Eligible"
    SUBMITTED = "Submitted"
    ANALYSIS_COMPLETE = "AnalysisComplete"
    METADATA_EXTRACTED = "MetadataExtracted"
    INTEREST_RESOLVED = "InterestResolved"
    DELIVERED = "Delivered"
    FAILED = "Failed"


class Story(BaseModel):
    """Persisted state for one (station, video) pair."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    partition_key: str = Field(alias="StationName")
    video_name: str = Field(alias="VideoName")
    video_id: Optional[str] = Field(default=None, alias="VideoId")
    story_date_time: Optional[datetime] = Field(default=None, alias="StoryDateTime")
    topics: List[str] = Field(default_factory=list, alias="Topics")
    enps_slug: Optional[str] = Field(default=None, alias="EnpsSlug")
    enps_media_object: Optional[str] = Field(default=None, alias="EnpsMediaObject")
    enps_from_person: Optional[str] = Field(default=None, alias="EnpsFromPerson")
    enps_video_timestamp: Optional[str] = Field(default=None, alias="EnpsVideoTimestamp")
    enps_hearst_share: bool = Field(default=False, alias="EnpsHearstShare")
    video_overview_text: Optional[str] = Field(default=None, alias="VideoOverviewText")
    feed_message_id: Optional[str] = Field(default=None, alias="FeedMessageId")
    of_interest_to: List[str] = Field(default_factory=list, alias="OfInterestTo")
    delivered_at: Optional[datetime] = Field(default=None, alias="DeliveredAt")

    @field_validator("partition_key", "video_name", mode="before")
    @classmethod
    def _non_empty_text(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("value is required")
        return text

    @field_validator("topics", mode="before")
    @classmethod
    def _clean_topics(cls, value: Any) -> List[str]:
        if value is None:
            return []
        return [str(item).strip() for item in value if str(item or "").strip()]

    @property
    def station(self) -> str:
        return self.partition_key


class ObjectArrivalEvent(BaseModel):
    """Object-storage notification for a newly uploaded video."""

    name: str
    uri: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("name", "uri", mode="before")
    @classmethod
    def _non_empty_text(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("value is required")
        return text

    @field_validator("created_at")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def station(self) -> str:
        """Origin station, taken from the container (first path segment) of the URI."""
        path = unquote(urlparse(self.uri).path or "")
        parts = [p for p in path.split("/") if p]
        if not parts:
            raise ValueError(f"cannot derive station from uri: {self.uri}")
        return parts[0].strip().upper()


class AnalysisCallback(BaseModel):
    """Inbound analysis-service state notification."""

    id: str
    state: ProcessingState


class NewsroomAsset(BaseModel):
    """Result of a newsroom search for one video."""

    guid: str = ""
    path: str = ""
    slug: str = ""
    title: str = ""
    title_suffix: str = ""
    asset_type: Optional[int] = None
    mod_time: Optional[datetime] = None

    @property
    def is_story_and_package(self) -> bool:
        return self.asset_type == 3 and self.title_suffix == "PKG"


class BasicContent(BaseModel):
    """Production overview content for a newsroom asset."""

    text: str = ""
    media_object: str = ""
    creator: str = ""
    mod_time: str = ""
    force_share: bool = False


class VideoMetadata(BaseModel):
    """Normalized analysis result for one video."""

    video_id: str = ""
    video_name: str = ""
    topics: str = ""
    faces: str = ""
    keywords: str = ""
    ocr: str = ""
    transcript: str = ""
    topic_list: List[str] = Field(default_factory=list)

    def keyword_list(self) -> List[str]:
        return _split_tokens(self.keywords) + _split_tokens(self.faces)


class StationTopics(BaseModel):
    """Recent topics of one station."""

    station_name: str = Field(serialization_alias="stationName")
    topics: List[str] = Field(default_factory=list)


class StationTopicSnapshot(BaseModel):
    """Windowed per-station topic aggregation used by the interest resolver."""

    station_topics: List[StationTopics] = Field(default_factory=list, serialization_alias="stationTopics")

    def is_empty(self) -> bool:
        return not self.station_topics

    def station_names(self) -> List[str]:
        return [item.station_name for item in self.station_topics]

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def _split_tokens(text: str) -> List[str]:
    return [token.strip() for token in str(text or "").split("|") if token.strip()]
