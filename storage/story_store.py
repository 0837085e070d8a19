"""
Story Store
Persistence boundary for per-(station, video) story records
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from threading import Lock
from typing import Dict, Iterable, List, Optional

from core import StationTopics, StationTopicSnapshot, Story
from core.timestamps import as_utc, try_parse_newsroom_timestamp, utcnow
from utils.exceptions import DuplicateCreation, StorageError


logger = logging.getLogger(__name__)


class BaseStoryStore(ABC):
    """
    Story record store

    `create` is idempotent per (station, video name); lookups return None when nothing matches.
    """

    @abstractmethod
    def create(self, story: Story) -> Story:
        """Insert story, or return the record already stored for its (station, video name)."""
        pass

    @abstractmethod
    def find_by_video_id(self, video_id: str) -> Optional[Story]:
        pass

    @abstractmethod
    def find_by_video_name(self, video_name: str, station: Optional[str] = None) -> Optional[Story]:
        pass

    def find_by_station_and_video_name(self, station: str, video_name: str) -> Optional[Story]:
        return self.find_by_video_name(video_name, station=station)

    @abstractmethod
    def get(self, story_id: str, partition_key: str) -> Optional[Story]:
        pass

    @abstractmethod
    def update(self, story: Story) -> Story:
        """Full replace keyed by id + partition key. Raises StorageError when missing."""
        pass

    @abstractmethod
    def delete(self, story_id: str, partition_key: str) -> bool:
        pass

    @abstractmethod
    def _stories_with_topics(self, exclude_station: Optional[str] = None) -> List[Story]:
        pass

    def query_station_topics(
        self,
        exclude_station: Optional[str] = None,
        window_days: int = 7,
        *,
        now: Optional[datetime] = None,
        tz_name: str = "America/New_York",
    ) -> StationTopicSnapshot:
        """Station Topic Snapshot: recent stories with topics, grouped by station."""
        stories = self._stories_with_topics(exclude_station)
        return build_snapshot(stories, window_days=window_days, now=now, tz_name=tz_name)


def story_timestamp(story: Story, tz_name: str = "America/New_York") -> Optional[datetime]:
    """Video timestamp of a story in UTC; newsroom ModTime first, then StoryDateTime."""
    parsed = try_parse_newsroom_timestamp(story.enps_video_timestamp)
    if parsed is None:
        parsed = story.story_date_time
    if parsed is None:
        return None
    return as_utc(parsed, tz_name)


def build_snapshot(
    stories: Iterable[Story],
    *,
    window_days: int,
    now: Optional[datetime] = None,
    tz_name: str = "America/New_York",
) -> StationTopicSnapshot:
    cutoff = (now or utcnow()) - timedelta(days=max(0, int(window_days)))
    grouped: Dict[str, List[str]] = {}
    for story in stories:
        if not story.topics:
            continue
        stamp = story_timestamp(story, tz_name)
        if stamp is None or stamp < cutoff:
            continue
        bucket = grouped.setdefault(story.partition_key, [])
        for topic in story.topics:
            if topic not in bucket:
                bucket.append(topic)
    return StationTopicSnapshot(
        station_topics=[StationTopics(station_name=name, topics=topics) for name, topics in sorted(grouped.items())]
    )


class InMemoryStoryStore(BaseStoryStore):
    """Thread-safe in-process store. The create check runs under the store lock."""

    def __init__(self) -> None:
        self._items: Dict[str, Story] = {}
        self._lock = Lock()

    def create(self, story: Story) -> Story:
        with self._lock:
            try:
                self._insert(story)
            except DuplicateCreation as exc:
                logger.info(
                    "story_exists station=%s video=%s id=%s",
                    story.partition_key,
                    story.video_name,
                    exc.existing_id,
                )
                return self._items[exc.existing_id].model_copy(deep=True)
            return story.model_copy(deep=True)

    def _insert(self, story: Story) -> None:
        """Caller holds the lock. Raises DuplicateCreation when the (station, video name) pair is taken."""
        existing = self._find_by_name_locked(story.video_name, story.partition_key)
        if existing is not None:
            raise DuplicateCreation(
                "story already exists",
                existing_id=existing.id,
                station=story.partition_key,
                video_name=story.video_name,
            )
        self._items[story.id] = story.model_copy(deep=True)

    def _find_by_name_locked(self, video_name: str, station: Optional[str]) -> Optional[Story]:
        for item in self._items.values():
            if item.video_name != video_name:
                continue
            if station is not None and item.partition_key != station:
                continue
            return item
        return None

    def find_by_video_id(self, video_id: str) -> Optional[Story]:
        with self._lock:
            for item in self._items.values():
                if item.video_id == video_id:
                    return item.model_copy(deep=True)
            return None

    def find_by_video_name(self, video_name: str, station: Optional[str] = None) -> Optional[Story]:
        with self._lock:
            item = self._find_by_name_locked(video_name, station)
            return item.model_copy(deep=True) if item else None

    def get(self, story_id: str, partition_key: str) -> Optional[Story]:
        with self._lock:
            item = self._items.get(story_id)
            if item is None or item.partition_key != partition_key:
                return None
            return item.model_copy(deep=True)

    def update(self, story: Story) -> Story:
        with self._lock:
            current = self._items.get(story.id)
            if current is None or current.partition_key != story.partition_key:
                raise StorageError("story not found", {"id": story.id, "station": story.partition_key})
            self._items[story.id] = story.model_copy(deep=True)
            return story.model_copy(deep=True)

    def delete(self, story_id: str, partition_key: str) -> bool:
        with self._lock:
            current = self._items.get(story_id)
            if current is None or current.partition_key != partition_key:
                return False
            del self._items[story_id]
            return True

    def _stories_with_topics(self, exclude_station: Optional[str] = None) -> List[Story]:
        with self._lock:
            return [
                item.model_copy(deep=True)
                for item in self._items.values()
                if item.topics and (exclude_station is None or item.partition_key != exclude_station)
            ]

    def size(self) -> int:
        with self._lock:
            return len(self._items)
