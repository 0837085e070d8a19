from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from core import Story
from storage import InMemoryStoryStore, SQLiteStoryStore, get_story_store
from config.settings import StoreSettings
from utils.exceptions import ConfigurationError, DuplicateCreation, StorageError


NOW = datetime(2026, 3, 10, 17, 0, tzinfo=timezone.utc)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path: Path):
    if request.param == "memory":
        return InMemoryStoryStore()
    return SQLiteStoryStore(tmp_path / "stories.db")


def _story(station: str, name: str, *, topics=None, stamp: str = "3/10/2026 10:00:00 AM", **fields) -> Story:
    return Story(
        partition_key=station,
        video_name=name,
        topics=topics or [],
        enps_video_timestamp=stamp,
        **fields,
    )


def test_create_is_idempotent_per_station_and_name(store) -> None:
    first = store.create(_story("WESH", "A.mp4", video_id="v1"))
    second = store.create(_story("WESH", "A.mp4", video_id="v2"))

    assert second.id == first.id
    assert second.video_id == "v1"
    assert store.find_by_station_and_video_name("WESH", "A.mp4").id == first.id

    other_station = store.create(_story("WMUR", "A.mp4"))
    assert other_station.id != first.id


def test_duplicate_insert_is_a_duplicate_creation(store) -> None:
    first = store.create(_story("WESH", "A.mp4"))

    with pytest.raises(DuplicateCreation) as info:
        store._insert(_story("WESH", "A.mp4"))

    assert isinstance(info.value, StorageError)
    assert info.value.existing_id == first.id
    assert store.create(_story("WESH", "A.mp4")).id == first.id


def test_concurrent_creates_persist_one_record(store) -> None:
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: store.create(_story("KCRA", "race.mp4")), range(16)))

    assert len({story.id for story in results}) == 1


def test_lookups_return_none_when_missing(store) -> None:
    assert store.find_by_video_id("nope") is None
    assert store.find_by_video_name("nope.mp4") is None
    assert store.get("missing", "WESH") is None


def test_update_and_delete(store) -> None:
    story = store.create(_story("WESH", "A.mp4", video_id="v1"))
    story.topics = ["Weather", "Storms"]
    store.update(story)

    found = store.find_by_video_id("v1")
    assert found is not None
    assert found.topics == ["Weather", "Storms"]

    assert store.delete(story.id, "WESH") is True
    assert store.find_by_video_id("v1") is None
    assert store.delete(story.id, "WESH") is False


def test_update_missing_story_raises(store) -> None:
    with pytest.raises(StorageError):
        store.update(_story("WESH", "ghost.mp4"))


def test_station_topics_snapshot_groups_and_filters(store) -> None:
    store.create(_story("WMUR", "a.mp4", topics=["Politics", "Weather"]))
    store.create(_story("WMUR", "b.mp4", topics=["Weather", "Sports"]))
    store.create(_story("KCRA", "c.mp4", topics=["Wildfire"]))
    store.create(_story("WESH", "d.mp4", topics=["Weather"]))
    store.create(_story("WBAL", "old.mp4", topics=["Baseball"], stamp="2/1/2026 10:00:00 AM"))
    store.create(_story("WCVB", "pending.mp4"))

    snapshot = store.query_station_topics(exclude_station="WESH", window_days=7, now=NOW)

    assert snapshot.station_names() == ["KCRA", "WMUR"]
    payload = snapshot.to_payload()
    wmur = next(item for item in payload["stationTopics"] if item["stationName"] == "WMUR")
    assert wmur["topics"] == ["Politics", "Weather", "Sports"]


def test_snapshot_falls_back_to_story_date_time(store) -> None:
    store.create(
        Story(
            partition_key="WMUR",
            video_name="x.mp4",
            topics=["Crime"],
            story_date_time=NOW - timedelta(days=1),
        )
    )
    store.create(
        Story(
            partition_key="KCRA",
            video_name="y.mp4",
            topics=["Crime"],
            story_date_time=NOW - timedelta(days=30),
        )
    )

    snapshot = store.query_station_topics(window_days=7, now=NOW)
    assert snapshot.station_names() == ["WMUR"]


def test_sqlite_store_survives_reopen(tmp_path: Path) -> None:
    path = tmp_path / "db" / "stories.db"
    created = SQLiteStoryStore(path).create(_story("WESH", "A.mp4", video_id="v1", enps_slug="Storm"))

    reopened = SQLiteStoryStore(path)
    found = reopened.find_by_video_id("v1")
    assert found is not None
    assert found.id == created.id
    assert found.enps_slug == "Storm"


def test_get_story_store_backends(tmp_path: Path) -> None:
    assert isinstance(get_story_store(StoreSettings(backend="memory")), InMemoryStoryStore)
    assert isinstance(
        get_story_store(StoreSettings(backend="sqlite", sqlite_path=str(tmp_path / "s.db"))),
        SQLiteStoryStore,
    )
    with pytest.raises(ConfigurationError):
        get_story_store(StoreSettings(backend="cosmos"))
