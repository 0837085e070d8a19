from __future__ import annotations

import hashlib
import xml.etree.ElementTree as ET
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

import pytest

from config.settings import StationConfig
from config.stations import StationRegistry
from core import BasicContent, NewsroomAsset, ObjectArrivalEvent, PipelineState, ProcessingState, Story
from delivery import FeedAssembler, LocalDirectoryTransport
from intelligence import InterestResolver
from intelligence.llm import BaseLLM, LLMResponse
from newsroom import EligibilityGate, split_title
from orchestrator import InMemoryRunLog, VideoPipeline, check_transition
from storage import InMemoryStoryStore
from utils.exceptions import AuthFailure, InvalidTransition, NotEligible, UpstreamFailure


T0 = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)
STORM_FILE = hashlib.sha256(b"Storm").hexdigest()[:7] + ".xml"


class FakeNewsroom:
    def __init__(
        self,
        *,
        title: str = "Storm-PKG",
        type_code: int = 3,
        share: bool = False,
        found: bool = True,
        auth_ok: bool = True,
        media: str = "[<mos><objID>42</objID></mos>]",
    ):
        self.title = title
        self.type_code = type_code
        self.share = share
        self.found = found
        self.auth_ok = auth_ok
        self.media = media
        self.searches: List[tuple] = []

    async def login(self) -> str:
        if not self.auth_ok:
            raise AuthFailure("ENPS login rejected")
        return "sess-1"

    async def search(
        self,
        video_name: str,
        server_address: str = "",
        *,
        database: str = "ENPS",
        base_path: str = "P_SYSTEM\\",
    ) -> NewsroomAsset:
        self.searches.append((video_name, server_address, database, base_path))
        if not self.found:
            raise NotEligible("No newsroom asset found", {"video_name": video_name})
        slug, suffix = split_title(self.title)
        return NewsroomAsset(
            guid="guid-1",
            path="WESH\\P_SYSTEM",
            slug=slug,
            title=self.title,
            title_suffix=suffix,
            asset_type=self.type_code,
            mod_time=datetime(2026, 3, 2, 9, 55),
        )

    async def get_basic_content(self, asset: NewsroomAsset) -> BasicContent:
        return BasicContent(
            text="Storm rolls through Orlando.",
            media_object=self.media,
            creator="jdoe",
            mod_time="3/2/2026 9:55:00 AM",
            force_share=self.share,
        )


def _index_document(video_id: str = "vid-1", topics=("Weather", "Storms")) -> dict:
    return {
        "id": video_id,
        "name": "A.mp4",
        "videos": [
            {
                "id": video_id,
                "insights": {
                    "topics": [{"name": name} for name in topics],
                    "faces": [{"name": "Jane Anchor"}, {"name": "Unknown #2"}],
                    "keywords": [{"text": "hurricane"}],
                },
            }
        ],
    }


class FakeAnalysis:
    def __init__(self, document: Optional[dict] = None, *, upload_error: Optional[Exception] = None):
        self.document = document if document is not None else _index_document()
        self.upload_error = upload_error
        self.uploads: List[tuple] = []
        self.index_requests: List[str] = []

    async def upload(self, name: str, video_url: str, callback_url: Optional[str] = None) -> str:
        if self.upload_error is not None:
            raise self.upload_error
        self.uploads.append((name, video_url, callback_url))
        return "vid-1"

    async def get_index(self, video_id: str) -> dict:
        self.index_requests.append(video_id)
        return self.document


class FakeLLM(BaseLLM):
    def __init__(self, content: str = '{"stations": ["WMUR", "KCRA"]}'):
        super().__init__(model="fake-model")
        self.content = content
        self.calls = 0

    @property
    def provider(self) -> str:
        return "fake"

    async def acomplete(self, messages, *, response_format=None, **kwargs) -> LLMResponse:
        self.calls += 1
        return LLMResponse(content=self.content, model=self.model)


def _seeded_store() -> InMemoryStoryStore:
    store = InMemoryStoryStore()
    recent = datetime.now(timezone.utc) - timedelta(days=1)
    for station, topics in {"WMUR": ["Weather"], "KCRA": ["Severe storms"], "WBAL": ["Baseball"]}.items():
        store.create(Story(partition_key=station, video_name=f"{station}-1.mp4", topics=topics, story_date_time=recent))
    return store


def _pipeline(
    tmp_path: Path,
    *,
    newsroom: Optional[FakeNewsroom] = None,
    analysis: Optional[FakeAnalysis] = None,
    store: Optional[InMemoryStoryStore] = None,
    llm: Optional[FakeLLM] = None,
    run_log: Optional[InMemoryRunLog] = None,
    registry: Optional[StationRegistry] = None,
) -> VideoPipeline:
    store = store or _seeded_store()
    registry = registry or StationRegistry.from_names(["WESH", "WMUR", "KCRA", "WBAL"])
    return VideoPipeline(
        gate=EligibilityGate(newsroom or FakeNewsroom(), threshold_minutes=10),
        analysis=analysis or FakeAnalysis(),
        store=store,
        resolver=InterestResolver(llm or FakeLLM(), store, registry),
        assembler=FeedAssembler(clock=lambda: T0),
        transport=LocalDirectoryTransport(tmp_path / "feed"),
        registry=registry,
        run_log=run_log,
        callback_url="https://pipeline.test/api/videos/callback",
    )


def _event(minutes_old: float = 5) -> ObjectArrivalEvent:
    return ObjectArrivalEvent(
        name="A.mp4",
        uri="https://blob.test/wesh/A.mp4",
        created_at=T0 - timedelta(minutes=minutes_old),
    )


@pytest.mark.asyncio
async def test_end_to_end_delivery(tmp_path: Path) -> None:
    analysis = FakeAnalysis()
    pipeline = _pipeline(tmp_path, analysis=analysis)

    submitted = await pipeline.handle_object_arrival(_event(), now=T0)
    assert submitted.state is PipelineState.SUBMITTED
    assert submitted.station == "WESH"
    assert analysis.uploads == [("A.mp4", "https://blob.test/wesh/A.mp4", "https://pipeline.test/api/videos/callback")]

    provisional = pipeline.store.find_by_video_id("vid-1")
    assert provisional is not None
    assert provisional.topics == []
    assert provisional.enps_slug == "Storm"

    delivered = await pipeline.handle_analysis_callback("vid-1", ProcessingState.PROCESSED)

    assert delivered.run_id == submitted.run_id
    assert delivered.state is PipelineState.DELIVERED
    assert delivered.stations == ["WMUR", "KCRA"]
    assert [event.event for event in delivered.events] == [
        "created",
        "Eligible",
        "Submitted",
        "callback",
        "AnalysisComplete",
        "MetadataExtracted",
        "InterestResolved",
        "Delivered",
    ]

    story = pipeline.store.find_by_video_id("vid-1")
    assert story.topics == ["Weather", "Storms"]
    assert story.of_interest_to == ["WMUR", "KCRA"]
    assert story.feed_message_id == STORM_FILE[:-4]
    assert story.delivered_at is not None

    target = tmp_path / "feed" / STORM_FILE
    root = ET.fromstring(target.read_bytes())
    assert root.findtext("ofInterestTo") == "WMUR,KCRA"
    assert root.findtext("subject") == "Weather,Storms"
    assert root.findtext("keywords") == "hurricane,Jane Anchor"


@pytest.mark.asyncio
async def test_failed_callback_deletes_story_and_delivers_nothing(tmp_path: Path) -> None:
    analysis = FakeAnalysis()
    pipeline = _pipeline(tmp_path, analysis=analysis)
    await pipeline.handle_object_arrival(_event(), now=T0)

    run = await pipeline.handle_analysis_callback("vid-1", ProcessingState.FAILED)

    assert run.state is PipelineState.FAILED
    assert pipeline.store.find_by_video_id("vid-1") is None
    assert analysis.index_requests == []
    assert not (tmp_path / "feed").exists()


@pytest.mark.asyncio
async def test_in_progress_callbacks_are_ignored(tmp_path: Path) -> None:
    pipeline = _pipeline(tmp_path)
    await pipeline.handle_object_arrival(_event(), now=T0)

    assert await pipeline.handle_analysis_callback("vid-1", ProcessingState.PROCESSING) is None
    assert await pipeline.handle_analysis_callback("vid-1", "Uploaded") is None
    assert pipeline.run_log.find_open_by_video_id("vid-1").state is PipelineState.SUBMITTED


@pytest.mark.asyncio
async def test_old_video_is_skipped(tmp_path: Path) -> None:
    analysis = FakeAnalysis()
    pipeline = _pipeline(tmp_path, analysis=analysis, store=InMemoryStoryStore())

    run = await pipeline.handle_object_arrival(_event(minutes_old=15), now=T0)

    assert run.state is PipelineState.SKIPPED
    assert analysis.uploads == []
    assert pipeline.store.size() == 0


@pytest.mark.asyncio
async def test_missing_newsroom_asset_is_skipped(tmp_path: Path) -> None:
    pipeline = _pipeline(tmp_path, newsroom=FakeNewsroom(found=False))
    run = await pipeline.handle_object_arrival(_event(), now=T0)
    assert run.state is PipelineState.SKIPPED
    assert run.errors == []


@pytest.mark.asyncio
async def test_auth_failure_fails_the_run(tmp_path: Path) -> None:
    pipeline = _pipeline(tmp_path, newsroom=FakeNewsroom(auth_ok=False))
    run = await pipeline.handle_object_arrival(_event(), now=T0)
    assert run.state is PipelineState.FAILED
    assert run.errors[0].startswith("AuthFailure")


@pytest.mark.asyncio
async def test_upload_failure_leaves_no_story(tmp_path: Path) -> None:
    store = InMemoryStoryStore()
    analysis = FakeAnalysis(upload_error=UpstreamFailure("upload returned 500", service="video_indexer", status_code=500))
    pipeline = _pipeline(tmp_path, analysis=analysis, store=store)

    run = await pipeline.handle_object_arrival(_event(), now=T0)

    assert run.state is PipelineState.FAILED
    assert store.size() == 0


@pytest.mark.asyncio
async def test_malformed_analysis_document_aborts(tmp_path: Path) -> None:
    document = {"id": "vid-1", "name": "A.mp4", "videos": [{"id": "vid-1", "insights": {"topics": "Weather"}}]}
    llm = FakeLLM()
    pipeline = _pipeline(tmp_path, analysis=FakeAnalysis(document), llm=llm)
    await pipeline.handle_object_arrival(_event(), now=T0)

    run = await pipeline.handle_analysis_callback("vid-1", ProcessingState.PROCESSED)

    assert run.state is PipelineState.FAILED
    assert run.errors[0].startswith("ParseFailure")
    assert pipeline.store.find_by_video_id("vid-1").topics == []
    assert llm.calls == 0
    assert not (tmp_path / "feed").exists()


@pytest.mark.asyncio
async def test_malformed_markup_aborts_delivery(tmp_path: Path) -> None:
    pipeline = _pipeline(tmp_path, newsroom=FakeNewsroom(media="[<mos><objID>42</mos>]"))
    await pipeline.handle_object_arrival(_event(), now=T0)

    run = await pipeline.handle_analysis_callback("vid-1", ProcessingState.PROCESSED)

    assert run.state is PipelineState.FAILED
    assert "ParseFailure" in run.errors[0]
    assert not (tmp_path / "feed" / STORM_FILE).exists()
    assert pipeline.store.find_by_video_id("vid-1").feed_message_id is None


@pytest.mark.asyncio
async def test_force_share_skips_reasoning_call(tmp_path: Path) -> None:
    llm = FakeLLM()
    pipeline = _pipeline(tmp_path, newsroom=FakeNewsroom(share=True, title="Storm-VO"), llm=llm)

    submitted = await pipeline.handle_object_arrival(_event(minutes_old=120), now=T0)
    assert submitted.state is PipelineState.SUBMITTED
    assert submitted.force_share is True

    run = await pipeline.handle_analysis_callback("vid-1", ProcessingState.PROCESSED)

    assert run.state is PipelineState.DELIVERED
    assert run.stations == ["KCRA", "WBAL", "WMUR"]
    assert llm.calls == 0


@pytest.mark.asyncio
async def test_callback_after_restart_resumes_from_store(tmp_path: Path) -> None:
    store = _seeded_store()
    first = _pipeline(tmp_path, store=store)
    await first.handle_object_arrival(_event(), now=T0)

    restarted = _pipeline(tmp_path, store=store, run_log=InMemoryRunLog())
    run = await restarted.handle_analysis_callback("vid-1", ProcessingState.PROCESSED)

    assert run.trigger == "callback"
    assert run.state is PipelineState.DELIVERED
    assert run.station == "WESH"
    assert (tmp_path / "feed" / STORM_FILE).exists()


@pytest.mark.asyncio
async def test_repeated_arrival_keeps_one_story(tmp_path: Path) -> None:
    store = InMemoryStoryStore()
    pipeline = _pipeline(tmp_path, store=store)

    first = await pipeline.handle_object_arrival(_event(), now=T0)
    second = await pipeline.handle_object_arrival(_event(), now=T0)

    assert first.story_id == second.story_id
    assert store.size() == 1


def test_transition_table_rejects_illegal_moves() -> None:
    check_transition(PipelineState.SUBMITTED, PipelineState.ANALYSIS_COMPLETE)
    check_transition(PipelineState.ANALYSIS_COMPLETE, PipelineState.FAILED)
    with pytest.raises(InvalidTransition):
        check_transition(PipelineState.DETECTED, PipelineState.SUBMITTED)
    with pytest.raises(InvalidTransition):
        check_transition(PipelineState.DELIVERED, PipelineState.FAILED)

    log = InMemoryRunLog()
    run = log.create("arrival")
    with pytest.raises(InvalidTransition):
        log.transition(run.run_id, PipelineState.DELIVERED)
    assert log.get(run.run_id).state is PipelineState.DETECTED


@pytest.mark.asyncio
async def test_skipped_arrivals_hold_no_eligibility_state(tmp_path: Path) -> None:
    pipeline = _pipeline(tmp_path, newsroom=FakeNewsroom(title="Storm-VO"))
    for _ in range(3):
        run = await pipeline.handle_object_arrival(_event(), now=T0)
        assert run.state is PipelineState.SKIPPED

    stale = _pipeline(tmp_path)
    run = await stale.handle_object_arrival(_event(minutes_old=15), now=T0)
    assert run.state is PipelineState.SKIPPED

    submitted = _pipeline(tmp_path)
    await submitted.handle_object_arrival(_event(), now=T0)

    assert pipeline._eligibility == {}
    assert stale._eligibility == {}
    assert submitted._eligibility == {}


@pytest.mark.asyncio
async def test_search_uses_station_newsroom_location(tmp_path: Path) -> None:
    newsroom = FakeNewsroom()
    registry = StationRegistry(
        {
            "WESH": StationConfig(server_address="\\\\wesh-proxy\\", database="WESHDB", base_path="WESH\\"),
            "WMUR": StationConfig(),
        }
    )
    pipeline = _pipeline(tmp_path, newsroom=newsroom, registry=registry)

    await pipeline.handle_object_arrival(_event(), now=T0)

    assert newsroom.searches == [("A.mp4", "\\\\wesh-proxy\\", "WESHDB", "WESH\\")]


@pytest.mark.asyncio
async def test_restarted_callback_does_not_match_other_station_by_name(tmp_path: Path) -> None:
    store = InMemoryStoryStore()
    store.create(Story(partition_key="WMUR", video_name="A.mp4", video_id="wmur-1"))
    store.create(Story(partition_key="WESH", video_name="A.mp4", video_id="vid-old"))
    analysis = FakeAnalysis(_index_document(video_id="vid-new"))
    pipeline = _pipeline(tmp_path, store=store, analysis=analysis)

    run = await pipeline.handle_analysis_callback("vid-new", ProcessingState.PROCESSED)

    assert run.state is PipelineState.FAILED
    assert run.errors[0].startswith("StorageError")
    assert store.find_by_station_and_video_name("WMUR", "A.mp4").topics == []
    assert store.find_by_station_and_video_name("WESH", "A.mp4").topics == []
    assert not (tmp_path / "feed").exists()
