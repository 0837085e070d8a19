"""Pipeline orchestrator: arrival -> eligibility -> submission, callback -> extraction -> resolution -> delivery."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Optional

from analysis import VideoIndexerClient, extract_metadata
from config.stations import StationRegistry
from core import ObjectArrivalEvent, PipelineState, ProcessingState, Story
from core.timestamps import utcnow
from delivery import FeedAssembler, FeedTransport
from intelligence import InterestResolver
from newsroom import EligibilityGate, EligibilityResult
from storage import BaseStoryStore
from utils.exceptions import NotEligible, ParseFailure, StorageError, StoryPipelineError

from .run_log import InMemoryRunLog, PipelineRun


logger = logging.getLogger(__name__)


class VideoPipeline:
    """
    Pipeline orchestrator.

    One run per triggering event. The arrival run ends at Submitted; the
    callback resumes it (or opens a fresh run when the process restarted in
    between) and drives it to Delivered. Each transition is its own method and
    every state change goes through the run log's transition table.
    """

    def __init__(
        self,
        *,
        gate: EligibilityGate,
        analysis: VideoIndexerClient,
        store: BaseStoryStore,
        resolver: InterestResolver,
        assembler: FeedAssembler,
        transport: FeedTransport,
        registry: Optional[StationRegistry] = None,
        run_log: Optional[InMemoryRunLog] = None,
        callback_url: Optional[str] = None,
        default_server_address: str = "",
    ) -> None:
        self.gate = gate
        self.analysis = analysis
        self.store = store
        self.resolver = resolver
        self.assembler = assembler
        self.transport = transport
        self.registry = registry or StationRegistry()
        self.run_log = run_log or InMemoryRunLog()
        self.callback_url = callback_url
        self.default_server_address = default_server_address
        self._eligibility: Dict[str, EligibilityResult] = {}

    # ------------------------------------------------------------------
    # entry points

    async def handle_object_arrival(
        self,
        event: ObjectArrivalEvent,
        *,
        now: Optional[datetime] = None,
    ) -> PipelineRun:
        """Run Detected -> Submitted (or Skipped) for a newly uploaded video."""
        run = self.run_log.create("arrival", video_name=event.name)
        try:
            try:
                station = event.station
            except ValueError as exc:
                raise ParseFailure(str(exc), {"uri": event.uri}) from exc
            run = self._update(run, station=station)
            run = await self.check_eligibility(run, event, now=now)
            if run.state is PipelineState.SKIPPED:
                return run
            run = await self.submit(run, event)
        except StoryPipelineError as exc:
            return self._fail(run, exc)
        return run

    async def handle_analysis_callback(self, video_id: str, state: ProcessingState) -> Optional[PipelineRun]:
        """Resume the pipeline for an analysis-service notification. Returns None for in-progress states."""
        state = ProcessingState(state)
        if state in (ProcessingState.UPLOADED, ProcessingState.PROCESSING):
            logger.info("analysis_callback_ignored video_id=%s state=%s", video_id, state.value)
            return None

        run = self.run_log.find_open_by_video_id(video_id)
        if run is None or run.state is not PipelineState.SUBMITTED:
            run = self.run_log.create("callback", state=PipelineState.SUBMITTED, video_id=video_id)
        else:
            self.run_log.append_event(run.run_id, "callback", f"state={state.value}")

        try:
            run = await self.receive_callback(run, state)
            if run.state is PipelineState.FAILED:
                return run
            run = await self.extract_metadata(run)
            run = await self.resolve_interest(run)
            run = await self.deliver(run)
        except StoryPipelineError as exc:
            return self._fail(run, exc)
        return run

    def get_run(self, run_id: str) -> Optional[PipelineRun]:
        return self.run_log.get(run_id)

    # ------------------------------------------------------------------
    # transitions

    async def check_eligibility(
        self,
        run: PipelineRun,
        event: ObjectArrivalEvent,
        *,
        now: Optional[datetime] = None,
    ) -> PipelineRun:
        """Detected -> Eligible | Skipped."""
        station = self.registry.lookup(event.station)
        try:
            result = await self.gate.evaluate(
                event,
                server_address=station.server_address or self.default_server_address,
                database=station.database,
                base_path=station.base_path,
                now=now,
            )
        except NotEligible as exc:
            return self._transition(run, PipelineState.SKIPPED, str(exc))

        run = self._update(run, force_share=result.content.force_share)
        if not result.eligible:
            return self._transition(run, PipelineState.SKIPPED, f"reason={result.reason}")
        # held only until submit() consumes it
        self._eligibility[run.run_id] = result
        return self._transition(run, PipelineState.ELIGIBLE, f"reason={result.reason}")

    async def submit(self, run: PipelineRun, event: ObjectArrivalEvent) -> PipelineRun:
        """Eligible -> Submitted: upload with callback URL, persist the provisional story."""
        result = self._eligibility.pop(run.run_id, None)
        if result is None:
            raise StorageError("No eligibility result for run", {"run_id": run.run_id})

        video_id = await self.analysis.upload(event.name, event.uri, callback_url=self.callback_url)

        provisional = Story(
            partition_key=event.station,
            video_name=event.name,
            video_id=video_id,
            story_date_time=result.asset.mod_time or event.created_at,
            enps_slug=result.asset.slug,
            enps_media_object=result.content.media_object,
            enps_from_person=result.content.creator,
            enps_video_timestamp=result.content.mod_time,
            enps_hearst_share=result.content.force_share,
            video_overview_text=result.content.text,
        )
        story = self.store.create(provisional)
        if story.id != provisional.id and story.video_id != video_id:
            # resubmission of a known video; the callback must find the new analysis id
            story.video_id = video_id
            story = self.store.update(story)
        logger.info(
            "story_submitted station=%s video=%s video_id=%s story_id=%s",
            story.partition_key,
            story.video_name,
            video_id,
            story.id,
        )

        run = self._update(run, video_id=video_id, story_id=story.id)
        return self._transition(run, PipelineState.SUBMITTED, f"video_id={video_id}")

    async def receive_callback(self, run: PipelineRun, state: ProcessingState) -> PipelineRun:
        """Submitted -> AnalysisComplete | Failed. A failed analysis deletes its story."""
        if state is ProcessingState.FAILED:
            story = self.store.find_by_video_id(run.video_id or "")
            deleted = False
            if story is not None:
                deleted = self.store.delete(story.id, story.partition_key)
                run = self._update(run, story_id=story.id, station=story.partition_key, video_name=story.video_name)
            logger.warning("analysis_failed video_id=%s story_deleted=%s", run.video_id, deleted)
            self.run_log.mark_failed(run.run_id, "analysis service reported Failed")
            return self.run_log.get(run.run_id) or run
        return self._transition(run, PipelineState.ANALYSIS_COMPLETE, f"state={state.value}")

    async def extract_metadata(self, run: PipelineRun) -> PipelineRun:
        """AnalysisComplete -> MetadataExtracted: fetch the index, store topics on the story."""
        document = await self.analysis.get_index(run.video_id or "")
        metadata = extract_metadata(document)

        story = self.store.find_by_video_id(run.video_id or "")
        if story is None and metadata.video_name and run.station:
            # names are only unique per station
            story = self.store.find_by_station_and_video_name(run.station, metadata.video_name)
        if story is None:
            raise StorageError(
                "No story for analysed video",
                {"video_id": run.video_id, "video_name": metadata.video_name},
            )

        story.topics = list(metadata.topic_list)
        story.video_id = metadata.video_id or story.video_id
        story = self.store.update(story)
        logger.info(
            "metadata_extracted station=%s video_id=%s topics=%d",
            story.partition_key,
            story.video_id,
            len(story.topics),
        )

        run = self._update(
            run,
            story_id=story.id,
            station=story.partition_key,
            video_name=story.video_name,
            force_share=story.enps_hearst_share,
            keywords=metadata.keyword_list(),
        )
        return self._transition(run, PipelineState.METADATA_EXTRACTED, f"topics={len(story.topics)}")

    async def resolve_interest(self, run: PipelineRun) -> PipelineRun:
        """MetadataExtracted -> InterestResolved."""
        story = self._story_for(run)
        stations = await self.resolver.resolve(
            story.topics,
            story.partition_key,
            force_share=story.enps_hearst_share,
        )
        run = self._update(run, stations=stations)
        return self._transition(run, PipelineState.INTEREST_RESOLVED, f"stations={','.join(stations)}")

    async def deliver(self, run: PipelineRun) -> PipelineRun:
        """InterestResolved -> Delivered: assemble, transfer, record the delivery on the story."""
        story = self._story_for(run)
        document = self.assembler.assemble(story, run.stations, keywords=run.keywords)
        location = await self.transport.send(document)

        story.feed_message_id = document.message_id
        story.of_interest_to = list(run.stations)
        story.delivered_at = utcnow()
        self.store.update(story)

        run = self._update(run, message_id=document.message_id, delivered_to=location)
        return self._transition(run, PipelineState.DELIVERED, f"file={document.filename}")

    # ------------------------------------------------------------------
    # helpers

    def _story_for(self, run: PipelineRun) -> Story:
        story = None
        if run.story_id and run.station:
            story = self.store.get(run.story_id, run.station)
        if story is None and run.video_id:
            story = self.store.find_by_video_id(run.video_id)
        if story is None:
            raise StorageError("Story not found for run", {"run_id": run.run_id, "video_id": run.video_id})
        return story

    def _update(self, run: PipelineRun, **fields) -> PipelineRun:
        return self.run_log.update(run.run_id, **fields) or run

    def _transition(self, run: PipelineRun, target: PipelineState, message: str = "") -> PipelineRun:
        updated = self.run_log.transition(run.run_id, target, message) or run
        logger.info(
            "run_transition run_id=%s state=%s video=%s %s",
            run.run_id,
            target.value,
            updated.video_name or updated.video_id,
            message,
        )
        return updated

    def _fail(self, run: PipelineRun, exc: StoryPipelineError) -> PipelineRun:
        self._eligibility.pop(run.run_id, None)
        logger.exception(
            "run_failed run_id=%s state=%s error_type=%s error=%s",
            run.run_id,
            run.state.value,
            type(exc).__name__,
            exc,
        )
        return self.run_log.mark_failed(run.run_id, f"{type(exc).__name__}: {exc}") or run
