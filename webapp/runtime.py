"""Shared runtime singletons for web/CLI entrypoints."""

from __future__ import annotations

import asyncio
from functools import lru_cache
from typing import Optional

from analysis import VideoIndexerClient
from config import Settings, StationRegistry, get_settings
from delivery import FeedAssembler, get_transport
from intelligence import InterestResolver, get_llm
from newsroom import EligibilityGate, EnpsClient
from orchestrator import InMemoryRunLog, VideoPipeline
from storage import get_story_store


_RUN_LOG = InMemoryRunLog()


def get_run_log() -> InMemoryRunLog:
    return _RUN_LOG


@lru_cache()
def get_resolver_limiter() -> asyncio.Semaphore:
    """Process-wide gate on in-flight reasoning-service calls."""
    return asyncio.Semaphore(max(1, int(get_settings().pipeline.resolver_concurrency)))


def build_pipeline(settings: Optional[Settings] = None) -> VideoPipeline:
    settings = settings or get_settings()
    registry = StationRegistry(settings.pipeline.load_stations())
    store = get_story_store(settings.store)

    resolver = InterestResolver(
        get_llm(settings=settings.llm),
        store,
        registry,
        limiter=get_resolver_limiter(),
        max_attempts=settings.pipeline.resolver_max_attempts,
        base_delay=settings.pipeline.resolver_base_delay,
        window_days=settings.pipeline.topic_window_days,
        tz_name=settings.pipeline.timezone,
    )
    return VideoPipeline(
        gate=EligibilityGate(
            EnpsClient(settings.newsroom),
            threshold_minutes=settings.pipeline.age_threshold_minutes,
        ),
        analysis=VideoIndexerClient(settings.analysis),
        store=store,
        resolver=resolver,
        assembler=FeedAssembler(
            video_genre=settings.pipeline.video_genre,
            tz_name=settings.pipeline.timezone,
        ),
        transport=get_transport(settings.delivery),
        registry=registry,
        run_log=get_run_log(),
        callback_url=settings.analysis.callback_url,
        default_server_address=settings.newsroom.default_server_address,
    )


@lru_cache()
def get_pipeline() -> VideoPipeline:
    return build_pipeline()
