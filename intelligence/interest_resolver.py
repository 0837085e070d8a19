"""
Interest Resolver
Decide which affiliate stations should receive a story
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from config.stations import StationRegistry, normalize_station_id
from core import StationTopicSnapshot
from storage import BaseStoryStore
from utils.exceptions import ParseFailure, UpstreamRateLimited

from .llm import BaseLLM, Message
from .schemas import interested_stations_response_format


logger = logging.getLogger(__name__)


DEFAULT_CONCURRENCY = 5

SYSTEM_PROMPT = """You are an AI assistant that analyzes topics from a video and compares them to topics that a broadcasting company is interested in.
You will be given the topics of interest for each broadcasting company and the video topics, both in structured JSON format.
The topics of interest for each broadcasting company use this format:
{"stationTopics": [{"stationName": "WESH", "topics": ["politics", "weather", "sports"]}, {"stationName": "WMUR", "topics": ["politics", "crime", "entertainment"]}]}

Each node represents a station and the topics it has been covering recently.

The video topics use this format:
{"videoTopics": ["politics", "weather", "sports"]}

Compare the video topics with the topics of interest for each station and return the names of the stations that have at least one topic in common.
Topics do not have to match word for word, use your judgement to decide a match. For example, a video topic of "baseball" matches a station topic of "sports" or "camden yards".

all_station_topics: {station_topics}
video_topics: {video_topics}

Only return properly structured JSON as the response."""

USER_PROMPT = (
    "Using the provided JSON list of all station topics and the JSON list of topics from the given video, "
    "please identify all stations which have topics similar to the topics of the video."
)

SleepFn = Callable[[float], Awaitable[Any]]


class InterestResolver:
    """
    Resolve the interested stations for a video.

    The limiter bounds in-flight reasoning calls. It is injected so every
    pipeline instance in a process can share one gate, and tests can use
    their own. It is held for a single attempt, never across a backoff wait.
    """

    def __init__(
        self,
        llm: BaseLLM,
        store: BaseStoryStore,
        registry: Optional[StationRegistry] = None,
        *,
        limiter: Optional[asyncio.Semaphore] = None,
        max_attempts: int = 5,
        base_delay: float = 2.0,
        sleep: SleepFn = asyncio.sleep,
        window_days: int = 7,
        tz_name: str = "America/New_York",
    ):
        self.llm = llm
        self.store = store
        self.registry = registry or StationRegistry()
        self.limiter = limiter or asyncio.Semaphore(DEFAULT_CONCURRENCY)
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay = float(base_delay)
        self.sleep = sleep
        self.window_days = window_days
        self.tz_name = tz_name

    async def resolve(
        self,
        video_topics: List[str],
        origin_station: str,
        force_share: bool = False,
    ) -> List[str]:
        origin = normalize_station_id(origin_station)

        if force_share:
            stations = [sid for sid in self.registry.station_ids() if sid != origin]
            logger.info("interest_force_share origin=%s stations=%s", origin, ",".join(stations))
            return stations

        topics = [str(t).strip() for t in video_topics or [] if str(t or "").strip()]
        if not topics:
            logger.info("interest_skip origin=%s reason=no_video_topics", origin)
            return []

        snapshot = self.store.query_station_topics(
            exclude_station=origin,
            window_days=self.window_days,
            tz_name=self.tz_name,
        )
        if snapshot.is_empty():
            logger.info("interest_skip origin=%s reason=empty_snapshot", origin)
            return []

        content = await self._complete_with_retry(snapshot, topics)
        stations = self._clean(parse_interested_stations(content), origin)
        logger.info("interest_resolved origin=%s stations=%s", origin, ",".join(stations))
        return stations

    def build_messages(self, snapshot: StationTopicSnapshot, video_topics: List[str]) -> List[Message]:
        system = SYSTEM_PROMPT.replace(
            "{station_topics}", json.dumps(snapshot.to_payload(), ensure_ascii=False)
        ).replace(
            "{video_topics}", json.dumps({"videoTopics": video_topics}, ensure_ascii=False)
        )
        return [Message.system(system), Message.user(USER_PROMPT)]

    async def _complete_with_retry(self, snapshot: StationTopicSnapshot, video_topics: List[str]) -> str:
        messages = self.build_messages(snapshot, video_topics)
        response_format = interested_stations_response_format()

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay),
            retry=retry_if_exception_type(UpstreamRateLimited),
            sleep=self.sleep,
            before_sleep=_log_backoff,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                async with self.limiter:
                    response = await self.llm.acomplete(messages, response_format=response_format)
        return response.content

    def _clean(self, names: Iterable[str], origin: str) -> List[str]:
        known = set(self.registry.station_ids())
        cleaned: List[str] = []
        for name in names:
            sid = normalize_station_id(name)
            if not sid or sid == origin or sid in cleaned:
                continue
            if known and sid not in known:
                logger.warning("interest_unknown_station station=%s", sid)
                continue
            cleaned.append(sid)
        return cleaned


def parse_interested_stations(content: str) -> List[str]:
    """Read the station list from a reasoning-service reply."""
    try:
        payload = json.loads(content or "")
    except json.JSONDecodeError as exc:
        raise ParseFailure("Reasoning service returned invalid JSON", {"content": (content or "")[:200]}) from exc

    if isinstance(payload, dict):
        payload = payload.get("stations")
    if not isinstance(payload, list):
        raise ParseFailure("Reasoning service reply has no station list", {"content": (content or "")[:200]})
    return [str(item) for item in payload if isinstance(item, (str, int))]


def _log_backoff(retry_state) -> None:
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        "interest_rate_limited attempt=%s wait_seconds=%s",
        retry_state.attempt_number,
        wait,
    )
