"""Eligibility gate: newsroom lookup plus the processing decision rule."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from core import BasicContent, NewsroomAsset, ObjectArrivalEvent
from core.timestamps import utcnow

from .client import DEFAULT_BASE_PATH, DEFAULT_DATABASE, EnpsClient


logger = logging.getLogger(__name__)

DEFAULT_AGE_THRESHOLD_MINUTES = 10


def decide_eligibility(
    *,
    force_share: bool,
    is_story_and_package: bool,
    age_minutes: float,
    threshold_minutes: float = DEFAULT_AGE_THRESHOLD_MINUTES,
) -> bool:
    """A video is processed iff force_share or (story package and age within threshold)."""
    if force_share:
        return True
    return bool(is_story_and_package) and float(age_minutes) <= float(threshold_minutes)


def age_in_minutes(created_at: datetime, now: Optional[datetime] = None) -> float:
    current = now or utcnow()
    return max(0.0, (current - created_at).total_seconds() / 60.0)


@dataclass
class EligibilityResult:
    eligible: bool
    asset: NewsroomAsset
    content: BasicContent
    age_minutes: float
    reason: str


class EligibilityGate:
    """Looks a video up in the newsroom and applies the decision rule."""

    def __init__(self, client: EnpsClient, *, threshold_minutes: float = DEFAULT_AGE_THRESHOLD_MINUTES) -> None:
        self._client = client
        self.threshold_minutes = threshold_minutes

    async def evaluate(
        self,
        event: ObjectArrivalEvent,
        *,
        server_address: str = "",
        database: str = DEFAULT_DATABASE,
        base_path: str = DEFAULT_BASE_PATH,
        now: Optional[datetime] = None,
    ) -> EligibilityResult:
        await self._client.login()
        asset = await self._client.search(event.name, server_address, database=database, base_path=base_path)
        content = await self._client.get_basic_content(asset)

        age = age_in_minutes(event.created_at, now)
        eligible = decide_eligibility(
            force_share=content.force_share,
            is_story_and_package=asset.is_story_and_package,
            age_minutes=age,
            threshold_minutes=self.threshold_minutes,
        )
        if content.force_share:
            reason = "force_share"
        elif not asset.is_story_and_package:
            reason = "not_story_package"
        elif not eligible:
            reason = "too_old"
        else:
            reason = "story_package_recent"

        logger.info(
            "eligibility video=%s eligible=%s reason=%s age_min=%.1f threshold_min=%s",
            event.name,
            eligible,
            reason,
            age,
            self.threshold_minutes,
        )
        return EligibilityResult(eligible=eligible, asset=asset, content=content, age_minutes=age, reason=reason)
