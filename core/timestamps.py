"""Timestamp helpers shared by the newsroom client, store and feed assembler."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

# Newsroom ModTime, e.g. "9/18/2023 10:47:56 AM"
NEWSROOM_TIMESTAMP_FORMAT = "%m/%d/%Y %I:%M:%S %p"
FEED_TIMESTAMP_FORMAT = "%Y%m%d %H:%M"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_newsroom_timestamp(value: str) -> datetime:
    """Parse a newsroom timestamp. Raises ValueError for unknown shapes."""
    text = str(value or "").strip()
    if not text:
        raise ValueError("empty timestamp")
    try:
        return datetime.strptime(text, NEWSROOM_TIMESTAMP_FORMAT)
    except ValueError:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))


def try_parse_newsroom_timestamp(value: Optional[str]) -> Optional[datetime]:
    try:
        return parse_newsroom_timestamp(value or "")
    except ValueError:
        return None


def to_zone(value: datetime, tz_name: str) -> datetime:
    """Express value in tz_name. Naive values are taken to be already local to that zone."""
    zone = ZoneInfo(tz_name)
    if value.tzinfo is None:
        return value.replace(tzinfo=zone)
    return value.astimezone(zone)


def format_feed_timestamp(value: datetime, tz_name: str) -> str:
    return to_zone(value, tz_name).strftime(FEED_TIMESTAMP_FORMAT)


def as_utc(value: datetime, tz_name: str = "UTC") -> datetime:
    return to_zone(value, tz_name).astimezone(timezone.utc)
