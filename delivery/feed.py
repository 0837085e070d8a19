"""
Feed Assembler
Build the hearstXML delivery document for a story
"""
from __future__ import annotations

import hashlib
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence

from core import Story
from core.timestamps import format_feed_timestamp, parse_newsroom_timestamp, utcnow
from utils.exceptions import ParseFailure


logger = logging.getLogger(__name__)


ROOT_TAG = "hearstXML"
MESSAGE_ID_LENGTH = 7


def message_id_for(slug: str) -> str:
    """First 7 hex chars of sha256(slug)."""
    digest = hashlib.sha256(str(slug or "").encode("utf-8")).hexdigest()
    return digest[:MESSAGE_ID_LENGTH]


def clean_media_object(markup: Optional[str]) -> str:
    """Drop the outer wrapping characters and normalize non-breaking spaces."""
    text = str(markup or "")
    if len(text) >= 2:
        text = text[1:-1]
    else:
        text = ""
    return text.replace("\u00a0", " ")


@dataclass
class FeedDocument:
    """Assembled feed document ready for transfer"""
    message_id: str
    content: bytes

    @property
    def filename(self) -> str:
        return f"{self.message_id}.xml"


class FeedAssembler:
    """
    Build feed documents.

    Child order is fixed: messageID, slug, mediaObject, videoGenre, fromStation,
    fromPerson, videoTimestamp, AzureProcessTimeStamp, subject, keywords, ofInterestTo.
    """

    def __init__(
        self,
        *,
        video_genre: str = "PKG",
        tz_name: str = "America/New_York",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.video_genre = video_genre
        self.tz_name = tz_name
        self.clock = clock

    def assemble(
        self,
        story: Story,
        stations: Sequence[str],
        keywords: Optional[Sequence[str]] = None,
    ) -> FeedDocument:
        slug = story.enps_slug or ""
        message_id = message_id_for(slug)

        root = ET.Element(ROOT_TAG)
        _text(root, "messageID", message_id)
        _text(root, "slug", slug)
        root.append(self._media_object(story, message_id))
        _text(root, "videoGenre", self.video_genre)
        _text(root, "fromStation", story.partition_key)
        _text(root, "fromPerson", story.enps_from_person or "")
        _text(root, "videoTimestamp", self._video_timestamp(story))
        _text(root, "AzureProcessTimeStamp", format_feed_timestamp(self.clock(), self.tz_name))
        _text(root, "subject", ",".join(story.topics))
        _text(root, "keywords", ",".join(keywords or []))
        _text(root, "ofInterestTo", ",".join(stations))

        content = ET.tostring(root, encoding="utf-8", xml_declaration=True)
        logger.info(
            "feed_assembled message_id=%s station=%s stations=%s",
            message_id,
            story.partition_key,
            ",".join(stations),
        )
        return FeedDocument(message_id=message_id, content=content)

    def _media_object(self, story: Story, message_id: str) -> ET.Element:
        markup = clean_media_object(story.enps_media_object)
        try:
            return ET.fromstring(f"<mediaObject>{markup}</mediaObject>")
        except ET.ParseError as exc:
            logger.error("feed_media_object_invalid message_id=%s error=%s", message_id, exc)
            raise ParseFailure(
                "Production markup is not well-formed XML",
                {"message_id": message_id, "error": str(exc)},
            ) from exc

    def _video_timestamp(self, story: Story) -> str:
        raw = (story.enps_video_timestamp or "").strip()
        if raw:
            try:
                return format_feed_timestamp(parse_newsroom_timestamp(raw), self.tz_name)
            except ValueError as exc:
                raise ParseFailure("Unrecognized video timestamp", {"value": raw}) from exc
        if story.story_date_time is not None:
            return format_feed_timestamp(story.story_date_time, self.tz_name)
        return ""


def _text(parent: ET.Element, tag: str, value: str) -> ET.Element:
    node = ET.SubElement(parent, tag)
    node.text = value
    return node
