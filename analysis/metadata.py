"""Normalization of an analysis-result document into topic/keyword/face/OCR/transcript fields."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from core import VideoMetadata
from utils.exceptions import ParseFailure


logger = logging.getLogger(__name__)

TOKEN_SEPARATOR = "|"
LABEL_SEPARATOR = ":"
TOPIC_LABEL = "Topics of this video are"
UNRESOLVED_FACE_MARKER = "Unknown"

# insight type -> field holding the value
INSIGHT_FIELDS = {
    "topics": "name",
    "faces": "name",
    "keywords": "text",
    "ocr": "text",
    "transcript": "text",
}


def join_insight(insights: Dict[str, Any], insight_type: str, field: str) -> str:
    """Join one insight field as 'a|b|c|'; unresolved faces are skipped."""
    entries = insights.get(insight_type) or []
    if not isinstance(entries, list):
        raise ParseFailure("insight is not a list", {"insight": insight_type})
    parts: List[str] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        value = str(entry.get(field) or "").strip()
        if not value:
            continue
        if insight_type == "faces" and UNRESOLVED_FACE_MARKER in value:
            continue
        parts.append(value + TOKEN_SEPARATOR)
    return "".join(parts)


def topic_label(joined_topics: str) -> str:
    if not joined_topics:
        return ""
    return f"{TOPIC_LABEL}{LABEL_SEPARATOR} {joined_topics}"


def normalize_topics(label: str) -> List[str]:
    """
    Split a topic label into topics.

    'Topics of this video are: Weather|Storms|' -> ['Weather', 'Storms'].
    A label without the prefix separator is malformed and raises ParseFailure.
    """
    text = str(label or "").strip()
    if not text:
        return []
    head, sep, tail = text.partition(LABEL_SEPARATOR)
    if not sep or not head.strip():
        raise ParseFailure("topic label has no prefix separator", {"label": text[:120]})
    topics: List[str] = []
    for token in tail.split(TOKEN_SEPARATOR):
        token = token.strip()
        if token and token not in topics:
            topics.append(token)
    return topics


def extract_metadata(document: Dict[str, Any]) -> VideoMetadata:
    """
    Normalize a raw analysis document.

    Raises:
        ParseFailure: the document has no videos[0].insights object
    """
    videos = document.get("videos") if isinstance(document, dict) else None
    if not isinstance(videos, list) or not videos or not isinstance(videos[0], dict):
        raise ParseFailure("analysis document has no videos")
    insights = videos[0].get("insights")
    if not isinstance(insights, dict):
        raise ParseFailure("analysis document has no insights")

    joined = {name: join_insight(insights, name, field) for name, field in INSIGHT_FIELDS.items()}
    label = topic_label(joined["topics"])
    metadata = VideoMetadata(
        video_id=str(videos[0].get("id") or document.get("id") or ""),
        video_name=str(document.get("name") or ""),
        topics=label,
        faces=joined["faces"],
        keywords=joined["keywords"],
        ocr=joined["ocr"],
        transcript=joined["transcript"],
        topic_list=normalize_topics(label),
    )
    logger.info(
        "metadata_extracted video_id=%s topics=%d keywords=%d faces=%d",
        metadata.video_id,
        len(metadata.topic_list),
        len(metadata.keyword_list()),
        len([f for f in metadata.faces.split(TOKEN_SEPARATOR) if f]),
    )
    return metadata
