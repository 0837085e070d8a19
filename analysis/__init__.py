"""Video analysis service client and metadata extraction."""

from .client import VideoIndexerClient
from .metadata import extract_metadata, normalize_topics, topic_label

__all__ = [
    "VideoIndexerClient",
    "extract_metadata",
    "normalize_topics",
    "topic_label",
]
