"""
Delivery Module
Feed document assembly and transfer
"""
from .feed import FeedAssembler, FeedDocument, clean_media_object, message_id_for
from .transport import FeedTransport, FtpFeedTransport, LocalDirectoryTransport, get_transport

__all__ = [
    "FeedAssembler",
    "FeedDocument",
    "clean_media_object",
    "message_id_for",
    "FeedTransport",
    "FtpFeedTransport",
    "LocalDirectoryTransport",
    "get_transport",
]
