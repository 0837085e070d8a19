"""
Storage Module
Story record persistence
"""
from pathlib import Path
from typing import Optional

from config.settings import StoreSettings, get_store_settings
from utils.exceptions import ConfigurationError

from .story_store import BaseStoryStore, InMemoryStoryStore, build_snapshot
from .sqlite_story_store import SQLiteStoryStore


def get_story_store(settings: Optional[StoreSettings] = None) -> BaseStoryStore:
    """Build the configured story store backend."""
    settings = settings or get_store_settings()
    backend = str(settings.backend or "").strip().lower()
    if backend == "memory":
        return InMemoryStoryStore()
    if backend == "sqlite":
        return SQLiteStoryStore(Path(settings.sqlite_path))
    raise ConfigurationError(f"Unsupported story store backend: {settings.backend}")


__all__ = [
    "BaseStoryStore",
    "InMemoryStoryStore",
    "SQLiteStoryStore",
    "build_snapshot",
    "get_story_store",
]
