"""SQLite-backed story record store."""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import List, Optional

from core import Story
from utils.exceptions import DuplicateCreation, StorageError

from .story_store import BaseStoryStore


logger = logging.getLogger(__name__)


class SQLiteStoryStore(BaseStoryStore):
    """
    Persist story records in one SQLite table.

    (station, video_name) carries a UNIQUE constraint, so two concurrent
    creates for the same pair cannot both insert.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_schema()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(str(self._db_path))
        connection.row_factory = sqlite3.Row
        return connection

    def _initialize_schema(self) -> None:
        with self._connect() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS stories (
                    id TEXT PRIMARY KEY,
                    station TEXT NOT NULL,
                    video_name TEXT NOT NULL,
                    video_id TEXT,
                    has_topics INTEGER NOT NULL DEFAULT 0,
                    document TEXT NOT NULL,
                    UNIQUE (station, video_name)
                )
                """
            )
            connection.execute("CREATE INDEX IF NOT EXISTS idx_stories_video_id ON stories (video_id)")

    @staticmethod
    def _row_to_story(row: Optional[sqlite3.Row]) -> Optional[Story]:
        if row is None:
            return None
        return Story.model_validate(json.loads(row["document"]))

    @staticmethod
    def _columns(story: Story) -> tuple:
        return (
            story.id,
            story.partition_key,
            story.video_name,
            story.video_id,
            1 if story.topics else 0,
            story.model_dump_json(by_alias=True),
        )

    def create(self, story: Story) -> Story:
        try:
            self._insert(story)
        except DuplicateCreation as exc:
            existing = self.get(exc.existing_id or "", story.partition_key)
            if existing is None:
                raise StorageError("story insert conflicted but no row found", {"id": story.id}) from exc
            logger.info("story_exists station=%s video=%s id=%s", story.partition_key, story.video_name, existing.id)
            return existing
        return story.model_copy(deep=True)

    def _insert(self, story: Story) -> None:
        """Insert one row. Raises DuplicateCreation when the (station, video name) pair is taken."""
        with self._connect() as connection:
            cursor = connection.execute(
                """
                INSERT INTO stories (id, station, video_name, video_id, has_topics, document)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (station, video_name) DO NOTHING
                """,
                self._columns(story),
            )
            if cursor.rowcount == 1:
                return
            row = connection.execute(
                "SELECT id FROM stories WHERE station = ? AND video_name = ?",
                (story.partition_key, story.video_name),
            ).fetchone()
        raise DuplicateCreation(
            "story already exists",
            existing_id=row["id"] if row is not None else None,
            station=story.partition_key,
            video_name=story.video_name,
        )

    def find_by_video_id(self, video_id: str) -> Optional[Story]:
        with self._connect() as connection:
            row = connection.execute(
                "SELECT document FROM stories WHERE video_id = ? ORDER BY rowid LIMIT 1",
                (video_id,),
            ).fetchone()
        return self._row_to_story(row)

    def find_by_video_name(self, video_name: str, station: Optional[str] = None) -> Optional[Story]:
        with self._connect() as connection:
            if station is None:
                row = connection.execute(
                    "SELECT document FROM stories WHERE video_name = ? ORDER BY rowid LIMIT 1",
                    (video_name,),
                ).fetchone()
            else:
                row = connection.execute(
                    "SELECT document FROM stories WHERE video_name = ? AND station = ?",
                    (video_name, station),
                ).fetchone()
        return self._row_to_story(row)

    def get(self, story_id: str, partition_key: str) -> Optional[Story]:
        with self._connect() as connection:
            row = connection.execute(
                "SELECT document FROM stories WHERE id = ? AND station = ?",
                (story_id, partition_key),
            ).fetchone()
        return self._row_to_story(row)

    def update(self, story: Story) -> Story:
        with self._connect() as connection:
            cursor = connection.execute(
                """
                UPDATE stories
                SET video_name = ?, video_id = ?, has_topics = ?, document = ?
                WHERE id = ? AND station = ?
                """,
                (
                    story.video_name,
                    story.video_id,
                    1 if story.topics else 0,
                    story.model_dump_json(by_alias=True),
                    story.id,
                    story.partition_key,
                ),
            )
        if cursor.rowcount != 1:
            raise StorageError("story not found", {"id": story.id, "station": story.partition_key})
        return story.model_copy(deep=True)

    def delete(self, story_id: str, partition_key: str) -> bool:
        with self._connect() as connection:
            cursor = connection.execute(
                "DELETE FROM stories WHERE id = ? AND station = ?",
                (story_id, partition_key),
            )
        return cursor.rowcount == 1

    def _stories_with_topics(self, exclude_station: Optional[str] = None) -> List[Story]:
        with self._connect() as connection:
            if exclude_station is None:
                rows = connection.execute("SELECT document FROM stories WHERE has_topics = 1").fetchall()
            else:
                rows = connection.execute(
                    "SELECT document FROM stories WHERE has_topics = 1 AND station != ?",
                    (exclude_station,),
                ).fetchall()
        return [story for story in (self._row_to_story(row) for row in rows) if story is not None]
