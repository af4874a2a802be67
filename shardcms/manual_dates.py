"""
Manual display-date overrides.

Each shard may hold one human-curated date for its content (backdated or
migrated items), kept apart from the computed created/updated timestamps.
There is no central table, so listing scans every shard.
"""

import logging
from typing import Optional

from .index import scan_shards
from .shard_store import ShardHandle, ShardStore
from .types import ManualDateEntry, ScanResult, normalize_date, utc_now

logger = logging.getLogger(__name__)


class ManualDateOverrideStore:
    """Per-shard ``manual_dates`` table."""

    def __init__(self, shards: ShardStore):
        self._shards = shards

    def get(self, content_id: str) -> Optional[ManualDateEntry]:
        """The override for a content item. Never creates a shard."""
        shard = self._shards.open_existing(content_id)
        if shard is None:
            return None
        with shard:
            row = shard.conn.execute(
                "SELECT content_id, date, updated_at FROM manual_dates WHERE content_id = ?",
                (content_id,),
            ).fetchone()
            return ManualDateEntry(**dict(row)) if row else None

    def set(self, content_id: str, date: str) -> ManualDateEntry:
        """
        Insert or replace the override for a content item.

        Raises:
            ValueError: If the content id is empty or the date cannot be parsed
        """
        if not content_id:
            raise ValueError("Content id is required")
        entry = ManualDateEntry(content_id=content_id, date=normalize_date(date), updated_at=utc_now())
        with self._shards.open(content_id) as shard:
            shard.conn.execute(
                """
                INSERT INTO manual_dates (content_id, date, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(content_id) DO UPDATE SET
                  date = excluded.date,
                  updated_at = excluded.updated_at
                """,
                (entry.content_id, entry.date, entry.updated_at),
            )
        logger.info("Set manual date for %s: %s", content_id, entry.date)
        return entry

    def remove(self, content_id: str) -> bool:
        """
        Returns:
            True if an override existed and was removed
        """
        if not self._shards.exists(content_id):
            return False
        with self._shards.open(content_id) as shard:
            cursor = shard.conn.execute(
                "DELETE FROM manual_dates WHERE content_id = ?", (content_id,)
            )
            return cursor.rowcount > 0

    def list_all(self) -> ScanResult[ManualDateEntry]:
        """Every override in the store, most recently updated first."""
        def read(shard: ShardHandle) -> list[ManualDateEntry]:
            rows = shard.conn.execute(
                "SELECT content_id, date, updated_at FROM manual_dates"
            ).fetchall()
            return [ManualDateEntry(**dict(r)) for r in rows]

        result = scan_shards(self._shards, read, "manual dates")
        result.items.sort(key=lambda e: e.updated_at, reverse=True)
        return result
