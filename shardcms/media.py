"""
Binary media stored inside a content shard.
"""

import json
import logging
import sqlite3
from typing import Optional

from .content_mapper import safe_json_loads
from .shard_store import ShardStore
from .types import MediaItem, utc_now

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, content_id, filename, mime_type, size, width, height, alt, "
    "description, tags, data, created_at, updated_at"
)


def _row_to_media(row: sqlite3.Row, with_data: bool = True) -> MediaItem:
    tags = safe_json_loads(row["tags"])
    return MediaItem(
        id=row["id"],
        content_id=row["content_id"],
        filename=row["filename"],
        mime_type=row["mime_type"],
        data=bytes(row["data"]) if with_data and row["data"] is not None else b"",
        size=row["size"],
        width=row["width"],
        height=row["height"],
        alt=row["alt"],
        description=row["description"],
        tags=tags if isinstance(tags, list) else [],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def copy_media(src: sqlite3.Connection, dst: sqlite3.Connection, new_content_id: str) -> int:
    """Copy every media row of one shard into another, re-keyed to a new content id."""
    rows = src.execute(f"SELECT {_COLUMNS} FROM media ORDER BY rowid").fetchall()
    for row in rows:
        values = dict(row)
        if values["content_id"]:
            values["content_id"] = new_content_id
        dst.execute(
            f"INSERT INTO media ({_COLUMNS}) VALUES "
            "(:id, :content_id, :filename, :mime_type, :size, :width, :height, :alt, "
            ":description, :tags, :data, :created_at, :updated_at)",
            values,
        )
    return len(rows)


class MediaStore:
    """Per-shard media blobs."""

    def __init__(self, shards: ShardStore):
        self._shards = shards

    def save(self, content_id: str, item: MediaItem) -> MediaItem:
        """Insert or replace a media item, preserving created_at on update."""
        if not item.id:
            raise ValueError("Media id is required")
        item.size = len(item.data)
        now = utc_now()
        with self._shards.open(content_id) as shard:
            existing = shard.conn.execute(
                "SELECT created_at FROM media WHERE id = ?", (item.id,)
            ).fetchone()
            created_at = existing["created_at"] if existing else (item.created_at or now)
            shard.conn.execute(
                f"INSERT OR REPLACE INTO media ({_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (item.id, content_id, item.filename, item.mime_type, item.size,
                 item.width, item.height, item.alt, item.description,
                 json.dumps(item.tags, ensure_ascii=False), sqlite3.Binary(item.data),
                 created_at, now),
            )
        item.content_id = content_id
        item.created_at = created_at
        item.updated_at = now
        return item

    def get(self, content_id: str, media_id: str) -> Optional[MediaItem]:
        shard = self._shards.open_existing(content_id)
        if shard is None:
            return None
        with shard:
            row = shard.conn.execute(
                f"SELECT {_COLUMNS} FROM media WHERE id = ?", (media_id,)
            ).fetchone()
            if row is None:
                logger.debug("Media not found: content_id=%s, media_id=%s", content_id, media_id)
                return None
            return _row_to_media(row)

    def list(self, content_id: str) -> list[MediaItem]:
        """Media metadata for a content item, newest first. Data is not loaded."""
        shard = self._shards.open_existing(content_id)
        if shard is None:
            return []
        with shard:
            rows = shard.conn.execute(
                "SELECT id, content_id, filename, mime_type, size, width, height, alt, "
                "description, tags, NULL AS data, created_at, updated_at "
                "FROM media ORDER BY created_at DESC"
            ).fetchall()
            return [_row_to_media(r, with_data=False) for r in rows]

    def delete(self, content_id: str, media_id: str) -> bool:
        if not self._shards.exists(content_id):
            return False
        with self._shards.open(content_id) as shard:
            cursor = shard.conn.execute("DELETE FROM media WHERE id = ?", (media_id,))
            return cursor.rowcount > 0

    def stats(self, content_id: str) -> dict:
        """Count, total size and count per mime type for one content item."""
        result = {"total_count": 0, "total_size": 0, "by_mime_type": {}}
        shard = self._shards.open_existing(content_id)
        if shard is None:
            return result
        with shard:
            row = shard.conn.execute(
                "SELECT COUNT(*) AS count, COALESCE(SUM(size), 0) AS total FROM media"
            ).fetchone()
            result["total_count"] = row["count"]
            result["total_size"] = row["total"]
            for r in shard.conn.execute(
                "SELECT mime_type, COUNT(*) AS count FROM media GROUP BY mime_type"
            ):
                result["by_mime_type"][r["mime_type"]] = r["count"]
        return result
