"""
Store-wide reads without a central manifest.

Listings, search and stats are computed by opening every shard file in
turn. Opening goes through ShardStore, so every scan also upgrades old
shards. A shard that cannot be opened or read is left out of the result
and reported in ``ScanResult.skipped``; the rest of the scan continues.

Point lookups resolve the shard path directly and touch only that file.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Callable, Optional, TypeVar

from .content_mapper import get_full_content, get_primary_row, get_tags, row_to_summary
from .errors import ShardCMSError
from .pages import fts_query, search_pages
from .shard_store import COMPANION_SUFFIXES, ShardHandle, ShardStore
from .types import (
    Content,
    ContentSummary,
    ScanResult,
    SearchHit,
    ShardInfo,
    SkippedShard,
    StoreStats,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def scan_shards(
    shards: ShardStore,
    read: Callable[[ShardHandle], list[T]],
    what: str = "shard",
) -> ScanResult[T]:
    """
    Apply ``read`` to every shard, one open connection at a time.

    Errors from a single shard are logged and recorded as skipped.
    Only a failure to list the directory fails the whole scan.
    """
    result: ScanResult[T] = ScanResult()
    try:
        paths = list(shards.iter_shard_paths())
    except OSError as e:
        logger.error("Failed to list shard directory %s: %s", shards.contents_dir, e)
        result.error = str(e)
        return result

    for path in paths:
        try:
            with shards.open_path(path) as shard:
                result.items.extend(read(shard))
        except (ShardCMSError, sqlite3.Error, OSError) as e:
            logger.warning("Skipping %s while reading %s: %s", path.name, what, e)
            result.skipped.append(SkippedShard(path=str(path), reason=str(e)))
    return result


def shard_size(path: Path) -> int:
    """Bytes used by a shard including its companion files."""
    total = 0
    for candidate in [path] + [Path(f"{path}{s}") for s in COMPANION_SUFFIXES]:
        try:
            total += candidate.stat().st_size
        except FileNotFoundError:
            continue
    return total


class AggregateIndex:
    """Listings and lookups computed from the shard files on disk."""

    def __init__(self, shards: ShardStore):
        self._shards = shards

    def list_all(self) -> ScanResult[ContentSummary]:
        """
        Summaries of every content item, most recently created first.

        Shards without a content row are ignored.
        """
        def read(shard: ShardHandle) -> list[ContentSummary]:
            row = get_primary_row(shard.conn)
            if row is None:
                logger.debug("Shard %s has no content row", shard.path.name)
                return []
            return [row_to_summary(row, get_tags(shard.conn, row["id"]))]

        result = scan_shards(self._shards, read, "content")
        result.items.sort(key=lambda s: s.created_at or "", reverse=True)
        return result

    def get_one(self, content_id: str) -> Optional[Content]:
        """
        Full content for one id, reading only its shard.

        Never creates a shard. An unreadable shard is logged and reported
        as not found.
        """
        shard = self._shards.open_existing(content_id)
        if shard is None:
            return None
        try:
            with shard:
                return get_full_content(shard.conn, content_id)
        except sqlite3.Error as e:
            logger.warning("Failed to read content %s: %s", content_id, e)
            return None

    def search(self, query: str, limit: int = 20) -> ScanResult[SearchHit]:
        """
        Full-text search over content text and markdown bodies of every shard.

        Hits are ranked by bm25 score; lower is better.

        Raises:
            ValueError: If limit is less than 1
        """
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        match = fts_query(query)
        if not match:
            return ScanResult()

        def read(shard: ShardHandle) -> list[SearchHit]:
            rows = shard.conn.execute(
                """
                SELECT c.id, c.title,
                       snippet(contents_fts, -1, '[', ']', '...', 12) AS snip,
                       bm25(contents_fts) AS score
                FROM contents_fts
                JOIN contents c ON c.rowid = contents_fts.rowid
                WHERE contents_fts MATCH ?
                ORDER BY score
                LIMIT ?
                """,
                (match, limit),
            ).fetchall()
            hits = [
                SearchHit(content_id=r["id"], title=r["title"], source="content",
                          snippet=r["snip"], rank=r["score"])
                for r in rows
            ]
            hits.extend(search_pages(shard.conn, match, limit))
            return hits

        result = scan_shards(self._shards, read, "search index")
        result.items.sort(key=lambda h: h.rank)
        del result.items[limit:]
        return result

    def stats(self) -> StoreStats:
        """Shard count and disk usage per content item."""
        def read(shard: ShardHandle) -> list[ShardInfo]:
            row = get_primary_row(shard.conn)
            return [ShardInfo(
                id=row["id"] if row else "",
                title=row["title"] if row else "",
                db_file=shard.path.name,
                size=0,
            )]

        result = scan_shards(self._shards, read, "stats")
        for info in result.items:
            info.size = shard_size(self._shards.contents_dir / info.db_file)
        return StoreStats(
            total_contents=sum(1 for i in result.items if i.id),
            total_db_files=len(result.items) + len(result.skipped),
            total_size=sum(i.size for i in result.items),
            contents=result.items,
        )
