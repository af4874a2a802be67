"""
Shard copy (logical rename) and delete.

Because every content item is its own file, renaming an id is a copy into
a new shard followed by deleting the old one. The old files are removed
only after the new shard has been written and read back.

Preconditions that fail (missing source, existing target) are returned as
a CopyResult rather than raised, so callers can branch on the outcome.
"""

import dataclasses
import logging
import sqlite3
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .content_mapper import get_full_content, save_full_content
from .errors import ShardCMSError
from .media import copy_media
from .pages import copy_pages
from .shard_store import COMPANION_SUFFIXES, ShardStore
from .types import utc_now

logger = logging.getLogger(__name__)


class CopyFailure(str, Enum):
    SAME_ID = "same_id"
    SOURCE_MISSING = "source_missing"
    SOURCE_EMPTY = "source_empty"
    TARGET_EXISTS = "target_exists"
    WRITE_FAILED = "write_failed"


@dataclass
class CopyResult:
    """Outcome of a copy. Truthy when the copy succeeded."""
    ok: bool
    reason: Optional[CopyFailure] = None
    detail: str = ""

    def __bool__(self) -> bool:
        return self.ok


def shard_files(path: Path) -> list[Path]:
    """The main database file and every companion file that exists."""
    candidates = [path] + [Path(f"{path}{suffix}") for suffix in COMPANION_SUFFIXES]
    return [p for p in candidates if p.exists()]


def remove_shard_files(path: Path) -> int:
    """
    Unlink a shard and its companions.

    Returns:
        Number of files removed

    Raises:
        OSError: If a file exists but cannot be removed
    """
    removed = 0
    for candidate in shard_files(path):
        try:
            candidate.unlink()
            removed += 1
        except FileNotFoundError:
            continue
    return removed


class ShardLifecycleManager:
    """Copy and delete whole shards."""

    def __init__(self, shards: ShardStore):
        self._shards = shards

    def copy(self, old_id: str, new_id: str) -> CopyResult:
        """
        Move the complete content aggregate from one id to another.

        Copies the content row with its tags, assets, links and relations,
        plus markdown pages, media and the manual date of the old shard.
        The new aggregate gets ``new_id`` and a fresh updated_at.
        """
        old_path = self._shards.shard_path(old_id)
        new_path = self._shards.shard_path(new_id)

        if old_path == new_path:
            logger.error("Cannot copy %s onto itself (%s)", old_id, new_id)
            return CopyResult(False, CopyFailure.SAME_ID, str(old_path))
        if not old_path.exists():
            logger.error("Content database file not found: %s", old_path)
            return CopyResult(False, CopyFailure.SOURCE_MISSING, str(old_path))
        if new_path.exists():
            logger.error("Content database already exists for new ID: %s", new_id)
            return CopyResult(False, CopyFailure.TARGET_EXISTS, str(new_path))

        try:
            with self._shards.open(old_id) as old_shard:
                content = get_full_content(old_shard.conn, old_id)
                if content is None:
                    logger.error("Content not found in old database: %s", old_id)
                    return CopyResult(False, CopyFailure.SOURCE_EMPTY, old_id)

                renamed = dataclasses.replace(content, id=new_id, updated_at=utc_now())
                with self._shards.open(new_id) as new_shard:
                    save_full_content(new_shard.conn, renamed)
                    copy_pages(old_shard.conn, new_shard.conn, new_id)
                    copy_media(old_shard.conn, new_shard.conn, new_id)
                    date_row = old_shard.conn.execute(
                        "SELECT date, updated_at FROM manual_dates WHERE content_id = ?",
                        (old_id,),
                    ).fetchone()
                    if date_row is not None:
                        new_shard.conn.execute(
                            "INSERT INTO manual_dates (content_id, date, updated_at) VALUES (?, ?, ?)",
                            (new_id, date_row["date"], date_row["updated_at"]),
                        )

            with self._shards.open(new_id) as check:
                if get_full_content(check.conn, new_id) is None:
                    raise ShardCMSError(f"Copied content {new_id} could not be read back")
        except (ShardCMSError, sqlite3.Error, OSError, ValueError) as e:
            logger.error("Failed to copy content database %s -> %s: %s", old_id, new_id, e)
            self.discard(new_path)
            return CopyResult(False, CopyFailure.WRITE_FAILED, str(e))

        try:
            remove_shard_files(old_path)
        except OSError as e:
            # The copy stands; the old files can be removed later
            logger.warning("Failed to delete old database file %s: %s", old_path, e)

        logger.info("Copied content %s -> %s", old_id, new_id)
        return CopyResult(True)

    def delete(self, content_id: str) -> bool:
        """
        Remove a shard and its companion files.

        Returns:
            True if files were removed, False if nothing existed or removal failed
        """
        path = self._shards.shard_path(content_id)
        if not shard_files(path):
            return False
        try:
            remove_shard_files(path)
        except OSError as e:
            logger.error("Failed to delete content database %s: %s", path, e)
            return False
        logger.info("Deleted content %s", content_id)
        return True

    def discard(self, path: Path) -> None:
        """Remove a partially written shard and its companions."""
        try:
            remove_shard_files(path)
        except OSError as e:
            logger.warning("Failed to remove partial shard %s: %s", path, e)
