"""
One SQLite database per content item.

A content id maps to ``contents/content-<sanitized-id>.db`` under the data
directory. Shards are created lazily the first time an id is opened; every
later open brings the schema up to date.
"""

import logging
import re
import sqlite3
from pathlib import Path
from typing import Iterator, Optional

from .config import ShardConfig
from .errors import SchemaError, ShardOpenError
from .schema import ensure_upgrades, initialize_schema

logger = logging.getLogger(__name__)

SHARD_PREFIX = "content-"
SHARD_SUFFIX = ".db"

# Companion files SQLite may leave next to a database
COMPANION_SUFFIXES = ("-wal", "-shm", "-journal")

_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_id(content_id: str) -> str:
    """Replace every character outside ``[A-Za-z0-9_-]`` with ``_``."""
    return _UNSAFE_CHARS_RE.sub("_", content_id)


class ShardHandle:
    """
    An open shard connection.

    Use as a context manager: the transaction is committed on a clean exit,
    rolled back on an exception, and the connection is closed either way.
    """

    def __init__(self, conn: sqlite3.Connection, path: Path, created: bool):
        self.conn = conn
        self.path = path
        self.created = created

    def close(self) -> None:
        """Close the database connection."""
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def __enter__(self) -> "ShardHandle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if self.conn is not None:
                if exc_type is None:
                    self.conn.commit()
                else:
                    self.conn.rollback()
        finally:
            self.close()
        return False


class ShardStore:
    """
    Maps content ids to shard files and opens them.

    Holds no open connections itself; every ``open`` returns a fresh
    handle the caller must close.
    """

    def __init__(self, contents_dir: Path, config: Optional[ShardConfig] = None):
        """
        Args:
            contents_dir: Directory holding the shard files
            config: Pragmas applied to every connection
        """
        self._dir = Path(contents_dir)
        self._config = config or ShardConfig()

    @property
    def contents_dir(self) -> Path:
        return self._dir

    def shard_path(self, content_id: str) -> Path:
        """Deterministic path of the shard for a content id."""
        return self._dir / f"{SHARD_PREFIX}{sanitize_id(content_id)}{SHARD_SUFFIX}"

    def exists(self, content_id: str) -> bool:
        return self.shard_path(content_id).exists()

    def iter_shard_paths(self) -> Iterator[Path]:
        """
        Yield shard files in name order.

        Raises:
            OSError: If the contents directory cannot be listed
        """
        if not self._dir.exists():
            return
        for entry in sorted(self._dir.iterdir()):
            name = entry.name
            if name.startswith(SHARD_PREFIX) and name.endswith(SHARD_SUFFIX) and entry.is_file():
                yield entry

    def open(self, content_id: str) -> ShardHandle:
        """
        Open the shard for a content id, creating it if needed.

        Raises:
            ShardOpenError: If the database cannot be opened or its schema
                cannot be initialized or upgraded
        """
        return self.open_path(self.shard_path(content_id))

    def open_existing(self, content_id: str) -> Optional[ShardHandle]:
        """
        Open the shard for a read. Never creates one.

        Returns:
            A handle, or None if the shard does not exist or cannot be
            opened (logged as a warning)
        """
        path = self.shard_path(content_id)
        if not path.exists():
            return None
        try:
            return self.open_path(path)
        except ShardOpenError as e:
            logger.warning("Treating unreadable shard as missing: %s", e)
            return None

    def open_path(self, path: Path) -> ShardHandle:
        """Open a shard file found on disk (or create it if absent)."""
        is_new = not path.exists()
        if is_new:
            self._dir.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(str(path))
        except sqlite3.Error as e:
            raise ShardOpenError(path, str(e)) from e
        conn.row_factory = sqlite3.Row

        self._apply_pragmas(conn, path)

        try:
            if is_new:
                logger.debug("Creating shard %s", path.name)
                initialize_schema(conn)
            else:
                ensure_upgrades(conn)
        except SchemaError as e:
            conn.close()
            raise ShardOpenError(path, str(e)) from e

        return ShardHandle(conn, path, created=is_new)

    def _apply_pragmas(self, conn: sqlite3.Connection, path: Path) -> None:
        """Best-effort connection settings; failures are not fatal."""
        try:
            conn.execute(f"PRAGMA journal_mode={self._config.journal_mode}")
        except sqlite3.Error as e:
            logger.warning("Failed to set journal_mode on %s: %s", path.name, e)
        try:
            conn.execute(f"PRAGMA busy_timeout={int(self._config.busy_timeout_ms)}")
        except sqlite3.Error as e:
            logger.warning("Failed to set busy_timeout on %s: %s", path.name, e)
