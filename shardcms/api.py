"""
Core API for the shard store.

ContentStore wires the components for one data directory:

- shards:        ShardStore (id → database file)
- index:         AggregateIndex (listing, lookup, search, stats)
- lifecycle:     ShardLifecycleManager (rename, delete)
- tags:          TagCatalog
- manual_dates:  ManualDateOverrideStore
- pages, media:  per-shard markdown pages and media
"""

import logging
import sqlite3
from pathlib import Path
from typing import Optional

from .config import StoreConfig, load_or_create_config
from .content_mapper import save_full_content
from .index import AggregateIndex
from .lifecycle import CopyResult, ShardLifecycleManager
from .manual_dates import ManualDateOverrideStore
from .media import MediaStore
from .pages import MarkdownPageStore
from .paths import ensure_directory, resolve_data_dir
from .shard_store import ShardStore
from .tag_catalog import TagCatalog
from .types import STATUSES, VISIBILITIES, Content, ContentSummary, ScanResult, utc_now

logger = logging.getLogger(__name__)


class ContentStore:
    """
    Content repository backed by one SQLite shard per content item.

    Example:
        store = ContentStore("/srv/site/data")
        store.put(Content(id="post-1", title="Hello"))
        for summary in store.list_all():
            print(summary.title)
    """

    def __init__(
        self,
        data_dir: Optional[str | Path] = None,
        *,
        ops_log: bool = False,
    ) -> None:
        """
        Open or create a store.

        Args:
            data_dir: Storage root. Resolved from the environment and
                conventional locations if not given.
            ops_log: Attach a rotating operations log in the data directory.
        """
        if data_dir is None:
            self._data_dir = resolve_data_dir()
        else:
            self._data_dir = Path(data_dir).resolve()
            ensure_directory(self._data_dir)

        self._config: StoreConfig = load_or_create_config(self._data_dir)
        ensure_directory(self._config.contents_dir)

        self._ops_log_handler = None
        if ops_log:
            from .logging_config import configure_ops_log
            self._ops_log_handler = configure_ops_log(self._data_dir)

        self.shards = ShardStore(self._config.contents_dir, self._config.shards)
        self.index = AggregateIndex(self.shards)
        self.lifecycle = ShardLifecycleManager(self.shards)
        self.tags = TagCatalog(self._config.tag_catalog_path)
        self.manual_dates = ManualDateOverrideStore(self.shards)
        self.pages = MarkdownPageStore(self.shards)
        self.media = MediaStore(self.shards)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def config(self) -> StoreConfig:
        return self._config

    # -------------------------------------------------------------------------
    # ContentRepository
    # -------------------------------------------------------------------------

    def list_all(self) -> ScanResult[ContentSummary]:
        return self.index.list_all()

    def get_by_id(self, id: str) -> Optional[Content]:
        return self.index.get_one(id)

    def put(self, content: Content) -> Content:
        """
        Create or replace a content item in its shard.

        Preserves created_at of an existing item unless one is given, sets
        updated_at, and records the item's tags in the tag catalog.

        Raises:
            ValueError: If id or title is empty, or status or visibility is
                not a known value. Nothing is written to disk.
        """
        if not content.id:
            raise ValueError("Content id is required")
        if not content.title:
            raise ValueError("Content title is required")
        if content.status not in STATUSES:
            raise ValueError(f"Invalid status: {content.status!r}")
        if content.visibility not in VISIBILITIES:
            raise ValueError(f"Invalid visibility: {content.visibility!r}")

        now = utc_now()
        shard = self.shards.open(content.id)
        try:
            with shard:
                if not content.created_at:
                    row = shard.conn.execute(
                        "SELECT created_at FROM contents WHERE id = ?", (content.id,)
                    ).fetchone()
                    content.created_at = row["created_at"] if row else now
                content.updated_at = now
                if not content.lang:
                    content.lang = self._config.shards.default_lang
                save_full_content(shard.conn, content)
        except (sqlite3.Error, ValueError):
            # A shard created by this call must not outlive the failed write
            if shard.created:
                self.lifecycle.discard(shard.path)
            raise

        for tag in content.tags:
            if tag.strip():
                self.tags.upsert(tag)
        logger.info("Saved content %s", content.id)
        return content

    def delete(self, id: str) -> bool:
        return self.lifecycle.delete(id)

    def rename(self, old_id: str, new_id: str) -> CopyResult:
        """Move a content item to a new id (copy, then delete the old shard)."""
        return self.lifecycle.copy(old_id, new_id)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Detach the operations log, if any. Shards hold no open connections."""
        if self._ops_log_handler is not None:
            logging.getLogger("shardcms").removeHandler(self._ops_log_handler)
            self._ops_log_handler.close()
            self._ops_log_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
