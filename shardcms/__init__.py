"""
shardcms

Storage layer for a personal-site CMS. Every content item lives in its own
SQLite file (a shard) with its tags, relations, assets, links, markdown
pages, media and FTS5 indexes. Store-wide views are computed by scanning
the shard files; a JSON tag catalog is kept alongside.

Quick Start:
    from shardcms import ContentStore, Content

    store = ContentStore()  # resolves the data directory
    store.put(Content(id="post-1", title="Hello"))
    store.rename("post-1", "hello-world")
    summaries = store.list_all()

Environment Variables:
    SHARDCMS_DATA_DIR   - Storage root (also CONTENT_DATA_DIR, PORTFOLIO_DATA_DIR)
    SHARDCMS_VERBOSE    - Set to 1 for debug logging in the CLI
"""

from .api import ContentStore
from .lifecycle import CopyFailure, CopyResult
from .types import (
    Asset,
    Content,
    ContentSummary,
    Link,
    ManualDateEntry,
    MarkdownPage,
    MediaItem,
    Relation,
    ScanResult,
    TagCatalogEntry,
)

__version__ = "0.1.0"
__all__ = [
    "ContentStore",
    "Content",
    "ContentSummary",
    "Asset",
    "Link",
    "Relation",
    "MarkdownPage",
    "MediaItem",
    "ManualDateEntry",
    "TagCatalogEntry",
    "ScanResult",
    "CopyResult",
    "CopyFailure",
]
