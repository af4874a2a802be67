"""
Data types for the shard store.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, Iterator, Optional, TypeVar


VISIBILITIES = ("public", "unlisted", "private", "draft")
STATUSES = ("draft", "published", "archived")

DEFAULT_LANG = "ja"

# Opaque structured documents (thumbnails, seo, ...) held as parsed JSON objects
Document = dict[str, Any]


def utc_now() -> str:
    """Current UTC timestamp in canonical format: YYYY-MM-DDTHH:MM:SS.mmmZ.

    Fixed width with a literal Z suffix, so lexical order is time order.
    """
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def parse_utc_timestamp(ts: str) -> datetime:
    """Parse a stored timestamp string to a timezone-aware UTC datetime."""
    ts = ts.replace("Z", "+00:00")
    dt = datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


_DATE_RE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})")


def normalize_date(value: str) -> str:
    """
    Normalize a display date to YYYY-MM-DD.

    Accepts ``2026-01-15``, ``2026/01/15`` and full ISO timestamps.

    Raises:
        ValueError: If the value is not a valid calendar date
    """
    m = _DATE_RE.match((value or "").strip())
    if not m:
        raise ValueError(f"Invalid date format: {value!r}. Use YYYY-MM-DD")
    year, month, day = (int(g) for g in m.groups())
    try:
        return datetime(year, month, day).strftime("%Y-%m-%d")
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}") from None


# ---------------------------------------------------------------------------
# Content aggregate
# ---------------------------------------------------------------------------

@dataclass
class Asset:
    """An ordered media reference attached to a content item."""
    src: str
    type: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    alt: Optional[str] = None
    meta: Optional[Document] = None


@dataclass
class Link:
    """An ordered outbound link."""
    href: str
    label: Optional[str] = None
    rel: Optional[str] = None
    primary: bool = False
    description: Optional[str] = None


@dataclass
class Relation:
    """A directed, typed edge from the owning content to another content id."""
    target_id: str
    type: str
    bidirectional: bool = False
    weight: float = 1.0
    meta: Optional[Document] = None


@dataclass
class Searchable:
    full_text: Optional[str] = None
    tokens: Optional[list[str]] = None


@dataclass
class Versioning:
    latest_id: Optional[str] = None
    previous_id: Optional[str] = None
    history_ref: Optional[str] = None


@dataclass
class Permissions:
    readers: Optional[list[str]] = None
    editors: Optional[list[str]] = None
    owner: Optional[str] = None


@dataclass
class Content:
    """
    The full content aggregate stored in one shard.

    Holds the content row plus its tags, assets, links and relations.
    Timestamps left empty are filled in when the aggregate is saved.
    """
    id: str
    title: str
    public_url: Optional[str] = None
    summary: Optional[str] = None
    lang: str = DEFAULT_LANG
    tags: list[str] = field(default_factory=list)

    # Hierarchy
    parent_id: Optional[str] = None
    ancestor_ids: Optional[list[str]] = None
    path: Optional[str] = None
    depth: int = 0
    order: int = 0
    child_count: int = 0

    # State
    visibility: str = "draft"
    status: str = "draft"
    published_at: Optional[str] = None
    unpublished_at: Optional[str] = None

    searchable: Optional[Searchable] = None
    version: int = 1
    versioning: Optional[Versioning] = None
    permissions: Optional[Permissions] = None

    # Opaque structured documents
    thumbnails: Optional[Document] = None
    i18n: Optional[Document] = None
    seo: Optional[Document] = None
    cache: Optional[Document] = None
    private: Optional[Document] = None
    ext: Optional[Document] = None

    assets: list[Asset] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)
    relations: list[Relation] = field(default_factory=list)

    created_at: str = ""
    updated_at: str = ""
    last_accessed_at: Optional[str] = None

    def __post_init__(self):
        # All-empty groups have no columns of their own and read back as None
        if self.versioning == Versioning():
            self.versioning = None
        if self.permissions == Permissions():
            self.permissions = None


@dataclass
class ContentSummary:
    """The listing view of a content item, read from its primary row."""
    id: str
    title: str
    summary: Optional[str]
    lang: str
    status: str
    visibility: str
    created_at: str
    updated_at: str
    published_at: Optional[str] = None
    public_url: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    thumbnails: Optional[Document] = None
    seo: Optional[Document] = None


@dataclass
class MarkdownPage:
    """A markdown body stored alongside a content item, unique by slug."""
    slug: str
    body: str
    frontmatter: Document = field(default_factory=dict)
    id: str = ""
    content_id: Optional[str] = None
    html_cache: Optional[str] = None
    path: Optional[str] = None
    lang: str = DEFAULT_LANG
    status: str = "draft"
    version: int = 1
    created_at: str = ""
    updated_at: str = ""
    published_at: Optional[str] = None


@dataclass
class MediaItem:
    """A binary media file stored inside a shard."""
    id: str
    filename: str
    mime_type: str
    data: bytes
    content_id: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    alt: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
    # Byte length of the stored blob; kept when a listing leaves data unloaded
    size: Optional[int] = None

    def __post_init__(self):
        if self.size is None:
            self.size = len(self.data)


@dataclass
class ManualDateEntry:
    """A human-curated display date overriding computed timestamps."""
    content_id: str
    date: str
    updated_at: str


@dataclass
class TagCatalogEntry:
    name: str
    created_at: str
    last_used: Optional[str] = None
    metadata: Optional[Any] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "created_at": self.created_at,
            "last_used": self.last_used,
            "metadata": self.metadata,
        }


@dataclass
class SearchHit:
    """A full-text match inside one shard."""
    content_id: str
    title: str
    source: str  # "content" or "markdown"
    snippet: str
    rank: float
    slug: Optional[str] = None


@dataclass
class ShardInfo:
    id: str
    title: str
    db_file: str
    size: int


@dataclass
class StoreStats:
    total_contents: int
    total_db_files: int
    total_size: int
    contents: list[ShardInfo] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Scan results
# ---------------------------------------------------------------------------

T = TypeVar("T")


@dataclass
class SkippedShard:
    """A shard left out of a scan, with the reason it could not be read."""
    path: str
    reason: str


@dataclass
class ScanResult(Generic[T]):
    """
    Outcome of a store-wide scan.

    ``status`` is ``ok`` when every shard was read, ``partial`` when some
    shards were skipped, and ``failed`` when the shard directory itself
    could not be listed. Callers decide whether a partial result is
    acceptable; iterating the result yields the items that were read.
    """
    items: list[T] = field(default_factory=list)
    skipped: list[SkippedShard] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def status(self) -> str:
        if self.error is not None:
            return "failed"
        if self.skipped:
            return "partial"
        return "ok"

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)
