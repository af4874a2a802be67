"""
Mapping between the shard schema and the Content aggregate.

This is the only module that (de)serializes JSON columns. Everything
above it works with the dataclasses in ``shardcms.types``.
"""

import json
import logging
import sqlite3
from typing import Any, Optional

from .types import (
    DEFAULT_LANG,
    Asset,
    Content,
    ContentSummary,
    Link,
    Permissions,
    Relation,
    Searchable,
    Versioning,
    utc_now,
)

logger = logging.getLogger(__name__)

# Columns written by save_full_content, in table order
CONTENT_COLUMNS = (
    "id", "title", "public_url", "summary", "lang",
    "parent_id", "ancestor_ids", "path", "depth", "order", "child_count",
    "visibility", "status", "published_at", "unpublished_at",
    "search_full_text", "search_tokens",
    "version", "version_latest_id", "version_previous_id", "version_history_ref",
    "permissions_readers", "permissions_editors", "permissions_owner",
    "thumbnails", "searchable", "i18n", "seo", "cache", "private_data", "ext",
    "created_at", "updated_at", "last_accessed_at",
)


def _quote(column: str) -> str:
    # "order" is a reserved word
    return f'"{column}"' if column == "order" else column


def safe_json_loads(text: Optional[str]) -> Any:
    """Parse a JSON column; empty or malformed values yield None."""
    if not text:
        return None
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        logger.debug("Ignoring malformed JSON column value: %.40r", text)
        return None


def _dumps(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def _as_list(value: Any) -> Optional[list]:
    return value if isinstance(value, list) else None


def _as_dict(value: Any) -> Optional[dict]:
    return value if isinstance(value, dict) else None


# ---------------------------------------------------------------------------
# Content -> row
# ---------------------------------------------------------------------------

def content_to_row(content: Content) -> dict[str, Any]:
    """Flatten a Content aggregate into a ``contents`` row."""
    now = utc_now()
    searchable = content.searchable
    versioning = content.versioning or Versioning()
    permissions = content.permissions or Permissions()

    searchable_doc = None
    if searchable is not None:
        searchable_doc = {"fullText": searchable.full_text, "tokens": searchable.tokens}

    return {
        "id": content.id,
        "title": content.title,
        "public_url": content.public_url,
        "summary": content.summary,
        "lang": content.lang or DEFAULT_LANG,
        "parent_id": content.parent_id,
        "ancestor_ids": _dumps(content.ancestor_ids),
        "path": content.path,
        "depth": content.depth,
        "order": content.order,
        "child_count": content.child_count,
        "visibility": content.visibility,
        "status": content.status,
        "published_at": content.published_at,
        "unpublished_at": content.unpublished_at,
        "search_full_text": searchable.full_text if searchable else None,
        "search_tokens": _dumps(searchable.tokens) if searchable else None,
        "version": content.version,
        "version_latest_id": versioning.latest_id,
        "version_previous_id": versioning.previous_id,
        "version_history_ref": versioning.history_ref,
        "permissions_readers": _dumps(permissions.readers),
        "permissions_editors": _dumps(permissions.editors),
        "permissions_owner": permissions.owner,
        "thumbnails": _dumps(content.thumbnails),
        "searchable": _dumps(searchable_doc),
        "i18n": _dumps(content.i18n),
        "seo": _dumps(content.seo),
        "cache": _dumps(content.cache),
        "private_data": _dumps(content.private),
        "ext": _dumps(content.ext),
        "created_at": content.created_at or now,
        "updated_at": content.updated_at or now,
        "last_accessed_at": content.last_accessed_at,
    }


# ---------------------------------------------------------------------------
# Row -> Content
# ---------------------------------------------------------------------------

def _row_searchable(row: sqlite3.Row) -> Optional[Searchable]:
    full_text = row["search_full_text"]
    tokens = _as_list(safe_json_loads(row["search_tokens"]))
    if full_text is None and tokens is None:
        doc = _as_dict(safe_json_loads(row["searchable"]))
        if doc is None:
            return None
        full_text = doc.get("fullText")
        tokens = _as_list(doc.get("tokens"))
    return Searchable(full_text=full_text, tokens=tokens)


def row_to_content(
    row: sqlite3.Row,
    tags: Optional[list[str]] = None,
    assets: Optional[list[sqlite3.Row]] = None,
    links: Optional[list[sqlite3.Row]] = None,
    relations: Optional[list[sqlite3.Row]] = None,
) -> Content:
    """Rebuild a Content aggregate from its row and related rows."""
    versioning = None
    if row["version_latest_id"] or row["version_previous_id"] or row["version_history_ref"]:
        versioning = Versioning(
            latest_id=row["version_latest_id"],
            previous_id=row["version_previous_id"],
            history_ref=row["version_history_ref"],
        )

    permissions = None
    readers = _as_list(safe_json_loads(row["permissions_readers"]))
    editors = _as_list(safe_json_loads(row["permissions_editors"]))
    if readers is not None or editors is not None or row["permissions_owner"]:
        permissions = Permissions(readers=readers, editors=editors, owner=row["permissions_owner"])

    return Content(
        id=row["id"],
        title=row["title"],
        public_url=row["public_url"],
        summary=row["summary"],
        lang=row["lang"] or DEFAULT_LANG,
        tags=list(tags or []),
        parent_id=row["parent_id"],
        ancestor_ids=_as_list(safe_json_loads(row["ancestor_ids"])),
        path=row["path"],
        depth=row["depth"] or 0,
        order=row["order"] or 0,
        child_count=row["child_count"] or 0,
        visibility=row["visibility"] or "draft",
        status=row["status"] or "draft",
        published_at=row["published_at"],
        unpublished_at=row["unpublished_at"],
        searchable=_row_searchable(row),
        version=row["version"] or 1,
        versioning=versioning,
        permissions=permissions,
        thumbnails=_as_dict(safe_json_loads(row["thumbnails"])),
        i18n=_as_dict(safe_json_loads(row["i18n"])),
        seo=_as_dict(safe_json_loads(row["seo"])),
        cache=_as_dict(safe_json_loads(row["cache"])),
        private=_as_dict(safe_json_loads(row["private_data"])),
        ext=_as_dict(safe_json_loads(row["ext"])),
        assets=[
            Asset(
                src=a["src"],
                type=a["type"],
                width=a["width"],
                height=a["height"],
                alt=a["alt"],
                meta=_as_dict(safe_json_loads(a["meta"])),
            )
            for a in assets or []
        ],
        links=[
            Link(
                href=link["href"],
                label=link["label"],
                rel=link["rel"],
                primary=link["is_primary"] == 1,
                description=link["description"],
            )
            for link in links or []
        ],
        relations=[
            Relation(
                target_id=r["target_id"],
                type=r["type"],
                bidirectional=r["bidirectional"] == 1,
                weight=r["weight"] if r["weight"] is not None else 1.0,
                meta=_as_dict(safe_json_loads(r["meta"])),
            )
            for r in relations or []
        ],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        last_accessed_at=row["last_accessed_at"],
    )


def row_to_summary(row: sqlite3.Row, tags: list[str]) -> ContentSummary:
    """Listing view of a content row."""
    return ContentSummary(
        id=row["id"],
        title=row["title"],
        summary=row["summary"],
        lang=row["lang"] or DEFAULT_LANG,
        status=row["status"] or "draft",
        visibility=row["visibility"] or "draft",
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        published_at=row["published_at"],
        public_url=row["public_url"],
        tags=tags,
        thumbnails=_as_dict(safe_json_loads(row["thumbnails"])),
        seo=_as_dict(safe_json_loads(row["seo"])),
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_tags(conn: sqlite3.Connection, content_id: str) -> list[str]:
    return [
        r["tag"] for r in conn.execute(
            "SELECT tag FROM content_tags WHERE content_id = ? ORDER BY rowid",
            (content_id,),
        )
    ]


def get_primary_row(conn: sqlite3.Connection) -> Optional[sqlite3.Row]:
    """The content row a shard was created for (the first one written)."""
    return conn.execute("SELECT * FROM contents ORDER BY rowid LIMIT 1").fetchone()


def get_full_content(conn: sqlite3.Connection, content_id: str) -> Optional[Content]:
    """
    Read the complete aggregate for a content id.

    Returns:
        Content if a row exists, None otherwise
    """
    row = conn.execute("SELECT * FROM contents WHERE id = ?", (content_id,)).fetchone()
    if row is None:
        return None

    assets = conn.execute(
        'SELECT * FROM content_assets WHERE content_id = ? ORDER BY "order", id',
        (content_id,),
    ).fetchall()
    links = conn.execute(
        'SELECT * FROM content_links WHERE content_id = ? ORDER BY "order", id',
        (content_id,),
    ).fetchall()
    relations = conn.execute(
        "SELECT * FROM content_relations WHERE source_id = ? ORDER BY id",
        (content_id,),
    ).fetchall()

    return row_to_content(row, get_tags(conn, content_id), assets, links, relations)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def save_full_content(conn: sqlite3.Connection, content: Content) -> None:
    """
    Write a Content aggregate, replacing its related rows.

    The row is upserted rather than replaced so the FTS update trigger
    fires instead of a delete the trigger would not see. The caller owns
    the transaction.
    """
    if not content.id:
        raise ValueError("Content id is required")
    if not content.title:
        raise ValueError("Content title is required")

    row = content_to_row(content)
    columns = ", ".join(_quote(c) for c in CONTENT_COLUMNS)
    placeholders = ", ".join(f":{c}" for c in CONTENT_COLUMNS)
    updates = ", ".join(
        f"{_quote(c)} = excluded.{_quote(c)}" for c in CONTENT_COLUMNS if c != "id"
    )
    conn.execute(
        f"INSERT INTO contents ({columns}) VALUES ({placeholders}) "
        f"ON CONFLICT(id) DO UPDATE SET {updates}",
        row,
    )

    cid = content.id

    conn.execute("DELETE FROM content_tags WHERE content_id = ?", (cid,))
    seen: set[str] = set()
    for tag in content.tags:
        if tag in seen:
            continue
        seen.add(tag)
        conn.execute("INSERT INTO content_tags (content_id, tag) VALUES (?, ?)", (cid, tag))

    conn.execute("DELETE FROM content_assets WHERE content_id = ?", (cid,))
    for i, asset in enumerate(content.assets):
        conn.execute(
            'INSERT INTO content_assets (content_id, src, type, width, height, alt, meta, "order") '
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (cid, asset.src, asset.type, asset.width, asset.height, asset.alt,
             _dumps(asset.meta), i),
        )

    conn.execute("DELETE FROM content_links WHERE content_id = ?", (cid,))
    for i, link in enumerate(content.links):
        conn.execute(
            'INSERT INTO content_links (content_id, href, label, rel, is_primary, description, "order") '
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (cid, link.href, link.label, link.rel, 1 if link.primary else 0,
             link.description, i),
        )

    conn.execute("DELETE FROM content_relations WHERE source_id = ?", (cid,))
    for rel in content.relations:
        conn.execute(
            "INSERT INTO content_relations (source_id, target_id, type, bidirectional, weight, meta) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (cid, rel.target_id, rel.type, 1 if rel.bidirectional else 0,
             rel.weight, _dumps(rel.meta)),
        )
