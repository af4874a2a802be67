"""
Markdown page storage inside a content shard.

Pages are unique by slug within their shard and carry their own version
counter, independent of the owning content's version.
"""

import json
import logging
import sqlite3
import uuid
from typing import Optional

from .content_mapper import safe_json_loads
from .shard_store import ShardStore
from .types import STATUSES, MarkdownPage, SearchHit, utc_now

logger = logging.getLogger(__name__)


def fts_query(text: str) -> str:
    """
    Turn free text into an FTS5 query of quoted terms.

    Quoting every term keeps user input from being parsed as FTS syntax
    (column filters, NEAR, unbalanced quotes).
    """
    terms = [t.replace('"', '""') for t in text.split()]
    return " ".join(f'"{t}"' for t in terms if t)


def _row_to_page(row: sqlite3.Row) -> MarkdownPage:
    return MarkdownPage(
        id=row["id"],
        content_id=row["content_id"],
        slug=row["slug"],
        frontmatter=safe_json_loads(row["frontmatter"]) or {},
        body=row["body"],
        html_cache=row["html_cache"],
        path=row["path"],
        lang=row["lang"],
        status=row["status"],
        version=row["version"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        published_at=row["published_at"],
    )


def copy_pages(src: sqlite3.Connection, dst: sqlite3.Connection, new_content_id: str) -> int:
    """Copy every page of one shard into another, re-keyed to a new content id."""
    rows = src.execute("SELECT * FROM markdown_pages ORDER BY rowid").fetchall()
    for row in rows:
        dst.execute(
            "INSERT INTO markdown_pages (id, content_id, slug, frontmatter, body, html_cache, "
            "path, lang, status, version, created_at, updated_at, published_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (row["id"], new_content_id if row["content_id"] else None, row["slug"],
             row["frontmatter"], row["body"], row["html_cache"], row["path"], row["lang"],
             row["status"], row["version"], row["created_at"], row["updated_at"],
             row["published_at"]),
        )
    return len(rows)


class MarkdownPageStore:
    """Markdown bodies stored in the shard of their owning content."""

    def __init__(self, shards: ShardStore):
        self._shards = shards

    def put(self, content_id: str, page: MarkdownPage) -> MarkdownPage:
        """
        Insert or update a page by slug.

        Preserves id and created_at of an existing page. The page version is
        bumped only when the body changes.
        """
        if not page.slug:
            raise ValueError("Page slug is required")
        if page.status not in STATUSES:
            raise ValueError(f"Invalid page status: {page.status!r}")

        now = utc_now()
        with self._shards.open(content_id) as shard:
            existing = shard.conn.execute(
                "SELECT id, body, version, created_at FROM markdown_pages WHERE slug = ?",
                (page.slug,),
            ).fetchone()

            if existing is None:
                page_id = page.id or f"page_{uuid.uuid4().hex}"
                version = page.version or 1
                created_at = page.created_at or now
            else:
                page_id = existing["id"]
                created_at = existing["created_at"]
                version = existing["version"]
                if existing["body"] != page.body:
                    version += 1

            shard.conn.execute(
                """
                INSERT INTO markdown_pages (id, content_id, slug, frontmatter, body, html_cache,
                  path, lang, status, version, created_at, updated_at, published_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(slug) DO UPDATE SET
                  frontmatter = excluded.frontmatter,
                  body = excluded.body,
                  html_cache = excluded.html_cache,
                  path = excluded.path,
                  lang = excluded.lang,
                  status = excluded.status,
                  version = excluded.version,
                  updated_at = excluded.updated_at,
                  published_at = excluded.published_at
                """,
                (page_id, content_id, page.slug,
                 json.dumps(page.frontmatter or {}, ensure_ascii=False), page.body,
                 page.html_cache, page.path, page.lang, page.status, version,
                 created_at, now, page.published_at),
            )
            row = shard.conn.execute(
                "SELECT * FROM markdown_pages WHERE slug = ?", (page.slug,)
            ).fetchone()
            return _row_to_page(row)

    def get(self, content_id: str, slug: str) -> Optional[MarkdownPage]:
        shard = self._shards.open_existing(content_id)
        if shard is None:
            return None
        with shard:
            row = shard.conn.execute(
                "SELECT * FROM markdown_pages WHERE slug = ?", (slug,)
            ).fetchone()
            return _row_to_page(row) if row else None

    def delete(self, content_id: str, slug: str) -> bool:
        """
        Returns:
            True if the page existed and was deleted
        """
        if not self._shards.exists(content_id):
            return False
        with self._shards.open(content_id) as shard:
            cursor = shard.conn.execute("DELETE FROM markdown_pages WHERE slug = ?", (slug,))
            return cursor.rowcount > 0

    def search(self, content_id: str, query: str, limit: int = 10) -> list[SearchHit]:
        """Full-text search over the page bodies of one shard."""
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        match = fts_query(query)
        if not match:
            return []
        shard = self._shards.open_existing(content_id)
        if shard is None:
            return []
        with shard:
            return search_pages(shard.conn, match, limit)

    # Kept last: later annotations in this class body would resolve "list" to this method
    def list(self, content_id: str) -> list[MarkdownPage]:
        shard = self._shards.open_existing(content_id)
        if shard is None:
            return []
        with shard:
            rows = shard.conn.execute(
                "SELECT * FROM markdown_pages ORDER BY slug"
            ).fetchall()
            return [_row_to_page(r) for r in rows]


def search_pages(conn: sqlite3.Connection, match: str, limit: int) -> list[SearchHit]:
    """Run an already-quoted FTS query against ``markdown_pages_fts``."""
    rows = conn.execute(
        """
        SELECT p.content_id, p.slug, p.frontmatter,
               snippet(markdown_pages_fts, 2, '[', ']', '...', 12) AS snip,
               bm25(markdown_pages_fts) AS score
        FROM markdown_pages_fts
        JOIN markdown_pages p ON p.rowid = markdown_pages_fts.rowid
        WHERE markdown_pages_fts MATCH ?
        ORDER BY score
        LIMIT ?
        """,
        (match, limit),
    ).fetchall()
    hits = []
    for r in rows:
        frontmatter = safe_json_loads(r["frontmatter"])
        title = frontmatter.get("title") if isinstance(frontmatter, dict) else None
        hits.append(SearchHit(
            content_id=r["content_id"] or "",
            title=title or r["slug"],
            source="markdown",
            snippet=r["snip"],
            rank=r["score"],
            slug=r["slug"],
        ))
    return hits
