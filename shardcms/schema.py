"""
Per-shard relational schema.

Every shard carries the same schema: the content row, its tag, relation,
asset and link tables, markdown pages, media, manual dates, and two FTS5
indexes kept in step with their base tables by triggers.

Schema evolution is additive only. Tables introduced after a shard was
created are added on open with ``CREATE ... IF NOT EXISTS``; existing
tables, columns and rows are never altered. ``PRAGMA user_version`` records
the last applied step so current shards skip the upgrade entirely.
"""

import logging
import sqlite3

from .errors import SchemaError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 3

CORE_TABLES = (
    "contents",
    "content_tags",
    "content_relations",
    "content_assets",
    "content_links",
    "markdown_pages",
    "contents_fts",
    "markdown_pages_fts",
)

CONTENT_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS contents (
  id TEXT PRIMARY KEY,
  title TEXT NOT NULL,
  public_url TEXT,
  summary TEXT,
  lang TEXT DEFAULT 'ja',
  parent_id TEXT,
  ancestor_ids TEXT,
  path TEXT,
  depth INTEGER DEFAULT 0,
  "order" INTEGER DEFAULT 0,
  child_count INTEGER DEFAULT 0,
  visibility TEXT DEFAULT 'draft' CHECK(visibility IN ('public', 'unlisted', 'private', 'draft')),
  status TEXT DEFAULT 'draft' CHECK(status IN ('draft', 'published', 'archived')),
  published_at TEXT,
  unpublished_at TEXT,
  search_full_text TEXT,
  search_tokens TEXT,
  version INTEGER DEFAULT 1,
  version_latest_id TEXT,
  version_previous_id TEXT,
  version_history_ref TEXT,
  permissions_readers TEXT,
  permissions_editors TEXT,
  permissions_owner TEXT,
  thumbnails TEXT,
  searchable TEXT,
  i18n TEXT,
  seo TEXT,
  cache TEXT,
  private_data TEXT,
  ext TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  last_accessed_at TEXT
);

CREATE TABLE IF NOT EXISTS content_tags (
  content_id TEXT NOT NULL,
  tag TEXT NOT NULL,
  PRIMARY KEY (content_id, tag),
  FOREIGN KEY (content_id) REFERENCES contents(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_content_tags_tag ON content_tags(tag);

CREATE TABLE IF NOT EXISTS content_relations (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  source_id TEXT NOT NULL,
  target_id TEXT NOT NULL,
  type TEXT NOT NULL,
  bidirectional INTEGER DEFAULT 0,
  weight REAL DEFAULT 1.0,
  meta TEXT
);
CREATE INDEX IF NOT EXISTS idx_content_relations_source ON content_relations(source_id);
CREATE INDEX IF NOT EXISTS idx_content_relations_target ON content_relations(target_id);

CREATE TABLE IF NOT EXISTS content_assets (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  content_id TEXT NOT NULL,
  src TEXT NOT NULL,
  type TEXT,
  width INTEGER,
  height INTEGER,
  alt TEXT,
  meta TEXT,
  "order" INTEGER DEFAULT 0,
  FOREIGN KEY (content_id) REFERENCES contents(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_content_assets_content ON content_assets(content_id);

CREATE TABLE IF NOT EXISTS content_links (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  content_id TEXT NOT NULL,
  href TEXT NOT NULL,
  label TEXT,
  rel TEXT,
  is_primary INTEGER DEFAULT 0,
  description TEXT,
  "order" INTEGER DEFAULT 0,
  FOREIGN KEY (content_id) REFERENCES contents(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_content_links_content ON content_links(content_id);

CREATE VIRTUAL TABLE IF NOT EXISTS contents_fts USING fts5(
  id UNINDEXED,
  title,
  summary,
  search_full_text,
  content=contents,
  content_rowid=rowid
);

CREATE TRIGGER IF NOT EXISTS contents_fts_insert AFTER INSERT ON contents BEGIN
  INSERT INTO contents_fts(rowid, id, title, summary, search_full_text)
  VALUES (new.rowid, new.id, new.title, new.summary, new.search_full_text);
END;

CREATE TRIGGER IF NOT EXISTS contents_fts_delete AFTER DELETE ON contents BEGIN
  INSERT INTO contents_fts(contents_fts, rowid, id, title, summary, search_full_text)
  VALUES ('delete', old.rowid, old.id, old.title, old.summary, old.search_full_text);
END;

CREATE TRIGGER IF NOT EXISTS contents_fts_update AFTER UPDATE ON contents BEGIN
  INSERT INTO contents_fts(contents_fts, rowid, id, title, summary, search_full_text)
  VALUES ('delete', old.rowid, old.id, old.title, old.summary, old.search_full_text);
  INSERT INTO contents_fts(rowid, id, title, summary, search_full_text)
  VALUES (new.rowid, new.id, new.title, new.summary, new.search_full_text);
END;

CREATE TABLE IF NOT EXISTS markdown_pages (
  id TEXT PRIMARY KEY,
  content_id TEXT,
  slug TEXT NOT NULL UNIQUE,
  frontmatter TEXT NOT NULL,
  body TEXT NOT NULL,
  html_cache TEXT,
  path TEXT,
  lang TEXT DEFAULT 'ja',
  status TEXT DEFAULT 'draft' CHECK(status IN ('draft', 'published', 'archived')),
  version INTEGER DEFAULT 1,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  published_at TEXT,
  FOREIGN KEY (content_id) REFERENCES contents(id) ON DELETE SET NULL
);
CREATE INDEX IF NOT EXISTS idx_markdown_pages_slug ON markdown_pages(slug);
CREATE INDEX IF NOT EXISTS idx_markdown_pages_content ON markdown_pages(content_id);

CREATE VIRTUAL TABLE IF NOT EXISTS markdown_pages_fts USING fts5(
  id UNINDEXED,
  slug UNINDEXED,
  body,
  content=markdown_pages,
  content_rowid=rowid
);

CREATE TRIGGER IF NOT EXISTS markdown_pages_fts_insert AFTER INSERT ON markdown_pages BEGIN
  INSERT INTO markdown_pages_fts(rowid, id, slug, body)
  VALUES (new.rowid, new.id, new.slug, new.body);
END;

CREATE TRIGGER IF NOT EXISTS markdown_pages_fts_delete AFTER DELETE ON markdown_pages BEGIN
  INSERT INTO markdown_pages_fts(markdown_pages_fts, rowid, id, slug, body)
  VALUES ('delete', old.rowid, old.id, old.slug, old.body);
END;

CREATE TRIGGER IF NOT EXISTS markdown_pages_fts_update AFTER UPDATE ON markdown_pages BEGIN
  INSERT INTO markdown_pages_fts(markdown_pages_fts, rowid, id, slug, body)
  VALUES ('delete', old.rowid, old.id, old.slug, old.body);
  INSERT INTO markdown_pages_fts(rowid, id, slug, body)
  VALUES (new.rowid, new.id, new.slug, new.body);
END;
"""

# Additive steps, in order. Step N brings a shard to user_version N + 1.
# Each statement must be idempotent: a shard may have gained the table
# through an older code path without its user_version being bumped.
UPGRADES: list[tuple[str, str]] = [
    ("core tables", CONTENT_TABLES_SQL),
    ("media", """
        CREATE TABLE IF NOT EXISTS media (
          id TEXT PRIMARY KEY,
          content_id TEXT,
          filename TEXT NOT NULL,
          mime_type TEXT NOT NULL,
          size INTEGER NOT NULL,
          width INTEGER,
          height INTEGER,
          alt TEXT,
          description TEXT,
          tags TEXT,
          data BLOB NOT NULL,
          created_at TEXT NOT NULL,
          updated_at TEXT NOT NULL,
          FOREIGN KEY (content_id) REFERENCES contents(id) ON DELETE SET NULL
        );
        CREATE INDEX IF NOT EXISTS idx_media_content ON media(content_id);
        CREATE INDEX IF NOT EXISTS idx_media_filename ON media(filename);
        CREATE INDEX IF NOT EXISTS idx_media_created ON media(created_at);
    """),
    ("manual dates", """
        CREATE TABLE IF NOT EXISTS manual_dates (
          content_id TEXT PRIMARY KEY,
          date TEXT NOT NULL,
          updated_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_manual_dates_updated ON manual_dates(updated_at);
    """),
]


def get_schema_version(conn: sqlite3.Connection) -> int:
    return conn.execute("PRAGMA user_version").fetchone()[0]


def _apply(conn: sqlite3.Connection, start: int) -> None:
    for name, sql in UPGRADES[start:]:
        logger.debug("Applying schema step: %s", name)
        conn.executescript(sql)
    # PRAGMA does not accept bound parameters
    conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION:d}")
    conn.commit()


def initialize_schema(conn: sqlite3.Connection) -> None:
    """
    Create the full schema in a brand-new shard.

    Raises:
        SchemaError: If any statement fails
    """
    try:
        _apply(conn, 0)
    except sqlite3.Error as e:
        raise SchemaError(f"Failed to initialize shard schema: {e}") from e


def ensure_upgrades(conn: sqlite3.Connection) -> int:
    """
    Bring a pre-existing shard up to the current schema.

    Shards written before ``user_version`` was tracked report version 0;
    every step is replayed for them, which is harmless because each step
    only creates what is absent.

    Returns:
        The schema version the shard had before the upgrade

    Raises:
        SchemaError: If the shard cannot be read or upgraded
    """
    try:
        current = get_schema_version(conn)
        if current >= SCHEMA_VERSION:
            return current
        logger.info("Upgrading shard schema from v%d to v%d", current, SCHEMA_VERSION)
        _apply(conn, current)
        return current
    except sqlite3.Error as e:
        raise SchemaError(f"Failed to upgrade shard schema: {e}") from e


def list_tables(conn: sqlite3.Connection) -> set[str]:
    """Names of all tables (including virtual tables) in a shard."""
    return {
        row[0] for row in conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table'"
        ).fetchall()
    }
