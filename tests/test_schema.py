"""
Schema tests for shard databases.

Legacy shards are built with raw SQL at a specific schema step, then opened
through ShardStore to verify the additive upgrade.
"""

import sqlite3
from pathlib import Path

import pytest

from shardcms.content_mapper import save_full_content
from shardcms.schema import (
    CONTENT_TABLES_SQL,
    CORE_TABLES,
    SCHEMA_VERSION,
    UPGRADES,
    ensure_upgrades,
    get_schema_version,
    initialize_schema,
    list_tables,
)
from shardcms.types import Content


def _create_legacy_shard(path: Path, steps: int, user_version: int) -> None:
    """Create a shard holding the first ``steps`` schema steps and one content row."""
    conn = sqlite3.connect(str(path))
    for _name, sql in UPGRADES[:steps]:
        conn.executescript(sql)
    conn.execute(
        "INSERT INTO contents (id, title, created_at, updated_at) VALUES (?, ?, ?, ?)",
        ("legacy", "Legacy post", "2020-01-01T00:00:00.000Z", "2020-01-01T00:00:00.000Z"),
    )
    conn.execute(f"PRAGMA user_version = {user_version}")
    conn.commit()
    conn.close()


def _fts_ids(conn: sqlite3.Connection, term: str) -> list[str]:
    return [
        r[0] for r in conn.execute(
            "SELECT id FROM contents_fts WHERE contents_fts MATCH ?", (f'"{term}"',)
        )
    ]


class TestInitialize:

    def test_new_shard_has_every_table(self, shards):
        with shards.open("post-1") as shard:
            tables = list_tables(shard.conn)
        assert set(CORE_TABLES) <= tables
        assert {"media", "manual_dates"} <= tables

    def test_new_shard_is_current(self, shards):
        with shards.open("post-1") as shard:
            assert get_schema_version(shard.conn) == SCHEMA_VERSION

    def test_initialize_twice_is_harmless(self, tmp_path):
        conn = sqlite3.connect(str(tmp_path / "x.db"))
        initialize_schema(conn)
        initialize_schema(conn)
        assert get_schema_version(conn) == SCHEMA_VERSION
        conn.close()


class TestUpgrades:

    def test_untracked_shard_gains_manual_dates(self, shards):
        """A shard with only the core tables and user_version 0."""
        shards.contents_dir.mkdir(parents=True)
        path = shards.shard_path("legacy")
        _create_legacy_shard(path, steps=1, user_version=0)

        with shards.open("legacy") as shard:
            tables = list_tables(shard.conn)
            row = shard.conn.execute("SELECT title FROM contents WHERE id = 'legacy'").fetchone()
            version = get_schema_version(shard.conn)

        assert {"media", "manual_dates"} <= tables
        assert row["title"] == "Legacy post"
        assert version == SCHEMA_VERSION

    def test_shard_at_step_two_gets_only_remaining_step(self, shards):
        shards.contents_dir.mkdir(parents=True)
        path = shards.shard_path("legacy")
        _create_legacy_shard(path, steps=2, user_version=2)

        with shards.open("legacy") as shard:
            assert "manual_dates" in list_tables(shard.conn)
            assert shard.conn.execute("SELECT COUNT(*) FROM contents").fetchone()[0] == 1

    def test_ensure_upgrades_reports_previous_version(self, tmp_path):
        path = tmp_path / "old.db"
        _create_legacy_shard(path, steps=1, user_version=1)
        conn = sqlite3.connect(str(path))
        assert ensure_upgrades(conn) == 1
        assert ensure_upgrades(conn) == SCHEMA_VERSION
        conn.close()

    def test_upgrade_list_matches_version(self):
        assert len(UPGRADES) == SCHEMA_VERSION
        assert UPGRADES[0][1] == CONTENT_TABLES_SQL


class TestFullTextSync:

    @pytest.fixture
    def conn(self, shards):
        shard = shards.open("post-1")
        save_full_content(shard.conn, Content(id="post-1", title="alpha", summary="first"))
        shard.conn.commit()
        yield shard.conn
        shard.close()

    def test_insert_is_indexed(self, conn):
        assert _fts_ids(conn, "alpha") == ["post-1"]

    def test_update_replaces_terms(self, conn):
        save_full_content(conn, Content(id="post-1", title="beta", summary="second"))
        conn.commit()
        assert _fts_ids(conn, "alpha") == []
        assert _fts_ids(conn, "beta") == ["post-1"]
        assert conn.execute("SELECT COUNT(*) FROM contents").fetchone()[0] == 1

    def test_delete_removes_terms(self, conn):
        conn.execute("DELETE FROM contents WHERE id = 'post-1'")
        conn.commit()
        assert _fts_ids(conn, "alpha") == []
        assert _fts_ids(conn, "first") == []
