"""Tests for shard copy (rename) and delete."""

import dataclasses
import sqlite3
from pathlib import Path

import pytest

from shardcms import lifecycle
from shardcms.lifecycle import CopyFailure, shard_files
from shardcms.types import MarkdownPage, MediaItem


@pytest.fixture
def source(store, make_content):
    """A content item with a page, a media item and a manual date."""
    store.put(make_content(
        "old", title="Original", tags=["t1", "t2"], summary="about something",
        created_at="2024-05-01T00:00:00.000Z",
    ))
    store.pages.put("old", MarkdownPage(slug="body", body="# Heading"))
    store.media.save("old", MediaItem(
        id="m1", filename="a.png", mime_type="image/png", data=b"\x89PNG",
    ))
    store.manual_dates.set("old", "2019-12-31")
    return store.get_by_id("old")


class TestCopy:

    def test_moves_everything(self, store, source):
        result = store.lifecycle.copy("old", "new")

        assert result
        assert result.reason is None
        copied = store.get_by_id("new")
        assert copied == dataclasses.replace(source, id="new", updated_at=copied.updated_at)
        assert copied.updated_at >= source.updated_at
        assert store.get_by_id("old") is None
        assert not store.shards.exists("old")
        assert shard_files(store.shards.shard_path("old")) == []

        assert store.pages.get("new", "body").body == "# Heading"
        assert store.media.get("new", "m1").data == b"\x89PNG"
        assert store.manual_dates.get("new").date == "2019-12-31"

    def test_copied_rows_point_at_new_id(self, store, source):
        store.lifecycle.copy("old", "new")
        assert store.pages.get("new", "body").content_id == "new"
        assert store.media.get("new", "m1").content_id == "new"

    def test_target_exists(self, store, make_content, source):
        store.put(make_content("taken", title="Already here"))

        result = store.lifecycle.copy("old", "taken")

        assert not result
        assert result.reason == CopyFailure.TARGET_EXISTS
        assert store.get_by_id("old") == source
        assert store.get_by_id("taken").title == "Already here"

    def test_source_missing(self, store):
        result = store.lifecycle.copy("ghost", "new")
        assert result.reason == CopyFailure.SOURCE_MISSING
        assert not store.shards.exists("new")

    def test_source_without_content(self, store):
        store.shards.open("empty").close()
        result = store.lifecycle.copy("empty", "new")
        assert result.reason == CopyFailure.SOURCE_EMPTY
        assert store.shards.exists("empty")
        assert not store.shards.exists("new")

    def test_same_id(self, store, source):
        result = store.lifecycle.copy("old", "old")
        assert result.reason == CopyFailure.SAME_ID
        assert store.get_by_id("old") == source

    def test_sanitized_alias_refused(self, store, make_content):
        store.put(make_content("a_b"))
        result = store.lifecycle.copy("a_b", "a/b")
        assert result.reason == CopyFailure.SAME_ID
        assert store.get_by_id("a_b") is not None

    def test_write_failure_discards_destination(self, store, source, monkeypatch):
        def fail(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(lifecycle, "copy_pages", fail)

        result = store.lifecycle.copy("old", "new")

        assert result.reason == CopyFailure.WRITE_FAILED
        assert "disk I/O error" in result.detail
        assert not store.shards.exists("new")
        assert store.get_by_id("old") == source


class TestDelete:

    def test_missing_returns_false(self, store, make_content):
        store.put(make_content("keep-me"))
        assert store.lifecycle.delete("ghost") is False
        assert [s.id for s in store.list_all()] == ["keep-me"]

    def test_removes_companions(self, store, make_content):
        store.put(make_content("doomed"))
        path = store.shards.shard_path("doomed")
        for suffix in ("-wal", "-shm", "-journal"):
            Path(f"{path}{suffix}").write_bytes(b"")

        assert store.lifecycle.delete("doomed") is True

        assert shard_files(path) == []
        assert store.lifecycle.delete("doomed") is False
