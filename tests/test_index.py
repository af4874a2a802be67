"""Tests for store-wide listing, lookup, search and stats."""

import pytest

from shardcms.types import MarkdownPage


def _put_dated(store, make_content, id: str, created_at: str, **kwargs):
    return store.put(make_content(id, created_at=created_at, **kwargs))


class TestListAll:

    def test_empty_store(self, store):
        result = store.index.list_all()
        assert len(result) == 0
        assert result.status == "ok"
        assert result.skipped == []

    def test_sorted_newest_first(self, store, make_content):
        _put_dated(store, make_content, "old", "2023-01-01T00:00:00.000Z")
        _put_dated(store, make_content, "new", "2025-01-01T00:00:00.000Z")
        _put_dated(store, make_content, "mid", "2024-01-01T00:00:00.000Z")
        assert [s.id for s in store.index.list_all()] == ["new", "mid", "old"]

    def test_corrupt_shard_is_skipped(self, store, make_content, corrupt_shard):
        for i, year in enumerate(("2021", "2023", "2022")):
            _put_dated(store, make_content, f"post-{i}", f"{year}-06-01T00:00:00.000Z")
        broken = corrupt_shard(store.shards.contents_dir, "broken")

        result = store.index.list_all()

        assert [s.id for s in result] == ["post-1", "post-2", "post-0"]
        assert result.status == "partial"
        assert not result.ok
        assert [s.path for s in result.skipped] == [str(broken)]

    def test_shard_without_content_is_ignored(self, store, make_content):
        store.put(make_content("real"))
        store.shards.open("empty").close()
        result = store.index.list_all()
        assert [s.id for s in result] == ["real"]
        assert result.status == "ok"

    def test_summary_carries_tags_and_documents(self, store, make_content):
        store.put(make_content(
            "post", tags=["a", "b"], thumbnails={"small": "/s.png"}, seo={"title": "SEO"},
        ))
        (summary,) = store.index.list_all()
        assert summary.tags == ["a", "b"]
        assert summary.thumbnails == {"small": "/s.png"}
        assert summary.seo == {"title": "SEO"}


class TestGetOne:

    def test_found(self, store, make_content):
        store.put(make_content("post", title="Hello", tags=["x"]))
        content = store.index.get_one("post")
        assert content.title == "Hello"
        assert content.tags == ["x"]

    def test_missing_does_not_create_shard(self, store):
        assert store.index.get_one("ghost") is None
        assert not store.shards.exists("ghost")

    def test_corrupt_shard_reads_as_missing(self, store, corrupt_shard):
        corrupt_shard(store.shards.contents_dir, "broken")
        assert store.index.get_one("broken") is None


class TestSearch:

    @pytest.fixture
    def populated(self, store, make_content):
        store.put(make_content("fox", title="Foxes", summary="the quick brown fox"))
        store.put(make_content("other", title="Other", summary="nothing to see"))
        store.pages.put("other", MarkdownPage(
            slug="notes", body="a lazy dog sleeps", frontmatter={"title": "Dog notes"},
        ))
        return store

    def test_finds_content_text(self, populated):
        hits = populated.index.search("brown")
        assert [(h.content_id, h.source) for h in hits] == [("fox", "content")]
        assert "[brown]" in hits.items[0].snippet

    def test_finds_markdown_bodies(self, populated):
        hits = populated.index.search("lazy dog")
        assert len(hits) == 1
        hit = hits.items[0]
        assert (hit.content_id, hit.source, hit.slug) == ("other", "markdown", "notes")
        assert hit.title == "Dog notes"

    def test_blank_query(self, populated):
        assert len(populated.index.search("   ")) == 0

    def test_query_syntax_is_not_interpreted(self, populated):
        result = populated.index.search('fox" OR title:')
        assert result.status == "ok"

    def test_limit(self, store, make_content):
        for i in range(5):
            store.put(make_content(f"p{i}", summary="shared word"))
        assert len(store.index.search("shared", limit=3)) == 3

    @pytest.mark.parametrize("limit", [0, -1])
    def test_limit_must_be_positive(self, populated, limit):
        with pytest.raises(ValueError, match="limit"):
            populated.index.search("brown", limit=limit)


class TestStats:

    def test_counts_and_sizes(self, store, make_content):
        store.put(make_content("a"))
        store.put(make_content("b"))
        store.shards.open("empty").close()

        stats = store.index.stats()

        assert stats.total_contents == 2
        assert stats.total_db_files == 3
        assert stats.total_size > 0
        assert sorted(i.id for i in stats.contents if i.id) == ["a", "b"]
        assert all(i.size > 0 for i in stats.contents)

    def test_empty(self, store):
        stats = store.index.stats()
        assert (stats.total_contents, stats.total_db_files, stats.total_size) == (0, 0, 0)
