"""Tests for markdown pages stored in content shards."""

import typing

import pytest

from shardcms.pages import MarkdownPageStore
from shardcms.types import MarkdownPage, SearchHit


def _page(slug: str = "intro", body: str = "Hello world", **kwargs) -> MarkdownPage:
    return MarkdownPage(slug=slug, body=body, **kwargs)


class TestPut:

    def test_new_page(self, store):
        page = store.pages.put("post", _page(frontmatter={"title": "Intro"}))
        assert page.id.startswith("page_")
        assert page.version == 1
        assert page.content_id == "post"
        assert page.frontmatter == {"title": "Intro"}
        assert store.pages.get("post", "intro") == page

    def test_unchanged_body_keeps_version(self, store):
        first = store.pages.put("post", _page())
        second = store.pages.put("post", _page(frontmatter={"draft": True}))
        assert second.version == 1
        assert second.id == first.id
        assert second.frontmatter == {"draft": True}

    def test_changed_body_bumps_version(self, store):
        first = store.pages.put("post", _page())
        second = store.pages.put("post", _page(body="Hello again"))
        assert second.version == 2
        assert second.id == first.id
        assert second.created_at == first.created_at

    def test_invalid_status(self, store):
        with pytest.raises(ValueError, match="status"):
            store.pages.put("post", _page(status="live"))

    def test_slug_required(self, store):
        with pytest.raises(ValueError, match="slug"):
            store.pages.put("post", _page(slug=""))


class TestReadDelete:

    def test_get_missing_shard(self, store):
        assert store.pages.get("ghost", "intro") is None
        assert store.pages.list("ghost") == []
        assert not store.shards.exists("ghost")

    def test_list_sorted_by_slug(self, store):
        for slug in ("zeta", "alpha", "mid"):
            store.pages.put("post", _page(slug=slug))
        assert [p.slug for p in store.pages.list("post")] == ["alpha", "mid", "zeta"]

    def test_delete(self, store):
        store.pages.put("post", _page())
        assert store.pages.delete("post", "intro") is True
        assert store.pages.delete("post", "intro") is False
        assert store.pages.delete("ghost", "intro") is False

    def test_corrupt_shard_reads_as_missing(self, store, corrupt_shard):
        corrupt_shard(store.shards.contents_dir, "broken")
        assert store.pages.get("broken", "intro") is None
        assert store.pages.list("broken") == []
        assert store.pages.search("broken", "hello") == []


class TestSearch:

    def test_title_from_frontmatter(self, store):
        store.pages.put("post", _page(body="sqlite shards everywhere", frontmatter={"title": "Shards"}))
        store.pages.put("post", _page(slug="bare", body="more shards"))

        hits = store.pages.search("post", "shards")

        assert {(h.slug, h.title) for h in hits} == {("intro", "Shards"), ("bare", "bare")}
        assert all(h.source == "markdown" for h in hits)

    def test_index_follows_updates(self, store):
        store.pages.put("post", _page(body="original words"))
        store.pages.put("post", _page(body="replacement text"))
        assert store.pages.search("post", "original") == []
        assert len(store.pages.search("post", "replacement")) == 1

    def test_index_follows_deletes(self, store):
        store.pages.put("post", _page(body="transient"))
        store.pages.delete("post", "intro")
        assert store.pages.search("post", "transient") == []

    @pytest.mark.parametrize("limit", [0, -1])
    def test_limit_must_be_positive(self, store, limit):
        store.pages.put("post", _page())
        with pytest.raises(ValueError, match="limit"):
            store.pages.search("post", "hello", limit=limit)


def test_annotations_resolve():
    # "list" is also a method name on the store
    hints = typing.get_type_hints(MarkdownPageStore.search)
    assert hints["return"] == list[SearchHit]
