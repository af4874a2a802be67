"""Tests for the global tag catalog."""

import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from shardcms import tag_catalog
from shardcms.tag_catalog import TagCatalog


@pytest.fixture
def catalog(tmp_path) -> TagCatalog:
    return TagCatalog(tmp_path / "tag-catalog.json")


@pytest.fixture
def clock(monkeypatch):
    """Replace utc_now with a sequence of fixed timestamps."""
    times = iter(f"2026-01-0{i}T00:00:00.000Z" for i in range(1, 10))
    monkeypatch.setattr(tag_catalog, "utc_now", lambda: next(times))


class TestUpsert:

    def test_second_upsert_keeps_created_at(self, catalog, clock):
        first = catalog.upsert("react")
        second = catalog.upsert("react")

        assert first.created_at == "2026-01-01T00:00:00.000Z"
        assert second.created_at == "2026-01-01T00:00:00.000Z"
        assert second.last_used == "2026-01-02T00:00:00.000Z"
        assert catalog.get("react") == second
        assert len(catalog.list()) == 1

    def test_name_is_trimmed(self, catalog):
        catalog.upsert("  vue  ")
        assert [e.name for e in catalog.list()] == ["vue"]
        assert catalog.get(" vue") is not None

    def test_case_is_preserved(self, catalog):
        catalog.upsert("React")
        catalog.upsert("react")
        assert [e.name for e in catalog.list()] == ["React", "react"]

    @pytest.mark.parametrize("name", ["", "   "])
    def test_empty_name_rejected(self, catalog, name):
        with pytest.raises(ValueError):
            catalog.upsert(name)
        assert not catalog.path.exists()

    def test_metadata_kept_when_not_given(self, catalog):
        catalog.upsert("python", {"color": "blue"})
        catalog.upsert("python")
        assert catalog.get("python").metadata == {"color": "blue"}
        catalog.upsert("python", {"color": "yellow"})
        assert catalog.get("python").metadata == {"color": "yellow"}

    def test_document_format(self, catalog, clock):
        catalog.upsert("sqlite", {"kind": "db"})
        data = json.loads(catalog.path.read_text(encoding="utf-8"))
        assert data == [{
            "name": "sqlite",
            "created_at": "2026-01-01T00:00:00.000Z",
            "last_used": "2026-01-01T00:00:00.000Z",
            "metadata": {"kind": "db"},
        }]


class TestRemove:

    def test_remove_twice(self, catalog):
        catalog.upsert("react")
        assert catalog.remove("react") is True
        assert catalog.remove("react") is False
        assert catalog.list() == []

    def test_remove_from_missing_file(self, catalog):
        assert catalog.remove("nothing") is False


class TestCorruption:

    def test_missing_file_is_empty(self, catalog):
        assert catalog.list() == []
        assert catalog.get("x") is None

    @pytest.mark.parametrize("raw", ["{not json", '{"name": "x"}', '[{"no_name": 1}]'])
    def test_malformed_reads_as_empty(self, catalog, raw):
        catalog.path.write_text(raw, encoding="utf-8")
        assert catalog.list() == []
        assert catalog.path.read_text(encoding="utf-8") == raw

    def test_write_moves_malformed_aside(self, catalog):
        catalog.path.write_text("{not json", encoding="utf-8")

        catalog.upsert("fresh")

        assert [e.name for e in catalog.list()] == ["fresh"]
        aside = list(catalog.path.parent.glob("tag-catalog.json.corrupt-*"))
        assert len(aside) == 1
        assert aside[0].read_text(encoding="utf-8") == "{not json"


def test_concurrent_upserts_lose_nothing(catalog):
    names = [f"tag-{i}" for i in range(40)]
    with ThreadPoolExecutor(max_workers=8) as ex:
        list(ex.map(catalog.upsert, names))
    assert sorted(e.name for e in catalog.list()) == sorted(names)


def test_separate_instances_share_the_file(tmp_path):
    path = tmp_path / "tag-catalog.json"
    TagCatalog(path).upsert("one")
    TagCatalog(path).upsert("two")
    assert [e.name for e in TagCatalog(path).list()] == ["one", "two"]
