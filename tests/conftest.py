"""
Shared pytest fixtures for shardcms tests.

Every fixture works in a fresh tmp_path data directory; nothing touches the
user's real store.
"""

from pathlib import Path

import pytest

from shardcms.api import ContentStore
from shardcms.shard_store import ShardStore
from shardcms.types import Content


@pytest.fixture
def data_dir(tmp_path) -> Path:
    """Empty storage root."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def store(data_dir):
    """A ContentStore over an empty data directory."""
    s = ContentStore(data_dir)
    yield s
    s.close()


@pytest.fixture
def shards(tmp_path) -> ShardStore:
    """A bare ShardStore with no facade around it."""
    return ShardStore(tmp_path / "contents")


@pytest.fixture
def make_content():
    """Factory for Content with sensible defaults."""
    def _make(id: str, title: str = None, **kwargs) -> Content:
        return Content(id=id, title=title or f"Title of {id}", **kwargs)
    return _make


def write_corrupt_shard(contents_dir: Path, name: str = "broken") -> Path:
    """Put a file with a shard name but no SQLite header into the directory."""
    contents_dir.mkdir(parents=True, exist_ok=True)
    path = contents_dir / f"content-{name}.db"
    path.write_bytes(b"this is not a sqlite database\n" * 200)
    return path


@pytest.fixture
def corrupt_shard():
    return write_corrupt_shard
