"""
Global tag catalog.

A single JSON document (a list of entries) records every tag name with
when it was first created and last used, independent of which shards
currently reference it.

Every change is a whole-document read-modify-write. Writers are serialized
by a threading lock within the process and an exclusive ``flock`` on a
sidecar lock file across processes; the document is replaced atomically.
"""

import fcntl
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from .types import TagCatalogEntry, utc_now

logger = logging.getLogger(__name__)


class TagCatalog:
    """Registry of tag names and usage metadata."""

    def __init__(self, path: Path):
        """
        Args:
            path: Path to the JSON document
        """
        self._path = Path(path)
        self._lock_path = self._path.with_name(self._path.name + ".lock")
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self._lock_path, os.O_RDWR | os.O_CREAT, 0o644)
            try:
                fcntl.flock(fd, fcntl.LOCK_EX)
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
                os.close(fd)

    def _read(self, for_write: bool = False) -> list[TagCatalogEntry]:
        """
        Load the document. A missing file is an empty catalog.

        A malformed document also reads as empty. Before a write it is moved
        aside so the damaged original is kept for inspection.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []

        try:
            data = json.loads(raw) if raw.strip() else []
            if not isinstance(data, list):
                raise ValueError("tag catalog must be a JSON list")
            return [
                TagCatalogEntry(
                    name=item["name"],
                    created_at=item.get("created_at") or "",
                    last_used=item.get("last_used"),
                    metadata=item.get("metadata"),
                )
                for item in data
            ]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Malformed tag catalog %s: %s", self._path, e)
            if for_write:
                aside = self._path.with_name(
                    f"{self._path.name}.corrupt-{utc_now().replace(':', '')}"
                )
                os.replace(self._path, aside)
                logger.warning("Moved malformed tag catalog to %s", aside)
            return []

    def _write(self, entries: list[TagCatalogEntry]) -> None:
        data = [e.to_dict() for e in entries]
        fd, tmp = tempfile.mkstemp(
            dir=str(self._path.parent), prefix=self._path.name, suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path)
        except BaseException:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def list(self) -> list[TagCatalogEntry]:
        """All entries sorted by name."""
        return sorted(self._read(), key=lambda e: e.name)

    def get(self, name: str) -> Optional[TagCatalogEntry]:
        name = name.strip()
        for entry in self._read():
            if entry.name == name:
                return entry
        return None

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def upsert(self, name: str, metadata: Optional[Any] = None) -> TagCatalogEntry:
        """
        Record use of a tag.

        Names are trimmed but not case-folded. An existing entry keeps its
        created_at; last_used is set to now and metadata replaced when given.

        Raises:
            ValueError: If the name is empty after trimming
        """
        name = name.strip()
        if not name:
            raise ValueError("Tag name must not be empty")

        now = utc_now()
        with self._exclusive():
            entries = self._read(for_write=True)
            for entry in entries:
                if entry.name == name:
                    entry.last_used = now
                    if metadata is not None:
                        entry.metadata = metadata
                    break
            else:
                entry = TagCatalogEntry(name=name, created_at=now, last_used=now, metadata=metadata)
                entries.append(entry)
            self._write(entries)
        return entry

    def remove(self, name: str) -> bool:
        """
        Returns:
            True if the entry existed and was removed
        """
        name = name.strip()
        with self._exclusive():
            entries = self._read(for_write=True)
            kept = [e for e in entries if e.name != name]
            if len(kept) == len(entries):
                return False
            self._write(kept)
        return True
