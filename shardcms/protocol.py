"""
Protocol definitions for content repositories.

Callers depend on ContentRepository rather than on directory scanning, so
an implementation backed by one consolidated database with a manifest
table can replace the shard-per-item store without changing them.
"""

from typing import Optional, Protocol, runtime_checkable

from .lifecycle import CopyResult
from .types import Content, ContentSummary, ScanResult


@runtime_checkable
class ContentRepository(Protocol):
    """
    Store-wide content operations.

    Implemented by:
    - ContentStore (one SQLite shard per content item)
    """

    def list_all(self) -> ScanResult[ContentSummary]: ...

    def get_by_id(self, id: str) -> Optional[Content]: ...

    def put(self, content: Content) -> Content: ...

    def delete(self, id: str) -> bool: ...

    def rename(self, old_id: str, new_id: str) -> CopyResult: ...
