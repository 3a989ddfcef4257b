"""Key-value contract every cache store implements."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol, runtime_checkable

from assetgraph.types import CacheEntry


@runtime_checkable
class CacheStore(Protocol):
    """Records keyed uniquely by ``resource_hash``.

    Implementations raise ``StoreUnavailableError`` when the backing store
    cannot be reached and ``CorruptEntryError`` for undecodable records.
    """

    def get(self, resource_hash: str, content_hash: str) -> CacheEntry | None:
        """Exact match on both hashes."""
        ...

    def get_by_resource(self, resource_hash: str) -> CacheEntry | None:
        """Match on identity only, used for staleness checks."""
        ...

    def upsert(self, entry: CacheEntry) -> None: ...

    def remove(self, resource_hash: str) -> bool: ...

    def clear(self) -> None: ...

    @property
    def entry_count(self) -> int: ...

    def entries(self) -> Iterator[CacheEntry]: ...

    def close(self) -> None: ...
