"""In-memory cache store, used for tests and ``--no-cache`` runs."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterator

from assetgraph.types import CacheEntry


class MemoryCacheStore:
    """Dict-backed store keyed by resource hash, in insertion order."""

    def __init__(self) -> None:
        self._store: OrderedDict[str, CacheEntry] = OrderedDict()

    def get(self, resource_hash: str, content_hash: str) -> CacheEntry | None:
        entry = self._store.get(resource_hash)
        if entry is None or entry.content_hash != content_hash:
            return None
        return entry.model_copy()

    def get_by_resource(self, resource_hash: str) -> CacheEntry | None:
        entry = self._store.get(resource_hash)
        return entry.model_copy() if entry else None

    def upsert(self, entry: CacheEntry) -> None:
        self._store[entry.resource_hash] = entry.model_copy()
        self._store.move_to_end(entry.resource_hash)

    def remove(self, resource_hash: str) -> bool:
        return self._store.pop(resource_hash, None) is not None

    def clear(self) -> None:
        self._store.clear()

    @property
    def entry_count(self) -> int:
        return len(self._store)

    def entries(self) -> Iterator[CacheEntry]:
        yield from (e.model_copy() for e in list(self._store.values()))

    def close(self) -> None:
        pass

    def __len__(self) -> int:
        return len(self._store)
