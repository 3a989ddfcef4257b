"""Cache manager: lookup and upsert policy over a store."""

from __future__ import annotations

import logging

from assetgraph.cache.base import CacheStore
from assetgraph.cache.memory import MemoryCacheStore
from assetgraph.cache.stats import CacheStats
from assetgraph.errors.exceptions import CacheError
from assetgraph.types import CacheEntry

logger = logging.getLogger(__name__)


class CacheManager:
    """Applies the per-resource cache protocol to any ``CacheStore``.

    Read failures degrade to a miss so the resource is regenerated; write
    failures are returned as warnings so the caller can attach them to an
    otherwise successful result. Delete-then-create on a stale key relies on
    the scheduler running at most one task per resource hash.
    """

    def __init__(self, store: CacheStore | None = None, enabled: bool = True) -> None:
        self._store: CacheStore = store if store is not None else MemoryCacheStore()
        self._enabled = enabled
        self._stats = CacheStats()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def store(self) -> CacheStore:
        return self._store

    def lookup(self, resource_hash: str, content_hash: str) -> CacheEntry | None:
        """Exact-match lookup. ``None`` on miss, disabled cache, or store error."""
        if not self._enabled:
            self._stats.misses += 1
            return None
        try:
            entry = self._store.get(resource_hash, content_hash)
        except CacheError as e:
            self._stats.read_errors += 1
            self._stats.misses += 1
            logger.warning("Cache read failed for %s, treating as miss: %s", resource_hash, e)
            return None

        if entry is None:
            self._stats.misses += 1
            return None
        self._stats.hits += 1
        return entry

    def evict_stale(self, resource_hash: str, content_hash: str) -> bool:
        """Remove a record whose content hash no longer matches. Returns True if removed."""
        if not self._enabled:
            return False
        try:
            existing = self._store.get_by_resource(resource_hash)
            if existing is None or existing.content_hash == content_hash:
                return False
            self._store.remove(resource_hash)
        except CacheError as e:
            self._stats.read_errors += 1
            logger.warning("Stale check failed for %s: %s", resource_hash, e)
            return False

        self._stats.stale_evictions += 1
        logger.info(
            "Stale cache entry for %s (%s, content %s -> %s), regenerating",
            existing.source,
            resource_hash,
            existing.content_hash,
            content_hash,
        )
        return True

    def store(self, entry: CacheEntry) -> str | None:
        """Upsert a record. Returns a warning message on failure."""
        if not self._enabled:
            return None
        try:
            self._store.upsert(entry)
        except CacheError as e:
            self._stats.write_errors += 1
            logger.warning("Cache write failed for %s: %s", entry.resource_hash, e)
            return f"cache write failed: {e}"
        return None

    def invalidate(self, resource_hash: str) -> bool:
        """Explicitly drop one record."""
        return self._store.remove(resource_hash)

    def clear(self) -> None:
        self._store.clear()
        self._stats = CacheStats()

    def stats(self) -> CacheStats:
        try:
            entries = self._store.entry_count
        except CacheError:
            entries = 0
        return self._stats.model_copy(update={"entries": entries})

    def close(self) -> None:
        self._store.close()
