"""Cache subsystem: content-addressed records behind a key-value contract."""

from assetgraph.cache.base import CacheStore
from assetgraph.cache.disk import SqliteCacheStore
from assetgraph.cache.keys import hash_content, hash_resource
from assetgraph.cache.manager import CacheManager
from assetgraph.cache.memory import MemoryCacheStore
from assetgraph.cache.stats import CacheStats

__all__ = [
    "CacheManager",
    "CacheStats",
    "CacheStore",
    "MemoryCacheStore",
    "SqliteCacheStore",
    "hash_content",
    "hash_resource",
]
