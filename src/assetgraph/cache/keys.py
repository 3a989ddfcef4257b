"""Identity and content hashing for change detection, not integrity."""

from __future__ import annotations

import hashlib

from assetgraph.types import ResourceIdentifier

_DIGEST_SIZE = 8  # 64-bit, rendered as 16 hex chars


def hash_resource(identifier: ResourceIdentifier | str) -> str:
    """Hash a resource's path/URL string.

    Independent of content: the same identifier always maps to the same
    hash, which doubles as the cache key and the variant filename stem.
    """
    source = identifier.source if isinstance(identifier, ResourceIdentifier) else identifier
    return _digest(source.encode("utf-8"))


def hash_content(data: bytes) -> str:
    """Hash raw source bytes for staleness checks."""
    return _digest(data)


def _digest(data: bytes) -> str:
    return hashlib.blake2b(data, digest_size=_DIGEST_SIZE).hexdigest()
