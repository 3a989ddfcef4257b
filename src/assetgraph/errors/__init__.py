"""Error handling: graph, resource and cache exception families."""

from assetgraph.errors.exceptions import (
    AssetGraphError,
    CacheError,
    CorruptEntryError,
    CycleError,
    EncodeFailedError,
    FetchFailedError,
    GraphError,
    OpenFailedError,
    ResourceError,
    StoreUnavailableError,
    TaskTimeoutError,
    TooDeepError,
    UnresolvableReferenceError,
    UnsupportedFormatError,
)

__all__ = [
    "AssetGraphError",
    "GraphError",
    "CycleError",
    "TooDeepError",
    "UnresolvableReferenceError",
    "ResourceError",
    "OpenFailedError",
    "UnsupportedFormatError",
    "FetchFailedError",
    "EncodeFailedError",
    "TaskTimeoutError",
    "CacheError",
    "StoreUnavailableError",
    "CorruptEntryError",
]
