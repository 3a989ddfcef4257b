"""Custom exception hierarchy for assetgraph."""

from __future__ import annotations

from typing import Any


class AssetGraphError(Exception):
    """Base exception for all assetgraph errors."""

    error_type = "internal"

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        super().__init__(message)
        self.message = message


# ── Graph errors: abort planning for the affected root ──


class GraphError(AssetGraphError):
    """A reference graph that cannot be safely scheduled."""

    error_type = "graph"


class CycleError(GraphError):
    """An identifier reappeared on its own active resolution path."""

    error_type = "cycle"

    def __init__(self, message: str = "", members: list[str] | None = None) -> None:
        self.members = list(members or [])
        if not message:
            message = "Cycle detected: " + " -> ".join(self.members)
        super().__init__(message)


class TooDeepError(GraphError):
    """Reference nesting exceeded the depth guard."""

    error_type = "too_deep"

    def __init__(self, message: str = "", depth: int = 0, limit: int = 0) -> None:
        super().__init__(message or f"Reference depth {depth} exceeds limit {limit}")
        self.depth = depth
        self.limit = limit


class UnresolvableReferenceError(GraphError):
    """A reference token could not be resolved to a readable resource."""

    error_type = "unresolvable_reference"

    def __init__(self, message: str = "", reference: str = "") -> None:
        super().__init__(message or f"Cannot resolve reference: {reference!r}")
        self.reference = reference


# ── Resource errors: scoped to one leaf task ──


class ResourceError(AssetGraphError):
    """Error isolated to a single resource; siblings continue."""

    error_type = "resource"

    def __init__(self, message: str = "", source: str = "") -> None:
        super().__init__(message)
        self.source = source


class OpenFailedError(ResourceError):
    """Local source missing or unreadable, or bytes could not be decoded."""

    error_type = "open_failed"


class UnsupportedFormatError(ResourceError):
    """Decoded fine but the format cannot be processed."""

    error_type = "unsupported_format"


class FetchFailedError(ResourceError):
    """Remote fetch failed after retries."""

    error_type = "fetch_failed"

    def __init__(
        self,
        message: str = "",
        source: str = "",
        http_status: int | None = None,
    ) -> None:
        super().__init__(message, source=source)
        self.http_status = http_status


class EncodeFailedError(ResourceError):
    """Encoding or writing a variant failed."""

    error_type = "encode_failed"


class TaskTimeoutError(ResourceError):
    """The per-task timeout elapsed (slow fetch, degenerate image)."""

    error_type = "timeout"


# ── Cache errors: degrade, never fail a result ──


class CacheError(AssetGraphError):
    """Cache store failure."""

    error_type = "cache"


class StoreUnavailableError(CacheError):
    """The store could not be opened, read, or written."""

    error_type = "store_unavailable"


class CorruptEntryError(CacheError):
    """A persisted record could not be decoded."""

    error_type = "corrupt_entry"
