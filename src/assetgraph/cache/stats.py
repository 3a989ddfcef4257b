"""Cache statistics model."""

from __future__ import annotations

from pydantic import BaseModel


class CacheStats(BaseModel):
    """Aggregate cache statistics for one manager lifetime."""

    entries: int = 0
    hits: int = 0
    misses: int = 0
    stale_evictions: int = 0
    read_errors: int = 0
    write_errors: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0
