from __future__ import annotations

from pydantic import BaseModel


class CacheStatsResponse(BaseModel):
    """Cache counters."""

    hits: int
    misses: int
    evictions: int
    invalidations: int
    size: int
    max_size: int
    hit_rate: float


class CacheClearResponse(BaseModel):
    """Outcome of a cache administration call."""

    scope: str
    removed: int
