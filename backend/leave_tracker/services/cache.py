"""Process-wide TTL cache for derived ledger results.

The cache has no domain knowledge: callers compute values and hand them in.
Expiry is checked lazily on read; ``cleanup`` may be called opportunistically.
There is no lock. Staleness is bounded by the TTL and closed by explicit
invalidation on the write path.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any, Final

logger = logging.getLogger(__name__)


class _Miss:
    """Sentinel returned by ``CacheLayer.get`` when no live entry exists."""

    def __repr__(self) -> str:
        return "MISS"


MISS: Final = _Miss()

BALANCE_PREFIX = "leave-balance"
CALENDAR_PREFIX = "team-calendar"

CacheKey = tuple[Hashable, ...]


@dataclass
class CacheEntry:
    """A stored value with its expiry and creation metadata."""

    key: CacheKey
    value: Any
    expires_at: float
    created_at: float
    hits: int = 0


@dataclass(frozen=True)
class CacheStats:
    """Counters since the cache was created or last reset."""

    hits: int
    misses: int
    evictions: int
    invalidations: int
    size: int
    max_size: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class CacheLayer:
    """Key/value store with per-entry TTL, LRU bound and hit/miss/eviction counters."""

    def __init__(
        self,
        default_ttl: float = 300.0,
        max_size: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: OrderedDict[CacheKey, CacheEntry] = OrderedDict()
        self._default_ttl = default_ttl
        self._max_size = max_size
        self._clock = clock
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._invalidations = 0

    def get(self, key: CacheKey) -> Any:
        """Return the cached value or ``MISS``. Reading an expired entry removes it."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return MISS
        if entry.expires_at <= self._clock():
            del self._entries[key]
            self._evictions += 1
            self._misses += 1
            return MISS
        self._entries.move_to_end(key)
        entry.hits += 1
        self._hits += 1
        return entry.value

    def set(self, key: CacheKey, value: Any, ttl: float | None = None) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds."""
        now = self._clock()
        if key not in self._entries and len(self._entries) >= self._max_size:
            evicted_key, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug("Cache full, evicted %s", evicted_key)
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            expires_at=now + (self._default_ttl if ttl is None else ttl),
            created_at=now,
        )
        self._entries.move_to_end(key)

    def delete(self, key: CacheKey) -> bool:
        """Remove one entry. Returns True if it existed."""
        if self._entries.pop(key, None) is None:
            return False
        self._invalidations += 1
        return True

    def delete_matching(self, predicate: Callable[[CacheKey], bool]) -> int:
        """Remove every entry whose key satisfies ``predicate``."""
        doomed = [key for key in self._entries if predicate(key)]
        for key in doomed:
            del self._entries[key]
        self._invalidations += len(doomed)
        return len(doomed)

    def clear(self) -> int:
        """Drop every entry and return how many were removed."""
        removed = len(self._entries)
        self._entries.clear()
        self._invalidations += removed
        return removed

    def cleanup(self) -> int:
        """Sweep expired entries."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._evictions += len(expired)
        return len(expired)

    def stats(self) -> CacheStats:
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            invalidations=self._invalidations,
            size=len(self._entries),
            max_size=self._max_size,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and entry.expires_at > self._clock()


def balance_key(user_id: object, year: int) -> CacheKey:
    """Cache key for a user's balance in one calendar year."""
    return (BALANCE_PREFIX, str(user_id), year)


def calendar_key(start: object, end: object) -> CacheKey:
    """Cache key for the team calendar over an inclusive date range."""
    return (CALENDAR_PREFIX, start, end)


def is_user_balance_key(user_id: object) -> Callable[[CacheKey], bool]:
    """Predicate matching every cached balance year for one user."""
    target = str(user_id)
    return lambda key: key[0] == BALANCE_PREFIX and key[1] == target


def is_calendar_key_overlapping(start: Any, end: Any) -> Callable[[CacheKey], bool]:
    """Predicate matching calendar entries whose range overlaps ``[start, end]``."""
    return lambda key: key[0] == CALENDAR_PREFIX and key[1] <= end and start <= key[2]
