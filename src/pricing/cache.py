"""
In-memory quote cache for the coffee price oracle.

Holds fresh base quotes keyed by "VARIETY:grade" for a short TTL. Entries
are expired lazily on read; there is no background sweeper. The cache lives
only as long as the resolver that owns it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from .models import PriceQuote
from .staleness import Clock, system_clock

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached quote and when it was stored."""
    quote: PriceQuote
    cached_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.cached_at


class PriceCache:
    """
    TTL cache of base price quotes.

    Never stores stale quotes: set() refuses anything flagged stale so bad
    data cannot be served for the rest of the TTL.
    """

    DEFAULT_TTL = timedelta(minutes=5)

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize price cache.

        Args:
            ttl: How long an entry is served after being written
            clock: Source of "now" (defaults to UTC wall clock)
        """
        self.ttl = ttl
        self.clock = clock or system_clock

        self._cache: Dict[str, CacheEntry] = {}

        # Metrics
        self._hits = 0
        self._misses = 0
        self._writes = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[PriceQuote]:
        """
        Get a cached quote if present and within TTL.

        Expired entries are removed as a side effect.
        """
        entry = self._cache.get(key)
        if entry is None:
            self._misses += 1
            return None

        age = entry.age(self.clock())
        if age > self.ttl:
            del self._cache[key]
            self._evictions += 1
            self._misses += 1
            logger.debug(f"Cache expired for {key} (age={age.total_seconds():.0f}s)")
            return None

        self._hits += 1
        return entry.quote

    def peek(self, key: str) -> Optional[PriceQuote]:
        """Cached quote if present and within TTL, without touching metrics."""
        entry = self._cache.get(key)
        if entry is None or entry.age(self.clock()) > self.ttl:
            return None
        return entry.quote

    def set(self, key: str, quote: PriceQuote) -> bool:
        """
        Cache a quote.

        Returns:
            True if written, False if the quote was stale and skipped
        """
        if quote.is_stale:
            logger.debug(f"Refusing to cache stale quote for {key}")
            return False

        self._cache[key] = CacheEntry(quote=quote, cached_at=self.clock())
        self._writes += 1
        return True

    def invalidate(self, key: str) -> bool:
        """Remove a key from the cache. Returns True if something was removed."""
        if key in self._cache:
            del self._cache[key]
            self._evictions += 1
            return True
        return False

    def clear(self) -> None:
        """Clear all cached quotes."""
        self._cache = {}

    def __contains__(self, key: str) -> bool:
        return key in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    def get_all(self) -> Dict[str, CacheEntry]:
        """Get all cached entries (for debugging)."""
        return self._cache.copy()

    def cleanup_expired(self) -> int:
        """
        Remove expired entries from cache.

        Returns:
            Number of entries removed
        """
        now = self.clock()
        to_remove = [
            key for key, entry in self._cache.items()
            if entry.age(now) > self.ttl
        ]

        for key in to_remove:
            del self._cache[key]
            self._evictions += 1

        if to_remove:
            logger.info(f"Cleaned up {len(to_remove)} expired cache entries")

        return len(to_remove)

    def get_metrics(self) -> Dict[str, Any]:
        """Get cache performance metrics."""
        total = self._hits + self._misses
        hit_rate = (self._hits / total * 100) if total > 0 else 0.0

        return {
            "entries": len(self._cache),
            "hits": self._hits,
            "misses": self._misses,
            "writes": self._writes,
            "evictions": self._evictions,
            "hit_rate_pct": round(hit_rate, 2),
        }
