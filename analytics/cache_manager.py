"""
TTL cache for computed metrics.
Bounded key/value store with FIFO capacity eviction, pattern invalidation
and an optional background sweep thread.
"""

import logging
import re
import threading
import time
from typing import Any, Callable, Dict, Optional, Pattern, Union

from analytics.models import CacheEntry


logger = logging.getLogger(__name__)


DEFAULT_TTL_S = 5 * 60
DEFAULT_MAX_SIZE = 100
DEFAULT_CLEANUP_INTERVAL_S = 60


class CacheManager:
    """
    In-process cache with per-entry time-to-live.

    Entries older than their TTL are treated as absent by `get` and removed
    lazily; the sweep thread only reclaims memory. Any `set` made at capacity,
    overwrites included, first evicts the insertion-order-oldest entry (FIFO,
    not LRU: reads do not refresh an entry's position).

    All durations are seconds measured on `clock` (time.monotonic by default).
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_S,
        max_size: int = DEFAULT_MAX_SIZE,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        if cleanup_interval <= 0:
            raise ValueError("cleanup_interval must be positive")

        self.default_ttl = default_ttl
        self.max_size = max_size
        self.cleanup_interval = cleanup_interval
        self.clock = clock

        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

        self._stop_event = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

    def __enter__(self) -> 'CacheManager':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.destroy()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.timestamp > entry.ttl

    def get(self, key: str) -> Any:
        """
        Return the cached value, or None if the key is absent or expired.

        Expired entries are deleted on read.
        """
        with self._lock:
            entry = self._entries.get(key)

            if entry is None:
                self._misses += 1
                return None

            if self._is_expired(entry, self.clock()):
                del self._entries[key]
                self._misses += 1
                return None

            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Insert or overwrite an entry.

        Args:
            key: Cache key
            value: Value to store
            ttl: Time-to-live in seconds (defaults to default_ttl)
        """
        with self._lock:
            if len(self._entries) >= self.max_size:
                oldest_key = next(iter(self._entries))
                del self._entries[oldest_key]
                logger.debug("Evicted oldest cache entry %s", oldest_key)

            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                timestamp=self.clock(),
                ttl=self.default_ttl if ttl is None else ttl,
            )

    def has(self, key: str) -> bool:
        """True if the key holds an unexpired entry; does not count as a hit or miss."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False

            if self._is_expired(entry, self.clock()):
                del self._entries[key]
                return False

            return True

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_pattern(self, pattern: Union[str, Pattern]) -> int:
        """
        Remove every entry whose key matches a regular expression.

        Args:
            pattern: Regex string or compiled pattern (searched, not anchored)

        Returns:
            Number of entries removed
        """
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern

        with self._lock:
            doomed = [key for key in self._entries if regex.search(key)]
            for key in doomed:
                del self._entries[key]

        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup(self) -> int:
        """Remove all expired entries now; returns how many were removed."""
        with self._lock:
            now = self.clock()
            expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug("Cache sweep removed %d expired entries", len(expired))
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        """Entry counts and hit/miss statistics."""
        with self._lock:
            now = self.clock()
            expired = sum(1 for entry in self._entries.values() if self._is_expired(entry, now))
            total = len(self._entries)
            lookups = self._hits + self._misses

            return {
                'total': total,
                'valid': total - expired,
                'expired': expired,
                'max_size': self.max_size,
                'hits': self._hits,
                'misses': self._misses,
                'hit_rate': self._hits / lookups if lookups else 0.0,
            }

    @property
    def running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def start(self) -> None:
        """Start the background sweep thread (no-op if already running)."""
        if self.running:
            return

        self._stop_event.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            name='analytics-cache-sweep',
            daemon=True,
        )
        self._sweeper.start()

    def stop(self) -> None:
        """Stop the sweep thread; cached entries are kept."""
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=self.cleanup_interval + 1)
            self._sweeper = None

    def destroy(self) -> None:
        """Stop the sweep thread and drop every entry."""
        self.stop()
        self.clear()

    def _sweep_loop(self) -> None:
        while not self._stop_event.wait(self.cleanup_interval):
            self.cleanup()
