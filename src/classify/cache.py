"""
Classification result cache.

Successful classifications are cached by content fingerprint for a configured
time-to-live, so identical content does not trigger repeated paid calls.
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional, Tuple

from .core.types import CacheConfig, ClassificationAttempt


logger = logging.getLogger(__name__)


class ClassificationCache:
    """
    Thread-safe TTL cache keyed by content fingerprint.

    Concurrent writes for the same fingerprint are idempotent: the last write
    wins. Expired entries are dropped on read; the oldest entry is evicted once
    ``max_entries`` is exceeded.

    Example:
        >>> cache = ClassificationCache(ttl_seconds=60)
        >>> cache.put("abc", attempt)
        >>> cache.get("abc") is attempt
        True
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        max_entries: int = 1000,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Time-to-live for entries (<= 0 disables caching)
            max_entries: Maximum number of entries kept
            clock: Monotonic clock (injectable for tests)
        """
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock or time.monotonic
        self._entries: "OrderedDict[str, Tuple[float, ClassificationAttempt]]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @classmethod
    def from_config(cls, config: CacheConfig) -> "ClassificationCache":
        return cls(ttl_seconds=config.ttl_seconds, max_entries=config.max_entries)

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0 and self.max_entries > 0

    def get(self, fingerprint: str) -> Optional[ClassificationAttempt]:
        """Return the cached attempt, or None if absent or expired."""
        if not self.enabled:
            return None

        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                self._misses += 1
                return None

            expires_at, attempt = entry
            if self._clock() >= expires_at:
                del self._entries[fingerprint]
                self._misses += 1
                return None

            self._hits += 1
            return attempt

    def put(self, fingerprint: str, attempt: ClassificationAttempt) -> None:
        """Store a successful attempt (failed attempts are never cached)."""
        if not self.enabled or not attempt.success:
            return

        with self._lock:
            # Re-inserting moves the key to the end so eviction order tracks write time
            self._entries.pop(fingerprint, None)
            self._entries[fingerprint] = (self._clock() + self.ttl_seconds, attempt)

            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cache entry {evicted[:12]}")

    def invalidate(self, fingerprint: str) -> bool:
        with self._lock:
            return self._entries.pop(fingerprint, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        """Return size, hit and miss counters."""
        with self._lock:
            return {
                "size": len(self._entries),
                "max_entries": self.max_entries,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
            }
