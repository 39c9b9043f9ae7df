"""
Association Cache - Cache Store

In-memory dict mapping cache key -> entity, shared by every loader.
Entries live until explicitly deleted; the expiry argument is accepted
for interface compatibility and ignored.

Access is guarded by a lock so request threads can share one store.
Concurrent misses on the same key each run their compute function; the
last writer wins.
"""

import logging
import threading
from typing import Any, Callable, Dict, Iterable, Optional, Set

logger = logging.getLogger(__name__)

_MISSING = object()


class CacheStore:
    """Keyed store with get-or-compute, batch get and hit/miss counters."""

    def __init__(self):
        self._cache: Dict[str, Any] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str, compute: Callable[[], Any], expiry: int = 0) -> Any:
        """Return the cached value, or compute, store and return it.

        compute is called at most once. If it raises, nothing is stored and
        the error propagates. A None result is returned but not stored.
        """
        with self._lock:
            value = self._cache.get(key, _MISSING)
            if value is not _MISSING:
                self._hits += 1
                return value
            self._misses += 1

        value = compute()
        if value is not None:
            with self._lock:
                self._cache[key] = value
        return value

    def put(self, key: str, value: Any, expiry: int = 0) -> None:
        """Insert or overwrite an entry. Counters are untouched."""
        with self._lock:
            self._cache[key] = value

    def get_multiple(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Return the subset of keys currently cached.

        Args:
            keys: Distinct cache keys

        Returns:
            Mapping of found key -> value; absent keys are omitted
        """
        keys = list(keys)
        with self._lock:
            found = {k: self._cache[k] for k in keys if k in self._cache}
            self._hits += len(found)
            self._misses += len(keys) - len(found)
        return found

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._cache.pop(key, _MISSING) is not _MISSING

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._cache

    def peek(self, key: str) -> Optional[Any]:
        """Read without touching the counters."""
        with self._lock:
            return self._cache.get(key)

    def keys(self) -> Set[str]:
        with self._lock:
            return set(self._cache)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0
        logger.info("Cache store cleared")

    def reset_counters(self) -> None:
        with self._lock:
            self._hits = 0
            self._misses = 0

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    @property
    def size(self) -> int:
        return len(self._cache)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"hits": self._hits, "misses": self._misses, "size": len(self._cache)}
