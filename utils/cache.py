"""In-memory TTL cache for upstream reference lookups.

Used by the upstream clients to avoid refetching data that changes rarely:
the Data Inclusion source list and single communes looked up by INSEE code.
"""

import threading
import time
from typing import Any, Callable, Hashable


class TTLCache:
    """Thread-safe in-memory cache with time-to-live (TTL) expiry.

    Entries expire ``ttl_seconds`` after they were stored.  At most
    ``maxsize`` entries are kept; storing into a full cache evicts the entry
    that expires soonest.

    Usage::

        cache = TTLCache(maxsize=256, ttl_seconds=3600)
        commune = cache.get_or_load(("commune", code), lambda: fetch(code))
    """

    def __init__(self, maxsize: int = 128, ttl_seconds: float = 300.0) -> None:
        self._maxsize = maxsize
        self._ttl = ttl_seconds
        # key -> (value, expires_at)
        self._store: dict[Hashable, tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Any | None:
        """Return the cached value for *key*, or ``None`` if absent or expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if time.monotonic() > expires_at:
                del self._store[key]
                return None
            return value

    def set(self, key: Hashable, value: Any) -> None:
        expires_at = time.monotonic() + self._ttl
        with self._lock:
            if key not in self._store and len(self._store) >= self._maxsize:
                soonest = min(self._store, key=lambda k: self._store[k][1])
                del self._store[soonest]
            self._store[key] = (value, expires_at)

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        """Return the cached value, calling *loader* and caching on a miss.

        Exceptions from *loader* propagate and nothing is cached.  The loader
        runs outside the lock, so two threads missing at once may both load.
        """
        value = self.get(key)
        if value is None:
            value = loader()
            self.set(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            now = time.monotonic()
            return sum(1 for _, exp in self._store.values() if exp >= now)
