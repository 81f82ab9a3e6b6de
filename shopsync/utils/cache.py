"""TTL cache for read-mostly lookups such as the connected-shop list.

The cache is owned by whoever builds the services and is passed to them
explicitly. Writers invalidate by key prefix after committing:

    cache = ResponseCache(ttl=300)
    store = CredentialStore(SessionLocal, cache=cache)
    reconciler = Reconciler(SessionLocal, cache=cache)
"""
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple


class ResponseCache:
    """Thread-safe in-memory cache with TTL expiry and max-entry limit."""

    def __init__(self, ttl: int = 300, max_entries: int = 80, clock: Callable[[], float] = time.time):
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock
        self.hits = 0
        self.misses = 0

    @property
    def ttl(self) -> int:
        return self._ttl

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._clock() <= entry[0]:
                self.hits += 1
                return entry[1]
            if entry is not None:
                del self._entries[key]
            self.misses += 1
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        with self._lock:
            now = self._clock()
            if key not in self._entries and len(self._entries) >= self._max_entries:
                self._evict(now)
            self._entries[key] = (now + (self._ttl if ttl is None else ttl), value)

    def get_or_set(self, key: str, loader: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        value = self.get(key)
        if value is None:
            value = loader()
            self.set(key, value, ttl=ttl)
        return value

    def invalidate(self, prefix: str) -> int:
        """Drop every key starting with prefix; returns how many went"""
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for k in doomed:
                del self._entries[k]
            return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses, "ttl": self._ttl}

    def _evict(self, now: float):
        """Expired entries first; if none, the one closest to expiry"""
        expired = [k for k, (expires_at, _) in self._entries.items() if now > expires_at]
        if expired:
            for k in expired:
                del self._entries[k]
            return
        del self._entries[min(self._entries, key=lambda k: self._entries[k][0])]
