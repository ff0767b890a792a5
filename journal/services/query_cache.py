"""
In-process cache of API responses, keyed by endpoint path.

Mutations invalidate by key prefix: invalidating "/api/performance" also
drops "/api/performance/analytics" and "/api/performance/dashboard".
"""
import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

# mutation -> key prefixes it makes stale
INVALIDATIONS = {
    "trade_created": ("/api/trades", "/api/performance"),
    "trade_updated": ("/api/trades", "/api/performance"),
    "trade_deleted": ("/api/trades", "/api/performance"),
    "trades_imported": ("/api/trades", "/api/performance"),
    "premarket_saved": ("/api/premarket-analysis",),
    "setting_changed": ("/api/settings/{key}", "/api/performance"),
    "data_cleared": ("/api/trades", "/api/performance", "/api/premarket-analysis",
                     "/api/trade-analysis", "/api/intraday-notes"),
}


class QueryCache:
    def __init__(self):
        self._entries: dict[str, Any] = {}
        self._lock = threading.Lock()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: str, default=None):
        with self._lock:
            return self._entries.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = value

    def get_or_fetch(self, key: str, fetch: Callable[[], Any]) -> Any:
        """Return the cached value for ``key``, calling ``fetch`` on a miss."""
        with self._lock:
            if key in self._entries:
                return self._entries[key]
        value = fetch()
        self.set(key, value)
        return value

    def invalidate(self, *prefixes: str) -> int:
        with self._lock:
            stale = [k for k in self._entries if any(k.startswith(p) for p in prefixes)]
            for k in stale:
                del self._entries[k]
        if stale:
            logger.debug("Invalidated %d cache entries for %s", len(stale), prefixes)
        return len(stale)

    def invalidate_for(self, mutation: str, **params) -> int:
        """Drop every entry made stale by ``mutation`` (a key of INVALIDATIONS)."""
        prefixes = tuple(p.format(**params) for p in INVALIDATIONS[mutation])
        return self.invalidate(*prefixes)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
