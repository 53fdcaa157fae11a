"""Read-through cache with per-key expiry."""

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class ReadThroughCache:
    """Caches loader results for `ttl_seconds`.

    `get(key)` returns the cached value while it is fresh, otherwise calls
    `loader(key)` and stores the result. Loader errors propagate and leave
    the cache untouched.
    """

    def __init__(self, loader: Callable[[str], object], ttl_seconds: float,
                 clock: Callable[[], float] = time.monotonic):
        self.loader = loader
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[str, tuple[float, object]] = {}
        self._lock = threading.Lock()

    def get(self, key: str):
        now = self.clock()
        with self._lock:
            cached = self._entries.get(key)
            if cached is not None and cached[0] > now:
                return cached[1]

        logger.debug(f"Cache miss: {key}")
        value = self.loader(key)
        with self._lock:
            self._entries[key] = (now + self.ttl_seconds, value)
        return value

    def invalidate(self, key: str = None) -> None:
        """Drop one key, or everything when key is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)
        logger.info(f"Cache invalidated: {key or 'all'}")
