"""
Simple in-memory cache with per-entry TTL and an injectable clock
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
from threading import Lock

from utils.datetime_utils import utc_now


class TTLCache:
    """Thread-safe in-memory cache with TTL.

    `ttl=None` on the cache or on a single `set` stores the entry without
    expiry. The clock is injected so tests can move time explicitly.
    """

    def __init__(
        self,
        default_ttl: Optional[float] = 300,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.cache: Dict[str, Tuple[Any, Optional[datetime]]] = {}
        self.lock = Lock()
        self.default_ttl = default_ttl
        self.clock = clock

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired"""
        with self.lock:
            if key in self.cache:
                value, expiry = self.cache[key]
                if expiry is None or self.clock() < expiry:
                    return value
                # Clean up expired entry
                del self.cache[key]
            return None

    def set(self, key: str, value: Any, ttl: Optional[float] = ...):
        """Set value in cache with TTL (seconds); ttl=None never expires"""
        if ttl is ...:
            ttl = self.default_ttl
        expiry = None if ttl is None else self.clock() + timedelta(seconds=ttl)
        with self.lock:
            self.cache[key] = (value, expiry)

    def delete(self, key: str) -> bool:
        """Delete entry from cache, returns whether it existed"""
        with self.lock:
            return self.cache.pop(key, None) is not None

    def delete_matching(self, predicate: Callable[[str], bool]) -> int:
        """Delete every key the predicate accepts, returns count removed"""
        with self.lock:
            doomed = [k for k in self.cache if predicate(k)]
            for key in doomed:
                del self.cache[key]
            return len(doomed)

    def clear(self):
        """Clear all cache entries"""
        with self.lock:
            self.cache.clear()

    def keys(self) -> List[str]:
        with self.lock:
            return list(self.cache.keys())

    def cleanup_expired(self) -> int:
        """Remove all expired entries"""
        now = self.clock()
        with self.lock:
            expired_keys = [
                k for k, (_, expiry) in self.cache.items()
                if expiry is not None and now >= expiry
            ]
            for key in expired_keys:
                del self.cache[key]
            return len(expired_keys)

    def __len__(self) -> int:
        with self.lock:
            return len(self.cache)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())
