"""Small in-process caches.

Each API worker keeps its own copy; the database stays the source of
truth and writers invalidate the entries they touch.
"""

import logging
import os
import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional

logger = logging.getLogger(__name__)

PROGRESS_CACHE_SIZE = int(os.getenv("PROGRESS_CACHE_SIZE", "1024"))
PROGRESS_CACHE_TTL_SECONDS = float(os.getenv("PROGRESS_CACHE_TTL_SECONDS", "600"))
SCORE_CACHE_SIZE = int(os.getenv("SCORE_CACHE_SIZE", "1024"))
SCORE_CACHE_TTL_SECONDS = float(os.getenv("SCORE_CACHE_TTL_SECONDS", "300"))

_MISSING = object()


class TTLCache:
    """Bounded LRU mapping whose entries expire ``ttl`` seconds after insert."""

    def __init__(
        self,
        maxsize: int = 1024,
        ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self.maxsize = maxsize
        self.ttl = ttl
        self._clock = clock
        self._data: "OrderedDict[Hashable, tuple[float, Any]]" = OrderedDict()

    def get(self, key: Hashable, default: Any = None) -> Any:
        entry = self._data.get(key, _MISSING)
        if entry is _MISSING:
            return default
        expires_at, value = entry
        if expires_at <= self._clock():
            del self._data[key]
            return default
        self._data.move_to_end(key)
        return value

    def set(self, key: Hashable, value: Any) -> None:
        self._data[key] = (self._clock() + self.ttl, value)
        self._data.move_to_end(key)
        while len(self._data) > self.maxsize:
            evicted, _ = self._data.popitem(last=False)
            logger.debug("Evicted cache entry %r", evicted)

    def pop(self, key: Hashable) -> None:
        self._data.pop(key, None)

    def pop_where(self, predicate: Callable[[Hashable], bool]) -> int:
        """Drop every key matching ``predicate``; returns how many were dropped."""
        keys = [k for k in self._data if predicate(k)]
        for key in keys:
            del self._data[key]
        return len(keys)

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        return len(self._data)


class ScoreCache:
    """Memoized course and session scores for display endpoints.

    Keys are ``("course", user_id, cours_id)`` and
    ``("session", user_id, session_id)``.
    """

    def __init__(
        self,
        maxsize: int = SCORE_CACHE_SIZE,
        ttl: float = SCORE_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache = TTLCache(maxsize=maxsize, ttl=ttl, clock=clock)

    def get_course(self, user_id: int, cours_id: int) -> Optional[Any]:
        return self._cache.get(("course", user_id, cours_id))

    def set_course(self, user_id: int, cours_id: int, result: Any) -> None:
        self._cache.set(("course", user_id, cours_id), result)

    def get_session(self, user_id: int, session_id: int) -> Optional[Any]:
        return self._cache.get(("session", user_id, session_id))

    def set_session(self, user_id: int, session_id: int, result: Any) -> None:
        self._cache.set(("session", user_id, session_id), result)

    def invalidate(self, user_id: int, cours_id: int) -> None:
        self._cache.pop(("course", user_id, cours_id))

    def invalidate_user(self, user_id: int) -> None:
        dropped = self._cache.pop_where(lambda key: key[1] == user_id)
        if dropped:
            logger.debug("Dropped %d cached scores for user %s", dropped, user_id)

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
