"""In-memory cache with per-entry expiry."""

import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


class TTLCache:
    """
    Key/value cache whose entries expire after ``ttl`` seconds.

    A ``ttl`` of 0 keeps entries until they are deleted. Expired entries are
    dropped lazily on access and in bulk every ``check_period`` seconds.
    """

    def __init__(
        self,
        ttl: float = 0,
        check_period: float = 600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl < 0:
            raise ValueError("ttl must not be negative")
        self.ttl = ttl
        self.check_period = check_period
        self._clock = clock
        self._store: Dict[Hashable, Tuple[Any, Optional[float]]] = {}
        self._last_purge = clock()

    def _expiry(self, ttl: Optional[float]) -> Optional[float]:
        ttl = self.ttl if ttl is None else ttl
        return self._clock() + ttl if ttl else None

    def _maybe_purge(self) -> None:
        now = self._clock()
        if self.check_period and now - self._last_purge >= self.check_period:
            self.purge()

    def purge(self) -> int:
        """Drop all expired entries and return how many were removed."""
        now = self._clock()
        self._last_purge = now
        expired = [
            key
            for key, (_, expires_at) in self._store.items()
            if expires_at is not None and expires_at <= now
        ]
        for key in expired:
            del self._store[key]
        return len(expired)

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        self._maybe_purge()
        self._store[key] = (value, self._expiry(ttl))

    def get(self, key: Hashable, default: Any = None) -> Any:
        self._maybe_purge()
        entry = self._store.get(key)
        if entry is None:
            return default
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._store[key]
            return default
        return value

    def has(self, key: Hashable) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel

    def delete(self, key: Hashable) -> bool:
        return self._store.pop(key, None) is not None

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        self.purge()
        return len(self._store)

    def __contains__(self, key: Hashable) -> bool:
        return self.has(key)
