"""Read-through cache in front of a signal key store."""

import logging
from typing import Any, Dict, Iterable, Optional

from ..cache import TTLCache
from .state import KeyData, SignalKeyStore, storage_key

logger = logging.getLogger(__name__)

DEFAULT_KEY_CACHE_TTL = 5 * 60


class CacheableSignalKeyStore(SignalKeyStore):
    """
    Signal key store that remembers recently used keys.

    Reads only hit the backing store for ids not cached yet. Writes go
    through to the backing store and update the cache; deleted keys are
    evicted.
    """

    def __init__(
        self,
        store: SignalKeyStore,
        cache: Optional[TTLCache] = None,
    ) -> None:
        self.store = store
        if cache is None:
            cache = TTLCache(ttl=DEFAULT_KEY_CACHE_TTL, check_period=120)
        self.cache = cache

    async def get(self, type: str, ids: Iterable[str]) -> Dict[str, Any]:
        ids = list(ids)
        result: Dict[str, Any] = {}
        missing = []
        for key_id in ids:
            item = self.cache.get(storage_key(type, key_id))
            if item is not None:
                result[key_id] = item
            else:
                missing.append(key_id)

        if missing:
            logger.debug(f"Loading {len(missing)} {type} key(s) from store")
            fetched = await self.store.get(type, missing)
            for key_id in missing:
                item = fetched.get(key_id)
                if item:
                    self.cache.set(storage_key(type, key_id), item)
                result[key_id] = item

        return {key_id: result.get(key_id) for key_id in ids}

    async def set(self, data: KeyData) -> None:
        for category, entries in data.items():
            for key_id, value in entries.items():
                if value:
                    self.cache.set(storage_key(category, key_id), value)
                else:
                    self.cache.delete(storage_key(category, key_id))
        await self.store.set(data)

    def clear(self) -> None:
        self.cache.clear()
