"""
Section-scoped cache of detail payloads for one tender view.

Entries are served while younger than the staleness window, evicted once older
than the retention window, and dropped immediately on invalidation. Nothing
else refreshes them: revisiting a tab or regaining connectivity does not.
"""
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import redis

from tendermonitor.config import settings
from ..models.pydantic_models import CacheEntry
from ..models.sections import SectionId

logger = logging.getLogger(__name__)

DetailLoader = Callable[[SectionId], Awaitable[Dict[str, Any]]]


class MemoryCacheStore:
    """Process-local store, the default for a single dashboard process."""

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def set(self, key: str, entry: CacheEntry, ttl: float):
        self._entries[key] = entry

    def delete(self, key: str):
        self._entries.pop(key, None)

    def keys(self, prefix: str):
        return [k for k in self._entries if k.startswith(prefix)]


class RedisCacheStore:
    """Redis-backed store so several dashboard workers share section payloads."""

    KEY_PREFIX = "tendermonitor:section-cache:"

    def __init__(self, client: redis.Redis):
        self.client = client

    def get(self, key: str) -> Optional[CacheEntry]:
        raw = self.client.get(self.KEY_PREFIX + key)
        if raw is None:
            return None
        try:
            return CacheEntry.model_validate(json.loads(raw))
        except ValueError:
            logger.warning(f"Dropping unreadable cache entry {key}")
            self.delete(key)
            return None

    def set(self, key: str, entry: CacheEntry, ttl: float):
        # Retention is enforced by Redis expiry as well as on read
        self.client.set(self.KEY_PREFIX + key, entry.model_dump_json(), ex=max(1, int(ttl)))

    def delete(self, key: str):
        self.client.delete(self.KEY_PREFIX + key)

    def keys(self, prefix: str):
        full_prefix = self.KEY_PREFIX + prefix
        return [k[len(self.KEY_PREFIX):] for k in self.client.scan_iter(match=full_prefix + "*")]


def build_cache_store():
    """Returns the store selected by CACHE_BACKEND."""
    if settings.CACHE_BACKEND == "redis":
        from tendermonitor.db.redis_client import get_redis_client
        return RedisCacheStore(get_redis_client())
    return MemoryCacheStore()


class SectionCache:
    def __init__(
        self,
        tender_id: str,
        loader: DetailLoader,
        store=None,
        stale_after: Optional[float] = None,
        retain_for: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.tender_id = tender_id
        self.loader = loader
        self.store = store if store is not None else MemoryCacheStore()
        self.stale_after = stale_after if stale_after is not None else settings.CACHE_STALE_SECONDS
        self.retain_for = retain_for if retain_for is not None else settings.CACHE_RETENTION_SECONDS
        self.clock = clock
        # Bumped on invalidation so a fetch that started earlier cannot store its result
        self._generations: Dict[SectionId, int] = {}

    def _key(self, section_id: SectionId) -> str:
        return f"{self.tender_id}:{section_id.value}"

    def peek(self, section_id: SectionId) -> Optional[CacheEntry]:
        """The stored entry if it has not outlived retention, without fetching."""
        entry = self.store.get(self._key(section_id))
        if entry is None:
            return None
        if self.clock() - entry.fetched_at >= self.retain_for:
            self.store.delete(self._key(section_id))
            return None
        return entry

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self.clock() - entry.fetched_at < self.stale_after

    async def get(self, section_id: SectionId) -> Dict[str, Any]:
        self.purge_expired()
        entry = self.peek(section_id)
        if entry is not None and self.is_fresh(entry):
            logger.debug(f"Cache hit for {self.tender_id}/{section_id.value}")
            return entry.payload

        generation = self._generations.get(section_id, 0)
        payload = await self.loader(section_id)
        if self._generations.get(section_id, 0) == generation:
            self.store.set(
                self._key(section_id),
                CacheEntry(section_id=section_id, payload=payload, fetched_at=self.clock()),
                ttl=self.retain_for,
            )
        else:
            logger.debug(f"Not caching {self.tender_id}/{section_id.value}: invalidated during fetch")
        return payload

    def invalidate(self, section_id: SectionId):
        """Evicts one section's entry regardless of its age."""
        self._generations[section_id] = self._generations.get(section_id, 0) + 1
        self.store.delete(self._key(section_id))
        logger.info(f"Invalidated cached {section_id.value} for tender {self.tender_id}")

    def clear(self):
        """Evicts every section of this tender."""
        for key in self.store.keys(f"{self.tender_id}:"):
            section_id = SectionId.from_tab(key.rsplit(":", 1)[1])
            self._generations[section_id] = self._generations.get(section_id, 0) + 1
            self.store.delete(key)

    def purge_expired(self) -> int:
        """Evicts entries older than the retention window. Returns how many were dropped."""
        purged = 0
        for key in self.store.keys(f"{self.tender_id}:"):
            entry = self.store.get(key)
            if entry is not None and self.clock() - entry.fetched_at >= self.retain_for:
                self.store.delete(key)
                purged += 1
        return purged
