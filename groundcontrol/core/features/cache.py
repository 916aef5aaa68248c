"""
In-process TTL cache for flag lookups.

Flags are frozen snapshots, so cached values can be shared between
concurrent evaluations without copying. Writes evict by code, once
immediately and again after their transaction commits.

Note: Not shared between processes. Each worker warms its own cache.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from groundcontrol.utils.timezone import utc_now

from .interfaces import FeatureFlag


@dataclass
class CacheEntry:
    """Cache entry with value and expiration."""
    value: FeatureFlag
    expires_at: datetime | None = None

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return utc_now() >= self.expires_at


class FlagCache:
    """
    Flag snapshots keyed by code.

    A ttl of 0 disables caching entirely.

    Every eviction bumps ``generation``. A reader that captured the
    generation before loading from the backend passes it to set(); the
    snapshot is dropped if a write evicted anything in between.

    Usage:
        cache = FlagCache(ttl=60)
        generation = cache.generation
        cache.set(flag, generation)
        flag = cache.get("new_checkout")
        cache.evict("new_checkout")
    """

    def __init__(self, ttl: int = 60):
        self.ttl = ttl
        self._store: dict[str, CacheEntry] = {}
        self._generation = 0

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    @property
    def generation(self) -> int:
        return self._generation

    def get(self, code: str) -> FeatureFlag | None:
        entry = self._store.get(code)
        if entry is None:
            return None
        if entry.is_expired:
            del self._store[code]
            return None
        return entry.value

    def set(self, flag: FeatureFlag, generation: int | None = None) -> None:
        if not self.enabled:
            return
        if generation is not None and generation != self._generation:
            return
        expires_at = utc_now() + timedelta(seconds=self.ttl)
        self._store[flag.code] = CacheEntry(value=flag, expires_at=expires_at)

    def evict(self, *codes: str) -> None:
        self._generation += 1
        for code in codes:
            self._store.pop(code, None)

    def clear(self) -> None:
        """Clear all cache entries."""
        self._generation += 1
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)
