"""Process-local cache store suitable for development and test workloads."""

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class MemoryEntry:
    """One cached row with expiration metadata."""

    value: Any
    expires_at: float
    tags: frozenset[str] = field(default_factory=frozenset)


class MemoryStore:
    """In-memory store with per-entry TTL and tag invalidation."""

    def __init__(self, store_id: str = "memory", default_ttl: float = 3600.0) -> None:
        self.store_id = store_id
        self.default_ttl = default_ttl
        self._rows: dict[str, MemoryEntry] = {}

    async def get(self, key: str, default: Any = None) -> Any:
        row = self._rows.get(key)
        if row is None:
            logger.debug(f"Cache miss: {key} (store={self.store_id})")
            return default
        if row.expires_at <= time.monotonic():
            logger.debug(f"Cache miss: {key} (expired, store={self.store_id})")
            self._rows.pop(key, None)
            return default
        logger.debug(f"Cache hit: {key} (store={self.store_id})")
        return row.value

    async def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        tags: Iterable[str] = (),
    ) -> None:
        lifetime = ttl if ttl is not None else self.default_ttl
        self._rows[key] = MemoryEntry(
            value=value,
            expires_at=time.monotonic() + lifetime,
            tags=frozenset(tags),
        )
        logger.debug(f"Cache set: {key} (ttl={lifetime}s, store={self.store_id})")

    async def delete(self, key: str) -> bool:
        existed = self._rows.pop(key, None) is not None
        if existed:
            logger.debug(f"Cache delete: {key} (store={self.store_id})")
        return existed

    async def invalidate(self, tags: str | Iterable[str]) -> int:
        wanted = {tags} if isinstance(tags, str) else set(tags)
        doomed = [key for key, row in self._rows.items() if row.tags & wanted]
        for key in doomed:
            del self._rows[key]
        logger.info(
            f"Cache invalidate: removed {len(doomed)} entries "
            f"for tags {sorted(wanted)} (store={self.store_id})"
        )
        return len(doomed)

    async def clear(self) -> int:
        count = len(self._rows)
        self._rows.clear()
        logger.info(f"Cache clear: deleted {count} entries (store={self.store_id})")
        return count

    async def get_stats(self) -> dict[str, Any]:
        now = time.monotonic()
        live = sum(1 for row in self._rows.values() if row.expires_at > now)
        return {
            "entry_count": live,
            "expired_count": len(self._rows) - live,
            "default_ttl_seconds": self.default_ttl,
        }
