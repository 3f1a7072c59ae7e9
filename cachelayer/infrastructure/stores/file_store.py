"""
Async file-backed cache store with TTL, tags, LRU eviction and multi-instance safety.

Entries are pickled ``StoredEntry`` records laid out under a 2-level hash
directory structure (``<root>/ab/cd/abcd....pkl``) keyed by the SHA256 of the
opaque cache key. Writes go to a temporary file and are renamed into place;
reads take an ``fcntl`` shared lock so several processes can share one root.
"""

import asyncio
import fcntl
import hashlib
import logging
import os
import pickle
import time
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from cachelayer.domain.exceptions import StoreError

logger = logging.getLogger(__name__)


@dataclass
class StoredEntry:
    """Cache entry with value and metadata for TTL and tag tracking.

    Last access is the file mtime, so reads never rewrite the entry.
    """

    key: str
    value: Any
    created_at: float
    ttl: float
    tags: frozenset[str] = field(default_factory=frozenset)

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


class AsyncFileStore:
    """
    File-backed cache store.

    Features:
    - Async file I/O via aiofiles
    - SHA256-derived paths, so any string is a valid key
    - Per-entry TTL with a configurable default
    - Tag invalidation by scanning stored entries
    - Size-limited with LRU eviction, checked periodically on write
    - fcntl shared locks on read, atomic temp-file + rename on write
    """

    def __init__(
        self,
        cache_dir: str | Path,
        store_id: str = "filesystem",
        default_ttl: float = 3600.0,
        max_size_mb: int = 1024,
        eviction_check_interval: int = 300,
    ) -> None:
        """
        Initialize the file store.

        Args:
            cache_dir: Root directory for entries
            store_id: Identifier used by the registry and in logs
            default_ttl: Default time-to-live in seconds
            max_size_mb: Maximum store size in megabytes
            eviction_check_interval: Minimum seconds between eviction checks
        """
        self.store_id = store_id
        self.cache_dir = Path(cache_dir)
        self.default_ttl = default_ttl
        self.max_size_bytes = max_size_mb * 1024 * 1024
        self.eviction_check_interval = eviction_check_interval
        self._last_eviction_check: float = 0.0
        self._lock = asyncio.Lock()

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        logger.info(
            f"Initialized AsyncFileStore: dir={cache_dir}, "
            f"ttl={default_ttl}s, max_size={max_size_mb}MB"
        )

    def _get_entry_path(self, key: str) -> Path:
        """
        Map a key to its file.

        Example:
            Key: "user:42" -> sha256 "abcd1234..."
            Path: <root>/ab/cd/abcd1234....pkl
        """
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.cache_dir / digest[:2] / digest[2:4] / f"{digest}.pkl"

    async def _atomic_write(self, file_path: Path, data: bytes) -> None:
        """
        Write data to a temporary file and rename it into place.

        Raises:
            StoreError: If the write fails
        """
        temp_path = file_path.with_name(f"{file_path.name}.{uuid.uuid4().hex}.tmp")
        try:
            await aiofiles.os.makedirs(file_path.parent, exist_ok=True)
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(data)
            await aiofiles.os.replace(temp_path, file_path)
        except OSError as e:
            if await aiofiles.os.path.exists(temp_path):
                try:
                    await aiofiles.os.remove(temp_path)
                except OSError as cleanup_error:
                    logger.debug(f"Failed to remove temp file {temp_path}: {cleanup_error}")
            raise StoreError(f"Failed to write cache file {file_path}: {e}") from e

    async def _read_with_lock(self, file_path: Path) -> bytes | None:
        """
        Read a file under an fcntl shared lock.

        Returns:
            File contents, or None if the file is missing or unreadable
        """
        if not await aiofiles.os.path.exists(file_path):
            return None

        try:
            async with aiofiles.open(file_path, "rb") as f:
                fd = f.fileno()
                fcntl.flock(fd, fcntl.LOCK_SH)
                try:
                    return await f.read()
                finally:
                    fcntl.flock(fd, fcntl.LOCK_UN)
        except OSError as e:
            logger.warning(f"Failed to read cache file {file_path}: {e}")
            return None

    async def _load_entry(self, file_path: Path) -> StoredEntry | None:
        data = await self._read_with_lock(file_path)
        if data is None:
            return None
        try:
            return pickle.loads(data)
        except (pickle.UnpicklingError, EOFError, AttributeError, ImportError, ValueError) as e:
            logger.warning(f"Failed to deserialize cache entry {file_path}: {e}")
            return None

    async def _touch(self, file_path: Path) -> None:
        # LRU bookkeeping; a failed update must not fail the read
        try:
            await asyncio.to_thread(os.utime, file_path)
        except OSError as e:
            logger.debug(f"Failed to update access time for {file_path}: {e}")

    async def _remove_if_expired(self, file_path: Path) -> None:
        # Writes hold the lock, so a value stored since the read is never removed
        async with self._lock:
            entry = await self._load_entry(file_path)
            if entry is not None and entry.is_expired(time.time()):
                await self._remove(file_path)

    async def _remove(self, file_path: Path) -> bool:
        try:
            await aiofiles.os.remove(file_path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to delete {file_path}: {e}")
            return False

    async def get(self, key: str, default: Any = None) -> Any:
        """
        Get value by key.

        Args:
            key: Cache key
            default: Returned when the entry is missing, expired or unreadable

        Returns:
            Cached value or ``default``
        """
        file_path = self._get_entry_path(key)
        entry = await self._load_entry(file_path)

        if entry is None:
            logger.debug(f"Cache miss: {key} (file not found)")
            return default

        current_time = time.time()
        if entry.is_expired(current_time):
            logger.debug(f"Cache miss: {key} (expired, age={current_time - entry.created_at:.1f}s)")
            await self._remove_if_expired(file_path)
            return default

        await self._touch(file_path)

        logger.debug(f"Cache hit: {key} (age={current_time - entry.created_at:.1f}s, ttl={entry.ttl}s)")
        return entry.value

    async def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        tags: Iterable[str] = (),
    ) -> None:
        """
        Store value with optional TTL override and tags.

        Raises:
            StoreError: If the value cannot be serialized or written
        """
        current_time = time.time()
        entry = StoredEntry(
            key=key,
            value=value,
            created_at=current_time,
            ttl=ttl if ttl is not None else self.default_ttl,
            tags=frozenset(tags),
        )

        try:
            data = pickle.dumps(entry)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            raise StoreError(f"Cannot serialize value for {key}: {e}") from e

        async with self._lock:
            await self._atomic_write(self._get_entry_path(key), data)
        logger.debug(f"Cache set: {key} (ttl={entry.ttl}s, size={len(data)} bytes)")

        if current_time - self._last_eviction_check > self.eviction_check_interval:
            self._last_eviction_check = current_time
            await self._check_and_evict()

    async def delete(self, key: str) -> bool:
        """Delete entry by key. Returns True if it existed."""
        deleted = await self._remove(self._get_entry_path(key))
        if deleted:
            logger.debug(f"Cache delete: {key}")
        return deleted

    async def invalidate(self, tags: str | Iterable[str]) -> int:
        """
        Delete every entry carrying any of the given tags.

        Returns:
            Number of entries deleted
        """
        wanted = {tags} if isinstance(tags, str) else set(tags)
        async with self._lock:
            count = 0
            for file_path in self.cache_dir.rglob("*.pkl"):
                entry = await self._load_entry(file_path)
                if entry is not None and entry.tags & wanted:
                    if await self._remove(file_path):
                        count += 1

        logger.info(f"Cache invalidate: removed {count} entries for tags {sorted(wanted)}")
        return count

    async def clear(self) -> int:
        """Delete every entry. Returns the number deleted."""
        async with self._lock:
            count = 0
            for file_path in self.cache_dir.rglob("*.pkl"):
                if await self._remove(file_path):
                    count += 1

        logger.info(f"Cache clear: deleted {count} entries")
        return count

    async def _get_cache_size(self) -> int:
        total_size = 0
        for file_path in self.cache_dir.rglob("*.pkl"):
            try:
                total_size += file_path.stat().st_size
            except FileNotFoundError:
                continue
        return total_size

    async def _check_and_evict(self) -> None:
        """
        Evict least recently used entries while the store is over its size limit.
        """
        async with self._lock:
            current_size = await self._get_cache_size()
            if current_size <= self.max_size_bytes:
                return

            logger.info(
                f"Cache size exceeded: {current_size / 1024 / 1024:.1f}MB / "
                f"{self.max_size_bytes / 1024 / 1024:.1f}MB - starting LRU eviction"
            )

            candidates: list[tuple[Path, float, int]] = []
            for file_path in self.cache_dir.rglob("*.pkl"):
                try:
                    stat = file_path.stat()
                except FileNotFoundError:
                    continue
                candidates.append((file_path, stat.st_mtime, stat.st_size))

            candidates.sort(key=lambda item: item[1])

            evicted_count = 0
            freed_bytes = 0
            for file_path, _, file_size in candidates:
                if current_size - freed_bytes <= self.max_size_bytes:
                    break
                if await self._remove(file_path):
                    evicted_count += 1
                    freed_bytes += file_size

            logger.info(
                f"LRU eviction complete: evicted {evicted_count} entries, "
                f"freed {freed_bytes / 1024 / 1024:.1f}MB"
            )

    async def get_stats(self) -> dict[str, Any]:
        """
        Get store statistics.

        Returns:
            Dict with entry count, size and utilization
        """
        entry_count = sum(1 for _ in self.cache_dir.rglob("*.pkl"))
        total_size = await self._get_cache_size()

        return {
            "entry_count": entry_count,
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / 1024 / 1024, 2),
            "max_size_mb": self.max_size_bytes / 1024 / 1024,
            "utilization_percent": (
                round((total_size / self.max_size_bytes) * 100, 2) if self.max_size_bytes > 0 else 0
            ),
            "default_ttl_seconds": self.default_ttl,
        }
