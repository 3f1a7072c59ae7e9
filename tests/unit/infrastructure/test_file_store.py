"""Tests for AsyncFileStore implementation.

Tests cover:
- Basic get/set/delete operations
- Sentinel-aware misses
- TTL expiration
- Tag invalidation
- LRU eviction
- Hash-based directory structure
- Store statistics
- Error handling
"""

import asyncio
from pathlib import Path

import pytest

from cachelayer.domain.exceptions import StoreError
from cachelayer.domain.models import INVALID_STORE
from cachelayer.infrastructure.stores import AsyncFileStore


class TestAsyncFileStoreBasics:
    """Test basic store operations."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, file_store: AsyncFileStore) -> None:
        """Test basic set and get operations."""
        await file_store.set("report:2024", "test value")
        assert await file_store.get("report:2024") == "test value"

    @pytest.mark.asyncio
    async def test_get_nonexistent(self, file_store: AsyncFileStore) -> None:
        """Test getting a non-existent key returns the default."""
        assert await file_store.get("nonexistent") is None
        assert await file_store.get("nonexistent", INVALID_STORE) is INVALID_STORE

    @pytest.mark.asyncio
    async def test_falsy_values_are_hits(self, file_store: AsyncFileStore) -> None:
        """Test stored None/0/'' are returned rather than the default."""
        for index, value in enumerate((None, 0, "")):
            await file_store.set(f"falsy{index}", value)
            assert await file_store.get(f"falsy{index}", INVALID_STORE) == value

    @pytest.mark.asyncio
    async def test_delete(self, file_store: AsyncFileStore) -> None:
        """Test deleting a cache entry."""
        await file_store.set("k", "value")
        assert await file_store.get("k") == "value"

        assert await file_store.delete("k") is True
        assert await file_store.get("k") is None

    @pytest.mark.asyncio
    async def test_delete_nonexistent(self, file_store: AsyncFileStore) -> None:
        """Test deleting a non-existent key returns False."""
        assert await file_store.delete("nonexistent") is False


class TestAsyncFileStoreTTL:
    """Test TTL (time-to-live) functionality."""

    @pytest.mark.asyncio
    async def test_ttl_expiration(self, tmp_path: Path) -> None:
        """Test that entries expire after the default TTL."""
        store = AsyncFileStore(cache_dir=tmp_path, default_ttl=0.2)

        await store.set("k", "value")
        assert await store.get("k") == "value"

        await asyncio.sleep(0.4)

        assert await store.get("k", INVALID_STORE) is INVALID_STORE
        assert not store._get_entry_path("k").exists()

    @pytest.mark.asyncio
    async def test_custom_ttl(self, file_store: AsyncFileStore) -> None:
        """Test setting custom TTL per entry."""
        await file_store.set("k", "value", ttl=0.2)
        await asyncio.sleep(0.4)
        assert await file_store.get("k") is None

    @pytest.mark.asyncio
    async def test_get_updates_access_time(self, file_store: AsyncFileStore) -> None:
        """Test that get() records the access time on the entry file."""
        await file_store.set("k", "value")
        file_path = file_store._get_entry_path("k")
        initial_mtime = file_path.stat().st_mtime

        await asyncio.sleep(0.1)
        await file_store.get("k")

        assert file_path.stat().st_mtime > initial_mtime


class TestAsyncFileStoreLayout:
    """Test key to path mapping."""

    def test_entry_path_structure(self, tmp_path: Path) -> None:
        """Test 2-level hash-based directory structure."""
        store = AsyncFileStore(cache_dir=tmp_path)
        path = store._get_entry_path("any key / with ../ odd characters")

        assert path.is_relative_to(tmp_path)
        digest = path.stem
        assert len(digest) == 64
        assert path.parts[-3] == digest[:2]
        assert path.parts[-2] == digest[2:4]
        assert path.suffix == ".pkl"

    def test_entry_path_is_stable(self, tmp_path: Path) -> None:
        """Test the same key always maps to the same file."""
        store = AsyncFileStore(cache_dir=tmp_path)
        assert store._get_entry_path("k") == store._get_entry_path("k")
        assert store._get_entry_path("k") != store._get_entry_path("k2")


class TestAsyncFileStoreInvalidation:
    """Test tag invalidation and clearing."""

    @pytest.mark.asyncio
    async def test_invalidate_by_tag(self, file_store: AsyncFileStore) -> None:
        """Test entries sharing a tag are removed together."""
        await file_store.set("a", 1, tags=["reports"])
        await file_store.set("b", 2, tags=["reports", "users"])
        await file_store.set("c", 3, tags=["users"])

        assert await file_store.invalidate(["reports"]) == 2
        assert await file_store.get("a") is None
        assert await file_store.get("b") is None
        assert await file_store.get("c") == 3

    @pytest.mark.asyncio
    async def test_clear_all(self, file_store: AsyncFileStore) -> None:
        """Test clearing entire store."""
        await file_store.set("k1", "value1")
        await file_store.set("k2", "value2")

        assert await file_store.clear() == 2
        assert await file_store.get("k1") is None
        assert await file_store.get("k2") is None


class TestAsyncFileStoreLRU:
    """Test LRU eviction functionality."""

    @pytest.mark.asyncio
    async def test_lru_eviction_removes_oldest(self, tmp_path: Path) -> None:
        """Test that LRU eviction removes least recently used entries first."""
        store = AsyncFileStore(
            cache_dir=tmp_path,
            default_ttl=3600,
            max_size_mb=0.001,  # ~1KB
            eviction_check_interval=3600,
        )

        await store.set("first", "a" * 400)
        await asyncio.sleep(0.05)
        await store.set("second", "b" * 400)
        await asyncio.sleep(0.05)
        await store.set("third", "c" * 400)

        await store._check_and_evict()

        stats = await store.get_stats()
        assert stats["total_size_bytes"] <= store.max_size_bytes
        assert await store.get("first") is None
        assert await store.get("third") == "c" * 400


class TestAsyncFileStoreStats:
    """Test store statistics."""

    @pytest.mark.asyncio
    async def test_get_stats(self, tmp_path: Path) -> None:
        """Test getting store statistics."""
        store = AsyncFileStore(cache_dir=tmp_path, default_ttl=3600, max_size_mb=10)

        stats = await store.get_stats()
        assert stats["entry_count"] == 0
        assert stats["total_size_bytes"] == 0
        assert stats["max_size_mb"] == 10
        assert stats["utilization_percent"] == 0
        assert stats["default_ttl_seconds"] == 3600

        await store.set("k1", "value1")
        await store.set("k2", "value2")

        stats = await store.get_stats()
        assert stats["entry_count"] == 2
        assert stats["total_size_bytes"] > 0
        assert stats["total_size_mb"] == round(stats["total_size_bytes"] / 1024 / 1024, 2)


class TestAsyncFileStoreConcurrency:
    """Test concurrent access patterns."""

    @pytest.mark.asyncio
    async def test_concurrent_writes(self, file_store: AsyncFileStore) -> None:
        """Test multiple concurrent writes."""
        await asyncio.gather(*[file_store.set(f"k{i}", f"value{i}") for i in range(10)])

        for i in range(10):
            assert await file_store.get(f"k{i}") == f"value{i}"

    @pytest.mark.asyncio
    async def test_concurrent_reads(self, file_store: AsyncFileStore) -> None:
        """Test multiple concurrent reads of one entry."""
        await file_store.set("shared", "shared value")

        results = await asyncio.gather(*[file_store.get("shared") for _ in range(10)])

        assert results == ["shared value"] * 10

    @pytest.mark.asyncio
    async def test_read_does_not_undo_concurrent_write(self, file_store: AsyncFileStore) -> None:
        """Test a hit racing a set never restores the old value."""
        for i in range(20):
            await file_store.set("k", f"old{i}")
            await asyncio.gather(file_store.get("k"), file_store.set("k", f"new{i}"))

            assert await file_store.get("k") == f"new{i}"

    @pytest.mark.asyncio
    async def test_expired_read_does_not_remove_fresh_write(self, file_store: AsyncFileStore) -> None:
        """Test a read of an expired entry racing a set keeps the new value."""
        for i in range(10):
            await file_store.set("k", "stale", ttl=0.01)
            await asyncio.sleep(0.03)
            await asyncio.gather(file_store.get("k"), file_store.set("k", f"fresh{i}"))

            assert await file_store.get("k") == f"fresh{i}"

    @pytest.mark.asyncio
    async def test_read_does_not_resurrect_deleted_entry(self, file_store: AsyncFileStore) -> None:
        """Test a hit racing a delete or invalidate leaves the entry gone."""
        for _ in range(20):
            await file_store.set("k", "value", tags=["t"])
            await asyncio.gather(file_store.get("k"), file_store.delete("k"))
            assert await file_store.get("k", INVALID_STORE) is INVALID_STORE

            await file_store.set("k", "value", tags=["t"])
            await asyncio.gather(file_store.get("k"), file_store.invalidate("t"))
            assert await file_store.get("k", INVALID_STORE) is INVALID_STORE


class TestAsyncFileStoreErrorHandling:
    """Test error handling."""

    def test_missing_directory_is_created(self, tmp_path: Path) -> None:
        """Test that the store creates its root directory."""
        cache_dir = tmp_path / "nested" / "cache"
        AsyncFileStore(cache_dir=cache_dir)
        assert cache_dir.exists()

    @pytest.mark.asyncio
    async def test_unpicklable_value_raises_store_error(self, file_store: AsyncFileStore) -> None:
        """Test values that cannot be serialized raise StoreError."""
        with pytest.raises(StoreError):
            await file_store.set("k", lambda: None)

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_a_miss(self, file_store: AsyncFileStore) -> None:
        """Test unreadable entries are treated as absent."""
        await file_store.set("k", "value")
        file_store._get_entry_path("k").write_bytes(b"not a pickle")

        assert await file_store.get("k", INVALID_STORE) is INVALID_STORE
