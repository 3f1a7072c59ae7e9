"""Tests for MemoryStore."""

import asyncio

import pytest

from cachelayer.domain.models import INVALID_STORE
from cachelayer.infrastructure.stores import MemoryStore


class TestMemoryStore:
    """Test basic in-memory store operations."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, memory_store: MemoryStore) -> None:
        """Test basic set and get operations."""
        await memory_store.set("k", {"a": 1})
        assert await memory_store.get("k") == {"a": 1}

    @pytest.mark.asyncio
    async def test_missing_returns_default(self, memory_store: MemoryStore) -> None:
        """Test the caller-supplied default is returned for absent keys."""
        assert await memory_store.get("missing") is None
        assert await memory_store.get("missing", INVALID_STORE) is INVALID_STORE

    @pytest.mark.asyncio
    async def test_falsy_values_are_hits(self, memory_store: MemoryStore) -> None:
        """Test falsy values are distinguishable from absence."""
        for index, value in enumerate((0, "", None, False)):
            await memory_store.set(f"k{index}", value)
            assert await memory_store.get(f"k{index}", INVALID_STORE) == value

    @pytest.mark.asyncio
    async def test_ttl_expiration(self, memory_store: MemoryStore) -> None:
        """Test entries expire after their TTL."""
        await memory_store.set("k", "value", ttl=0.05)
        assert await memory_store.get("k") == "value"
        await asyncio.sleep(0.1)
        assert await memory_store.get("k", INVALID_STORE) is INVALID_STORE

    @pytest.mark.asyncio
    async def test_delete(self, memory_store: MemoryStore) -> None:
        """Test deleting entries."""
        await memory_store.set("k", "value")
        assert await memory_store.delete("k") is True
        assert await memory_store.delete("k") is False
        assert await memory_store.get("k") is None

    @pytest.mark.asyncio
    async def test_invalidate_by_tag(self, memory_store: MemoryStore) -> None:
        """Test entries sharing a tag are removed together."""
        await memory_store.set("a", 1, tags=["reports"])
        await memory_store.set("b", 2, tags=["reports", "users"])
        await memory_store.set("c", 3, tags=["users"])
        await memory_store.set("d", 4)

        assert await memory_store.invalidate("reports") == 2
        assert await memory_store.get("a") is None
        assert await memory_store.get("b") is None
        assert await memory_store.get("c") == 3
        assert await memory_store.get("d") == 4

    @pytest.mark.asyncio
    async def test_clear_and_stats(self, memory_store: MemoryStore) -> None:
        """Test clearing the store and reading statistics."""
        await memory_store.set("a", 1)
        await memory_store.set("b", 2)
        stats = await memory_store.get_stats()
        assert stats["entry_count"] == 2

        assert await memory_store.clear() == 2
        assert (await memory_store.get_stats())["entry_count"] == 0
