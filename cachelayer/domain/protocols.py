"""Protocol definitions for dependency inversion.

The memoizer and the API depend on these abstractions; concrete stores live in
``cachelayer.infrastructure.stores``.
"""

from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Protocol, TypeVar

T = TypeVar("T")

# Argument-less factory producing a fresh awaitable on every call
Worker = Callable[[], Awaitable[T]]


class CacheStore(Protocol):
    """Key-value store with TTL and tag invalidation."""

    store_id: str

    async def get(self, key: str, default: Any = None) -> Any:
        """Get value by key.

        Args:
            key: Cache key
            default: Returned when the key is absent or expired

        Returns:
            Stored value or ``default``
        """
        ...

    async def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        tags: Iterable[str] = (),
    ) -> None:
        """Store value under key.

        Args:
            key: Cache key
            value: Value to store
            ttl: Lifetime in seconds (store default if None)
            tags: Tags for bulk invalidation

        Raises:
            StoreError: If the write fails
        """
        ...

    async def delete(self, key: str) -> bool:
        """Delete an entry. Returns True if it existed."""
        ...

    async def invalidate(self, tags: str | Iterable[str]) -> int:
        """Delete every entry carrying any of the tags. Returns the count."""
        ...

    async def clear(self) -> int:
        """Delete every entry. Returns the count."""
        ...

    async def get_stats(self) -> dict[str, Any]:
        """Return store statistics."""
        ...
