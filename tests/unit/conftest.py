"""Test configuration and fixtures.

Provides:
- Python path setup for imports
- Store and memoizer fixtures
- Counting workers for hit/miss assertions
"""

import sys
from collections.abc import Awaitable, Callable
from pathlib import Path

import pytest

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from cachelayer.application.memoize import Memoizer  # noqa: E402
from cachelayer.infrastructure.stores import AsyncFileStore, MemoryStore  # noqa: E402


class CountingWorker:
    """Async worker returning an increasing counter, optionally failing first."""

    def __init__(self, failures: int = 0, error: Exception | None = None) -> None:
        self.calls = 0
        self.failures = failures
        self.error = error or RuntimeError("worker failed")

    async def __call__(self) -> int:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.calls


# ============================================================================
# Stores
# ============================================================================


@pytest.fixture
def memory_store() -> MemoryStore:
    """Fresh in-memory store."""
    return MemoryStore(default_ttl=3600)


@pytest.fixture
def file_store(tmp_path: Path) -> AsyncFileStore:
    """File store rooted in a temporary directory."""
    return AsyncFileStore(cache_dir=tmp_path / "store", default_ttl=3600)


@pytest.fixture
def memoizer(memory_store: MemoryStore) -> Memoizer:
    """Memoizer over the in-memory store."""
    return Memoizer(memory_store, default_expiry="1h")


# ============================================================================
# Workers
# ============================================================================


@pytest.fixture
def counting_worker() -> CountingWorker:
    """Worker returning 1, 2, 3... on successive calls."""
    return CountingWorker()


@pytest.fixture
def make_worker() -> Callable[..., CountingWorker]:
    """Factory for workers that fail a given number of times first."""

    def factory(failures: int = 0, error: Exception | None = None) -> CountingWorker:
        return CountingWorker(failures=failures, error=error)

    return factory


@pytest.fixture
def failing_worker() -> Callable[[], Awaitable[int]]:
    """Worker that always fails."""
    return CountingWorker(failures=10**6, error=ValueError("always fails"))
