"""Deduplicate identical in-flight computations."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

T = TypeVar("T")


class RequestCoalescer:
    """Share one in-flight task between concurrent callers of the same key."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[Any]] = {}
        self._lock = asyncio.Lock()

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        async with self._lock:
            existing = self._tasks.get(key)
            if existing is None:
                existing = asyncio.ensure_future(factory())
                self._tasks[key] = existing
                owner = True
            else:
                owner = False

        if not owner:
            return await asyncio.shield(existing)

        try:
            return await existing
        finally:
            async with self._lock:
                self._tasks.pop(key, None)

    def in_flight(self, key: str) -> bool:
        return key in self._tasks
