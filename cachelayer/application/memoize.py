"""
Memoized async computations.

``Memoizer.compute`` puts an argument-less async worker behind a cache key:

- disabled settings run the worker directly and never touch the store
- a hit returns the stored value, optionally replaced by ``on_cached``
- a miss runs the worker with retry/backoff and stores the result
- with ``reject_as`` configured the first failure is cached as that value

Attempts of one call are sequential. Concurrent misses on the same key each run
the worker (last write wins) unless coalescing is enabled.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import timedelta
from functools import wraps
from typing import Any, TypeVar

from cachelayer.domain.exceptions import ConfigurationError
from cachelayer.domain.models import MemoizeSettings, Override
from cachelayer.domain.protocols import CacheStore, Worker
from cachelayer.shared.coalescing import RequestCoalescer
from cachelayer.shared.retry import retry_with_backoff

logger = logging.getLogger(__name__)

T = TypeVar("T")

SettingsInput = MemoizeSettings | Mapping[str, Any] | str


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class Memoizer:
    """Memoize async computations in a cache store."""

    def __init__(
        self,
        store: CacheStore,
        *,
        default_expiry: str | int | float | timedelta = "1h",
        coalesce: bool = False,
    ) -> None:
        """
        Initialize memoizer.

        Args:
            store: Cache store holding computed values
            default_expiry: Lifetime for entries whose settings leave expiry unset
            coalesce: Coalesce concurrent misses for every call, not only for
                settings that ask for it
        """
        self.store = store
        self.default_expiry = default_expiry
        self.coalesce = coalesce
        self._coalescer = RequestCoalescer()

    async def compute(self, settings: SettingsInput, worker: Worker[T]) -> T:
        """
        Return the cached value for ``settings.id``, computing it on a miss.

        Args:
            settings: Settings object, mapping of settings, or a bare cache id
            worker: Argument-less factory returning a fresh awaitable per call;
                retries call it again, so it must not be a running coroutine

        Returns:
            Cached, computed, overridden or ``reject_as`` value

        Raises:
            ConfigurationError: For invalid settings or worker, or raised by the
                worker itself (never retried or cached)
            Exception: The worker's last failure once retries are exhausted, or
                whatever a hook raised
        """
        resolved = MemoizeSettings.coerce(settings)
        self._validate_worker(worker)

        if not resolved.enabled:
            logger.debug(f"Memoization disabled for {resolved.id}, running worker directly")
            return await _maybe_await(worker())

        if self.coalesce or resolved.coalesce:
            return await self._coalescer.run(resolved.id, lambda: self._lookup(resolved, worker))
        return await self._lookup(resolved, worker)

    def memoized(self, settings: SettingsInput) -> Callable[[Worker[T]], Callable[[], Awaitable[T]]]:
        """
        Decorator form of ``compute`` for argument-less async functions.

        Example:
            >>> @memoizer.memoized({"id": "exchange-rates", "expiry": "10m"})
            ... async def exchange_rates() -> dict:
            ...     return await fetch_rates()
        """
        resolved = MemoizeSettings.coerce(settings)

        def decorator(func: Worker[T]) -> Callable[[], Awaitable[T]]:
            @wraps(func)
            async def wrapper() -> T:
                return await self.compute(resolved, func)

            return wrapper

        return decorator

    async def delete(self, key: str) -> bool:
        """Drop one memoized value."""
        return await self.store.delete(key)

    async def invalidate(self, tags: str | Iterable[str]) -> int:
        """Drop every memoized value carrying any of the tags."""
        return await self.store.invalidate(tags)

    def _validate_worker(self, worker: Any) -> None:
        if inspect.isawaitable(worker):
            raise ConfigurationError(
                "Worker must be a factory returning an awaitable, not an already started "
                "coroutine, task or future"
            )
        if not callable(worker):
            raise ConfigurationError(f"Worker must be callable, got {type(worker).__name__}")

    async def _lookup(self, settings: MemoizeSettings, worker: Worker[T]) -> T:
        cached = await self.store.get(settings.id, settings.invalid_store)

        if cached is settings.invalid_store:
            logger.debug(f"Memoize miss: {settings.id}")
            return await self._refresh(settings, worker)

        logger.debug(f"Memoize hit: {settings.id}")
        if settings.on_cached is None:
            return cached

        override = await _maybe_await(settings.on_cached(settings, cached))
        if override is None:
            return cached
        if not isinstance(override, Override):
            raise ConfigurationError(
                f"on_cached must return Override or None, got {type(override).__name__}"
            )
        logger.debug(f"Memoize hit for {settings.id} overridden by on_cached")
        return override.value

    async def _refresh(self, settings: MemoizeSettings, worker: Worker[T]) -> T:
        ttl = settings.ttl_seconds(self.default_expiry)

        async def attempt() -> T:
            value = await _maybe_await(worker())
            await self.store.set(settings.id, value, ttl=ttl, tags=settings.tags)
            return value

        def delay_for(attempt_number: int) -> float:
            return settings.retry_delay(attempt_number, settings)

        delay = delay_for if callable(settings.retry_delay) else settings.retry_delay

        try:
            outcome = await retry_with_backoff(
                attempt,
                max_retries=0 if settings.rejects else settings.retry,
                delay=delay,
                on_retry=None if settings.rejects else settings.on_retry,
                label=f"memoize {settings.id}",
            )
        except ConfigurationError:
            raise
        except Exception as e:
            if not settings.rejects:
                raise
            logger.warning(
                f"Worker for {settings.id} failed ({e}); caching reject value {settings.reject_as!r}"
            )
            await self.store.set(settings.id, settings.reject_as, ttl=ttl, tags=settings.tags)
            return settings.reject_as

        logger.debug(
            f"Memoize computed {settings.id} in {outcome.attempts} attempt(s)"
            + (" (overridden by on_retry)" if outcome.overridden else "")
        )
        return outcome.value
