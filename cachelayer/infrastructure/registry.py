"""
Named cache store registry.

The registry is built once by the composition root (``main.py`` lifespan, or a
test fixture) and handed to whoever needs a store. The first store registered,
or the one registered with ``primary=True``, is the primary store; the rest are
supplementary stores addressable by id.
"""

import logging
from collections.abc import Callable

from cachelayer.domain.exceptions import ConfigurationError, UnknownStoreError
from cachelayer.domain.protocols import CacheStore
from cachelayer.infrastructure.stores import AsyncFileStore, MemoryStore
from cachelayer.shared.config import Settings
from cachelayer.shared.durations import parse_duration

logger = logging.getLogger(__name__)


def _build_memory_store(settings: Settings) -> CacheStore:
    return MemoryStore(default_ttl=parse_duration(settings.cache_default_expiry))


def _build_file_store(settings: Settings) -> CacheStore:
    return AsyncFileStore(
        cache_dir=settings.cache_dir,
        default_ttl=parse_duration(settings.cache_default_expiry),
        max_size_mb=settings.cache_max_size_mb,
        eviction_check_interval=settings.cache_eviction_check_interval,
    )


STORE_FACTORIES: dict[str, Callable[[Settings], CacheStore]] = {
    "memory": _build_memory_store,
    "filesystem": _build_file_store,
}


class CacheRegistry:
    """Registry of cache stores keyed by store id."""

    def __init__(self) -> None:
        self._stores: dict[str, CacheStore] = {}
        self._primary_id: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheRegistry":
        """
        Build a registry with one store per configured module.

        Args:
            settings: Application settings; ``cache_modules`` lists store ids in
                priority order, the first becoming the primary store

        Returns:
            Populated registry

        Raises:
            ConfigurationError: If no modules are configured or one is unknown
        """
        if not settings.cache_modules:
            raise ConfigurationError("At least one cache module must be configured")

        registry = cls()
        for module_id in settings.cache_modules:
            key = module_id.strip().lower()
            factory = STORE_FACTORIES.get(key)
            if factory is None:
                raise UnknownStoreError(key, sorted(STORE_FACTORIES))
            registry.register(factory(settings))

        supplementary = [store_id for store_id in registry.ids if store_id != registry.primary_id]
        logger.info(
            f"Loaded primary cache driver {registry.primary_id}"
            + (f" (supplementary: {', '.join(supplementary)})" if supplementary else "")
        )
        return registry

    def register(self, store: CacheStore, *, primary: bool = False, overwrite: bool = False) -> None:
        """
        Register a store under its ``store_id``.

        Raises:
            ConfigurationError: If the id is empty or already taken
        """
        key = store.store_id.strip().lower()
        if not key:
            raise ConfigurationError("Cache store id must be non-empty")
        if key in self._stores and not overwrite:
            raise ConfigurationError(f"Cache store already registered: {key}")

        self._stores[key] = store
        if primary or self._primary_id is None:
            self._primary_id = key

    def get(self, store_id: str | None = None) -> CacheStore:
        """
        Resolve a store by id, or the primary store when no id is given.

        Raises:
            UnknownStoreError: If the id is not registered
        """
        if store_id is None:
            return self.primary

        key = store_id.strip().lower()
        store = self._stores.get(key)
        if store is None:
            raise UnknownStoreError(key, self.ids)
        return store

    @property
    def primary(self) -> CacheStore:
        if self._primary_id is None:
            raise ConfigurationError("No cache stores registered")
        return self._stores[self._primary_id]

    @property
    def primary_id(self) -> str | None:
        return self._primary_id

    @property
    def ids(self) -> list[str]:
        if self._primary_id is None:
            return []
        return [self._primary_id] + [key for key in self._stores if key != self._primary_id]

    def __contains__(self, store_id: str) -> bool:
        return store_id.strip().lower() in self._stores

    def __len__(self) -> int:
        return len(self._stores)
