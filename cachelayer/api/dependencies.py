"""Dependency injection for FastAPI.

The cache registry and memoizer are built by the application lifespan and kept
on ``app.state``; these helpers hand them to routes. An application route
memoizes an expensive lookup like this:

    @router.get("/rates")
    async def rates(memoizer: Memoizer = Depends(get_memoizer)) -> dict:
        return await memoizer.compute({"id": "rates", "expiry": "10m"}, fetch_rates)
"""

from functools import lru_cache

from fastapi import Request

from cachelayer.application.memoize import Memoizer
from cachelayer.infrastructure.registry import CacheRegistry
from cachelayer.shared.config import Settings


@lru_cache
def get_settings() -> Settings:
    """Get application settings (singleton).

    Returns:
        Application settings
    """
    return Settings()


def build_memoizer(registry: CacheRegistry, settings: Settings) -> Memoizer:
    """Create the memoizer bound to the registry's primary store."""
    return Memoizer(
        registry.primary,
        default_expiry=settings.cache_default_expiry,
        coalesce=settings.memoize_coalesce,
    )


def get_registry(request: Request) -> CacheRegistry:
    """Get the cache registry built at startup."""
    return request.app.state.cache_registry


def get_memoizer(request: Request) -> Memoizer:
    """Get the memoizer built at startup."""
    return request.app.state.memoizer
