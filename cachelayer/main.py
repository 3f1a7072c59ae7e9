"""Main FastAPI application.

Entry point for the cache layer service. The lifespan is the composition root:
it builds the cache registry and the memoizer and keeps them on ``app.state``.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from cachelayer.api.dependencies import build_memoizer, get_settings
from cachelayer.api.routes import cache
from cachelayer.domain.exceptions import CacheLayerError, UnknownStoreError
from cachelayer.infrastructure.registry import CacheRegistry
from cachelayer.shared.logging_config import configure_logging

settings = get_settings()
configure_logging(settings.log_level, settings.cache_log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the cache registry from configuration before serving requests.
    """
    logger.info(f"Starting {settings.api_title} v{settings.api_version}")

    registry = CacheRegistry.from_settings(settings)
    app.state.cache_registry = registry
    app.state.memoizer = build_memoizer(registry, settings)

    yield

    logger.info(f"Shutting down {settings.api_title}")


app = FastAPI(
    lifespan=lifespan,
    title=settings.api_title,
    version=settings.api_version,
    description=settings.api_description,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "Cache Administration",
            "description": "Inspect stores, delete entries, invalidate tags",
        },
        {"name": "Health & Status", "description": "Service health check and status endpoints"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(cache.router)


@app.exception_handler(CacheLayerError)
async def cache_layer_error_handler(request: Request, exc: CacheLayerError) -> JSONResponse:
    """Turn unhandled cache layer errors into JSON error responses."""
    status_code = 404 if isinstance(exc, UnknownStoreError) else 500
    logger.error(f"Cache layer error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "details": str(exc)},
    )


@app.get("/", include_in_schema=False)
async def root():
    """Redirect root to API documentation."""
    return RedirectResponse(url="/docs")


@app.get("/health", status_code=200, summary="Service health check", tags=["Health & Status"])
async def health_check(request: Request):
    """Service health check endpoint.

    Returns:
        Dictionary containing service health status and the active stores
    """
    registry: CacheRegistry | None = getattr(request.app.state, "cache_registry", None)
    return {
        "status": "healthy" if registry is not None else "starting",
        "service": settings.api_title,
        "version": settings.api_version,
        "primary_store": registry.primary_id if registry is not None else None,
        "stores": registry.ids if registry is not None else [],
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cachelayer.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
