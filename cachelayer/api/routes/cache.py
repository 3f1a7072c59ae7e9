"""Cache administration routes.

Inspect registered stores, delete single entries, invalidate by tag and clear
whole stores.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from cachelayer.api.dependencies import get_registry
from cachelayer.api.models import (
    ClearResponse,
    DeleteResponse,
    ErrorResponse,
    InvalidateRequest,
    InvalidateResponse,
    StatsResponse,
    StoreListResponse,
)
from cachelayer.domain.exceptions import UnknownStoreError
from cachelayer.domain.protocols import CacheStore
from cachelayer.infrastructure.registry import CacheRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cache", tags=["Cache Administration"])

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Unknown store id"}}


def _resolve_store(registry: CacheRegistry, store_id: str | None) -> CacheStore:
    try:
        return registry.get(store_id)
    except UnknownStoreError as e:
        logger.warning(f"Cache admin request for unknown store: {e}")
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.get("/stores", response_model=StoreListResponse, summary="List registered stores")
async def list_stores(registry: CacheRegistry = Depends(get_registry)) -> StoreListResponse:
    """List the primary store and every registered store id."""
    return StoreListResponse(primary=registry.primary_id or "", stores=registry.ids)


@router.get(
    "/stats", response_model=StatsResponse, summary="Store statistics", responses=_NOT_FOUND
)
async def store_stats(
    store: str | None = Query(default=None, description="Store id (primary if omitted)"),
    registry: CacheRegistry = Depends(get_registry),
) -> StatsResponse:
    """Return backend statistics for one store."""
    target = _resolve_store(registry, store)
    return StatsResponse(store=target.store_id, stats=await target.get_stats())


@router.delete(
    "/entries/{key}",
    response_model=DeleteResponse,
    summary="Delete one cache entry",
    responses=_NOT_FOUND,
)
async def delete_entry(
    key: str,
    store: str | None = Query(default=None, description="Store id (primary if omitted)"),
    registry: CacheRegistry = Depends(get_registry),
) -> DeleteResponse:
    """Delete a single entry by key."""
    target = _resolve_store(registry, store)
    deleted = await target.delete(key)
    logger.info(f"Cache entry delete: key={key}, store={target.store_id}, deleted={deleted}")
    return DeleteResponse(store=target.store_id, key=key, deleted=deleted)


@router.post(
    "/invalidate",
    response_model=InvalidateResponse,
    summary="Invalidate entries by tag",
    responses=_NOT_FOUND,
)
async def invalidate_tags(
    request: InvalidateRequest, registry: CacheRegistry = Depends(get_registry)
) -> InvalidateResponse:
    """Remove every entry carrying any of the given tags."""
    target = _resolve_store(registry, request.store)
    count = await target.invalidate(request.tags)
    return InvalidateResponse(store=target.store_id, tags=request.tags, invalidated=count)


@router.delete("", response_model=ClearResponse, summary="Clear a store", responses=_NOT_FOUND)
async def clear_store(
    store: str | None = Query(default=None, description="Store id (primary if omitted)"),
    registry: CacheRegistry = Depends(get_registry),
) -> ClearResponse:
    """Remove every entry from one store."""
    target = _resolve_store(registry, store)
    count = await target.clear()
    return ClearResponse(store=target.store_id, cleared=count)
