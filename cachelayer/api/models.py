"""API request/response models."""

from typing import Any

from pydantic import BaseModel, Field


class InvalidateRequest(BaseModel):
    """Request model for tag invalidation."""

    tags: list[str] = Field(
        min_length=1,
        description="Entries carrying any of these tags are removed",
        examples=[["reports", "user:42"]],
    )
    store: str | None = Field(
        default=None, description="Store id (defaults to the primary store)"
    )


class InvalidateResponse(BaseModel):
    """Result of a tag invalidation."""

    store: str = Field(description="Store the invalidation ran against")
    tags: list[str] = Field(description="Tags that were invalidated")
    invalidated: int = Field(ge=0, description="Number of entries removed")


class DeleteResponse(BaseModel):
    """Result of deleting a single entry."""

    store: str = Field(description="Store the delete ran against")
    key: str = Field(description="Deleted cache key")
    deleted: bool = Field(description="True if the entry existed")


class ClearResponse(BaseModel):
    """Result of clearing a store."""

    store: str = Field(description="Store that was cleared")
    cleared: int = Field(ge=0, description="Number of entries removed")


class StoreListResponse(BaseModel):
    """Registered stores."""

    primary: str = Field(description="Primary store id")
    stores: list[str] = Field(description="All registered store ids, primary first")


class StatsResponse(BaseModel):
    """Store statistics."""

    store: str = Field(description="Store id")
    stats: dict[str, Any] = Field(description="Backend-specific statistics")


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(description="Error message")
    details: str | None = Field(default=None, description="Additional error details")
