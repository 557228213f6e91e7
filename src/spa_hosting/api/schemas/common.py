"""Shared Pydantic schemas for API responses."""

from __future__ import annotations

from pydantic import BaseModel, Field

# Default pagination values
DEFAULT_LIMIT = 50
MAX_LIMIT = 100


class PaginationMeta(BaseModel):
    """Pagination metadata for list responses."""

    total: int = Field(description="Total number of projects matching the filter")
    limit: int = Field(description="Maximum number of projects returned")
    offset: int = Field(description="Number of projects skipped")
    has_more: bool = Field(description="Whether further pages exist")

    @classmethod
    def for_page(cls, total: int, limit: int, offset: int, returned: int) -> PaginationMeta:
        return cls(total=total, limit=limit, offset=offset, has_more=offset + returned < total)
