# yggdrasil/utils/pagination.py
"""Pagination utilities for consistent API responses."""
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field
from fastapi import Query
from math import ceil

MAX_PAGE_SIZE = 100


class PaginationParams(BaseModel):
    """Page-based pagination parameters."""
    page: int = Field(1, ge=1, description="Page number (starts from 1)")
    limit: int = Field(20, ge=1, le=MAX_PAGE_SIZE, description="Items per page")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class OffsetParams(BaseModel):
    """Offset-based pagination parameters."""
    offset: int = Field(0, ge=0)
    limit: int = Field(50, ge=1, le=MAX_PAGE_SIZE)


class Paginator:
    """Pagination utility class."""

    @staticmethod
    def get_pagination_params(
        page: int = Query(1, ge=1, description="Page number"),
        limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE, description="Items per page")
    ) -> PaginationParams:
        """FastAPI dependency for page/limit parameters."""
        return PaginationParams(page=page, limit=limit)

    @staticmethod
    def get_offset_params(
        offset: int = Query(0, ge=0, description="Items to skip"),
        limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE, description="Items per page")
    ) -> OffsetParams:
        """FastAPI dependency for offset/limit parameters."""
        return OffsetParams(offset=offset, limit=limit)

    @staticmethod
    def create_meta(page: int, limit: int, total: int) -> Dict[str, Any]:
        total_pages = ceil(total / limit) if limit > 0 else 0
        return {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_previous": page > 1,
        }

    @staticmethod
    def create_offset_meta(offset: int, limit: int, total: int) -> Dict[str, Any]:
        return {
            "offset": offset,
            "limit": limit,
            "total": total,
            "has_more": offset + limit < total,
        }

    @staticmethod
    def create_response(
        items: list,
        meta: Dict[str, Any],
        message: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Standard envelope for list endpoints."""
        response = {"success": True, "data": items, "pagination": meta}
        if message:
            response["message"] = message
        return response
