# yggdrasil/services/base_service.py
"""Base service with common read operations."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Type, Any, Dict, Optional, TypeVar, Generic

# Define generic type
T = TypeVar('T')


class BaseService(Generic[T]):
    def __init__(self, model: Type[T], db: AsyncSession):
        self.model = model
        self.db = db

    def _apply_filters(self, stmt, include_inactive: bool, filters: Dict[str, Any]):
        # Soft-deletable models carry an is_active flag
        if hasattr(self.model, 'is_active') and not include_inactive:
            stmt = stmt.where(self.model.is_active == True)  # noqa: E712
        for key, value in filters.items():
            if hasattr(self.model, key) and value is not None:
                stmt = stmt.where(getattr(self.model, key) == value)
        return stmt

    async def get(self, id: Any) -> Optional[T]:
        stmt = select(self.model).where(self.model.id == id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_paginated(
        self,
        page: int = 1,
        size: int = 20,
        include_inactive: bool = False,
        order_by: Optional[str] = None,
        sort: str = "asc",
        **filters
    ) -> Dict[str, Any]:
        """Get paginated results with optional soft delete filtering"""
        offset = (page - 1) * size

        stmt = self._apply_filters(select(self.model), include_inactive, filters)
        count_stmt = self._apply_filters(select(func.count()).select_from(self.model), include_inactive, filters)

        count_result = await self.db.execute(count_stmt)
        total = count_result.scalar()

        if order_by and hasattr(self.model, order_by):
            order_field = getattr(self.model, order_by)
            stmt = stmt.order_by(order_field.desc() if sort.lower() == "desc" else order_field.asc())

        stmt = stmt.offset(offset).limit(size)
        result = await self.db.execute(stmt)
        items = result.scalars().all()

        return {
            "items": items,
            "total": total,
            "page": page,
            "size": size,
        }
