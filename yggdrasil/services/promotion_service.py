# yggdrasil/services/promotion_service.py
from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
import logging

from .base_service import BaseService
from ..core.exceptions import ConflictError, InvalidStateTransition, NotFoundError, ValidationException
from ..models.promotion import (
    Promotion, PromotionStudent, PromotionStatus, ALLOWED_PROMOTION_TRANSITIONS
)
from ..schemas.promotion_schemas import PromotionCreate, PromotionUpdate

logger = logging.getLogger(__name__)


class PromotionService(BaseService[Promotion]):
    def __init__(self, db: AsyncSession):
        super().__init__(Promotion, db)

    async def get_promotion(self, promotion_id: UUID) -> Promotion:
        promotion = await self.get(promotion_id)
        if not promotion:
            raise NotFoundError("Promotion", promotion_id)
        return promotion

    async def get_by_code(self, code: str) -> Optional[Promotion]:
        result = await self.db.execute(select(Promotion).where(Promotion.code == code.upper()))
        return result.scalar_one_or_none()

    async def create_promotion(self, data: PromotionCreate) -> Promotion:
        if await self.get_by_code(data.code):
            raise ConflictError(f"Promotion code '{data.code}' already exists")

        promotion = Promotion(
            **data.model_dump(exclude={"students", "courses"}),
            status=PromotionStatus.ACTIVE,
            students=[],
            courses=[],
        )
        for student_id in data.students:
            promotion.add_student(student_id)
        for course_id in data.courses:
            promotion.add_course(course_id)

        self.db.add(promotion)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race on the unique code
            await self.db.rollback()
            raise ConflictError(f"Promotion code '{data.code}' already exists")

        logger.info(f"Promotion {promotion.code} created with {promotion.enrollment_count} student(s)")
        return promotion

    async def list_promotions(
        self,
        page: int = 1,
        size: int = 20,
        status: Optional[PromotionStatus] = None,
        coordinator_id: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        return await self.get_paginated(
            page=page,
            size=size,
            order_by="start_year",
            sort="desc",
            status=status,
            coordinator_id=coordinator_id,
        )

    async def update_promotion(self, promotion_id: UUID, data: PromotionUpdate) -> Promotion:
        promotion = await self.get_promotion(promotion_id)
        changes = {key: value for key, value in data.model_dump(exclude_unset=True).items() if value is not None}

        capacity = changes.get("capacity", promotion.capacity)
        if capacity < promotion.enrollment_count:
            raise ValidationException(
                f"Capacity cannot be lower than current enrollment ({promotion.enrollment_count})",
                field="capacity",
            )
        start_year = changes.get("start_year", promotion.start_year)
        end_year = changes.get("end_year", promotion.end_year)
        if end_year <= start_year:
            raise ValidationException("End year must be after start year", field="end_year")

        for key, value in changes.items():
            setattr(promotion, key, value)
        await self.db.commit()
        return promotion

    async def change_status(self, promotion_id: UUID, status: PromotionStatus) -> Promotion:
        promotion = await self.get_promotion(promotion_id)
        if status == promotion.status:
            return promotion
        if status not in ALLOWED_PROMOTION_TRANSITIONS[promotion.status]:
            raise InvalidStateTransition("promotion", promotion.status.value, status.value)

        previous = promotion.status
        promotion.status = status
        await self.db.commit()
        logger.info(f"Promotion {promotion.code} status {previous.value} -> {status.value}")
        return promotion

    async def add_student(self, promotion_id: UUID, student_id: UUID) -> bool:
        """False when the student is already enrolled or the promotion is full."""
        promotion = await self.get_promotion(promotion_id)
        if not promotion.add_student(student_id):
            return False
        await self.db.commit()
        return True

    async def remove_student(self, promotion_id: UUID, student_id: UUID) -> bool:
        promotion = await self.get_promotion(promotion_id)
        if not promotion.remove_student(student_id):
            return False
        await self.db.commit()
        return True

    async def add_course(self, promotion_id: UUID, course_id: UUID) -> bool:
        promotion = await self.get_promotion(promotion_id)
        if not promotion.add_course(course_id):
            return False
        await self.db.commit()
        return True

    async def remove_course(self, promotion_id: UUID, course_id: UUID) -> bool:
        promotion = await self.get_promotion(promotion_id)
        if not promotion.remove_course(course_id):
            return False
        await self.db.commit()
        return True

    async def find_by_student(self, student_id: UUID) -> List[Promotion]:
        stmt = (
            select(Promotion)
            .join(PromotionStudent, PromotionStudent.promotion_id == Promotion.id)
            .where(PromotionStudent.student_id == student_id)
            .order_by(Promotion.start_year.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
