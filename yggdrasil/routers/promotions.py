# yggdrasil/routers/promotions.py
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.exceptions import ConflictError, NotFoundError
from ..core.security import CurrentUser, UserRole, get_current_user, require_roles
from ..models.promotion import PromotionStatus
from ..schemas.promotion_schemas import (
    CourseLink, PromotionCreate, PromotionStatusUpdate, PromotionUpdate, StudentEnrollment,
    promotion_to_dict
)
from ..services.promotion_service import PromotionService
from ..utils.pagination import PaginationParams, Paginator
from ..utils.responses import success_response

router = APIRouter(prefix="/api/promotions", tags=["Promotions"])


def _require_admin(user: CurrentUser):
    require_roles(user, UserRole.ADMIN, UserRole.STAFF)


@router.post("", status_code=201)
async def create_promotion(
    promotion_data: PromotionCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    _require_admin(user)
    service = PromotionService(db)
    promotion = await service.create_promotion(promotion_data)
    return success_response(promotion_to_dict(promotion), "Promotion created successfully")


@router.get("")
async def list_promotions(
    status: Optional[PromotionStatus] = Query(None),
    coordinator_id: Optional[UUID] = Query(None, alias="coordinatorId"),
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    db: AsyncSession = Depends(get_db)
):
    service = PromotionService(db)
    result = await service.list_promotions(
        page=pagination.page, size=pagination.limit, status=status, coordinator_id=coordinator_id
    )
    return Paginator.create_response(
        [promotion_to_dict(promotion) for promotion in result["items"]],
        Paginator.create_meta(pagination.page, pagination.limit, result["total"]),
    )


@router.get("/student/{student_id}")
async def get_student_promotions(
    student_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    service = PromotionService(db)
    promotions = await service.find_by_student(student_id)
    return success_response([promotion_to_dict(promotion) for promotion in promotions])


@router.get("/{promotion_id}")
async def get_promotion(
    promotion_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    service = PromotionService(db)
    promotion = await service.get_promotion(promotion_id)
    return success_response(promotion_to_dict(promotion))


@router.put("/{promotion_id}")
async def update_promotion(
    promotion_id: UUID,
    promotion_data: PromotionUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    _require_admin(user)
    service = PromotionService(db)
    promotion = await service.update_promotion(promotion_id, promotion_data)
    return success_response(promotion_to_dict(promotion), "Promotion updated successfully")


@router.patch("/{promotion_id}/status")
async def change_promotion_status(
    promotion_id: UUID,
    status_data: PromotionStatusUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    _require_admin(user)
    service = PromotionService(db)
    promotion = await service.change_status(promotion_id, status_data.status)
    return success_response(promotion_to_dict(promotion), f"Promotion status set to {promotion.status.value}")


@router.post("/{promotion_id}/students")
async def add_student(
    promotion_id: UUID,
    enrollment: StudentEnrollment,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    _require_admin(user)
    service = PromotionService(db)
    if not await service.add_student(promotion_id, enrollment.student_id):
        promotion = await service.get_promotion(promotion_id)
        if promotion.is_student_enrolled(enrollment.student_id):
            raise ConflictError("Student is already enrolled in this promotion")
        raise ConflictError("Promotion is at full capacity")
    promotion = await service.get_promotion(promotion_id)
    return success_response(promotion_to_dict(promotion), "Student added to promotion")


@router.delete("/{promotion_id}/students/{student_id}")
async def remove_student(
    promotion_id: UUID,
    student_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    _require_admin(user)
    service = PromotionService(db)
    if not await service.remove_student(promotion_id, student_id):
        raise NotFoundError("Student enrollment", message="Student is not enrolled in this promotion")
    promotion = await service.get_promotion(promotion_id)
    return success_response(promotion_to_dict(promotion), "Student removed from promotion")


@router.post("/{promotion_id}/courses")
async def add_course(
    promotion_id: UUID,
    course: CourseLink,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    _require_admin(user)
    service = PromotionService(db)
    if not await service.add_course(promotion_id, course.course_id):
        raise ConflictError("Course is already linked to this promotion")
    promotion = await service.get_promotion(promotion_id)
    return success_response(promotion_to_dict(promotion), "Course added to promotion")


@router.delete("/{promotion_id}/courses/{course_id}")
async def remove_course(
    promotion_id: UUID,
    course_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    _require_admin(user)
    service = PromotionService(db)
    if not await service.remove_course(promotion_id, course_id):
        raise NotFoundError("Course link", message="Course is not linked to this promotion")
    promotion = await service.get_promotion(promotion_id)
    return success_response(promotion_to_dict(promotion), "Course removed from promotion")
