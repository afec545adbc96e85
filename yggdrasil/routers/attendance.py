from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.security import CurrentUser, UserRole, get_current_user, require_roles
from ..schemas.attendance_schemas import AttendanceMark, BulkAttendanceRequest, attendance_to_dict
from ..services.attendance_service import AttendanceService
from ..utils.responses import success_response

router = APIRouter(prefix="/api/planning", tags=["Planning - Attendance"])

MARKING_ROLES = (UserRole.ADMIN, UserRole.STAFF, UserRole.TEACHER)


@router.post("/events/{event_id}/attendance")
async def mark_attendance(
    event_id: UUID,
    attendance_data: AttendanceMark,
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark one student present or absent; marking again updates the record"""
    require_roles(user, *MARKING_ROLES)
    service = AttendanceService(db)
    record, created = await service.mark_attendance(event_id, attendance_data, user.id)
    response.status_code = 201 if created else 200
    return success_response(
        attendance_to_dict(record),
        "Attendance marked successfully" if created else "Attendance updated successfully",
    )


@router.post("/events/{event_id}/attendance/bulk")
async def bulk_mark_attendance(
    event_id: UUID,
    payload: BulkAttendanceRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark attendance for many students at once"""
    require_roles(user, *MARKING_ROLES)
    service = AttendanceService(db)
    records = await service.bulk_mark_attendance(
        event_id, payload.records, marked_by=user.id, promotion_id=payload.promotion_id
    )
    return success_response(
        [attendance_to_dict(record) for record in records],
        f"Attendance marked for {len(records)} students",
    )


@router.get("/events/{event_id}/attendance")
async def get_event_attendance(
    event_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    service = AttendanceService(db)
    summary = await service.get_event_attendance(event_id)
    return success_response({
        **summary,
        "event_id": str(summary["event_id"]),
        "records": [attendance_to_dict(record) for record in summary["records"]],
    })


@router.get("/attendance/students/{student_id}")
async def get_student_attendance(
    student_id: UUID,
    promotion_id: Optional[UUID] = Query(None, alias="promotionId"),
    db: AsyncSession = Depends(get_db)
):
    """A student's attendance history, most recent event first"""
    service = AttendanceService(db)
    summary = await service.get_student_attendance(student_id, promotion_id)
    return success_response({
        **summary,
        "student_id": str(student_id),
        "promotion_id": str(promotion_id) if promotion_id else None,
        "records": [attendance_to_dict(record) for record in summary["records"]],
    })


def _threshold(request: Request, threshold: Optional[float]) -> float:
    # Falls back to the rule engine's current threshold
    if threshold is not None:
        return threshold
    return request.app.state.rule_engine.config.low_attendance_threshold


def _student_row(row: dict) -> dict:
    return {**row, "student_id": str(row["student_id"])}


@router.get("/attendance/promotions/{promotion_id}")
async def get_promotion_attendance(
    promotion_id: UUID,
    request: Request,
    threshold: Optional[float] = Query(None, ge=0, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Attendance statistics for every student of a promotion"""
    require_roles(user, *MARKING_ROLES)
    service = AttendanceService(db)
    summary = await service.get_promotion_attendance(promotion_id, _threshold(request, threshold))
    return success_response({
        **summary,
        "promotion_id": str(summary["promotion_id"]),
        "students": [_student_row(row) for row in summary["students"]],
    })


@router.get("/attendance/promotions/{promotion_id}/at-risk")
async def get_at_risk_students(
    promotion_id: UUID,
    request: Request,
    threshold: Optional[float] = Query(None, ge=0, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    require_roles(user, *MARKING_ROLES)
    service = AttendanceService(db)
    students = await service.get_at_risk_students(promotion_id, _threshold(request, threshold))
    return success_response(
        [_student_row(row) for row in students],
        f"{len(students)} student(s) at risk",
    )
