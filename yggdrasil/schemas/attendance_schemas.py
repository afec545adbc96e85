from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field

from ..models.attendance import AttendanceRecord
from ..utils.datetime_utils import isoformat


class AttendanceMark(BaseModel):
    student_id: UUID
    attended: bool
    notes: Optional[str] = Field(default=None, max_length=500)
    promotion_id: Optional[UUID] = None


class BulkAttendanceEntry(BaseModel):
    student_id: UUID
    attended: bool
    notes: Optional[str] = Field(default=None, max_length=500)


class BulkAttendanceRequest(BaseModel):
    records: List[BulkAttendanceEntry] = Field(..., min_length=1, max_length=500)
    promotion_id: Optional[UUID] = None


def attendance_to_dict(record: AttendanceRecord) -> dict:
    return {
        "id": str(record.id),
        "event_id": str(record.event_id),
        "student_id": str(record.student_id),
        "promotion_id": str(record.promotion_id),
        "attended": record.attended,
        "attended_at": isoformat(record.attended_at),
        "marked_by": str(record.marked_by) if record.marked_by else None,
        "notes": record.notes,
        "updated_at": isoformat(record.updated_at),
    }
