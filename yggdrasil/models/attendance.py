from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Uuid, UniqueConstraint
from .base import Base


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"

    event_id = Column(Uuid, ForeignKey("calendar_events.id"), nullable=False, index=True)
    student_id = Column(Uuid, nullable=False, index=True)
    promotion_id = Column(Uuid, nullable=False, index=True)

    attended = Column(Boolean, default=False, nullable=False)
    attended_at = Column(DateTime)  # only set when attended
    marked_by = Column(Uuid)
    notes = Column(String(500))

    __table_args__ = (
        UniqueConstraint("event_id", "student_id", name="uq_attendance_event_student"),
    )
