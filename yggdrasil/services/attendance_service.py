# yggdrasil/services/attendance_service.py
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
import logging

from .base_service import BaseService
from ..core.config import settings
from ..core.exceptions import ConflictError, NotFoundError, ValidationException
from ..models.attendance import AttendanceRecord
from ..models.event import Event
from ..models.promotion import Promotion
from ..rules.attendance import STANDING_AT_RISK, attendance_rate, student_standing
from ..schemas.attendance_schemas import AttendanceMark, BulkAttendanceEntry
from ..utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


class AttendanceService(BaseService[AttendanceRecord]):
    def __init__(self, db: AsyncSession):
        super().__init__(AttendanceRecord, db)

    async def _get_event(self, event_id: UUID) -> Event:
        result = await self.db.execute(
            select(Event).where(Event.id == event_id, Event.is_active == True)  # noqa: E712
        )
        event = result.scalar_one_or_none()
        if not event:
            raise NotFoundError("Event", event_id)
        return event

    @staticmethod
    def _resolve_promotion(event: Event, promotion_id: Optional[UUID]) -> UUID:
        promotion_id = promotion_id or event.promotion_id
        if promotion_id is None:
            raise ValidationException(
                "promotion_id is required when the event is not linked to a promotion",
                field="promotion_id",
            )
        return promotion_id

    @staticmethod
    def _apply(record: AttendanceRecord, attended: bool, notes: Optional[str], marked_by: Optional[UUID]):
        record.attended = attended
        # attended_at only exists for a present student
        record.attended_at = utcnow() if attended else None
        record.notes = notes
        record.marked_by = marked_by

    async def _commit(self):
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Attendance was recorded concurrently, please retry")

    async def mark_attendance(
        self, event_id: UUID, data: AttendanceMark, marked_by: Optional[UUID] = None
    ) -> Tuple[AttendanceRecord, bool]:
        """Upsert keyed by (event, student). Returns the record and whether it was created."""
        event = await self._get_event(event_id)
        promotion_id = self._resolve_promotion(event, data.promotion_id)

        result = await self.db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.event_id == event.id,
                AttendanceRecord.student_id == data.student_id,
            )
        )
        record = result.scalar_one_or_none()
        created = record is None
        if created:
            record = AttendanceRecord(event_id=event.id, student_id=data.student_id)
            self.db.add(record)
        record.promotion_id = promotion_id
        self._apply(record, data.attended, data.notes, marked_by)

        await self._commit()
        logger.info(
            f"Attendance {'created' if created else 'updated'} for student {data.student_id} "
            f"on event {event.id}: {'present' if data.attended else 'absent'}"
        )
        return record, created

    async def bulk_mark_attendance(
        self,
        event_id: UUID,
        entries: List[BulkAttendanceEntry],
        marked_by: Optional[UUID] = None,
        promotion_id: Optional[UUID] = None,
    ) -> List[AttendanceRecord]:
        event = await self._get_event(event_id)
        promotion_id = self._resolve_promotion(event, promotion_id)

        # Later entries for the same student win
        latest = {entry.student_id: entry for entry in entries}

        result = await self.db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.event_id == event.id,
                AttendanceRecord.student_id.in_(list(latest)),
            )
        )
        existing = {record.student_id: record for record in result.scalars().all()}

        records = []
        for student_id, entry in latest.items():
            record = existing.get(student_id)
            if record is None:
                record = AttendanceRecord(event_id=event.id, student_id=student_id)
                self.db.add(record)
            record.promotion_id = promotion_id
            self._apply(record, entry.attended, entry.notes, marked_by)
            records.append(record)

        await self._commit()
        logger.info(f"Bulk attendance for event {event.id}: {len(records)} record(s) from {len(entries)} entries")
        return records

    async def get_event_attendance(self, event_id: UUID) -> Dict[str, Any]:
        event = await self._get_event(event_id)
        result = await self.db.execute(
            select(AttendanceRecord)
            .where(AttendanceRecord.event_id == event.id)
            .order_by(AttendanceRecord.created_at.asc())
        )
        records = list(result.scalars().all())
        present = sum(1 for record in records if record.attended)
        return {
            "event_id": event.id,
            "records": records,
            "total": len(records),
            "present": present,
            "absent": len(records) - present,
            "attendance_rate": round(attendance_rate(records), 2),
        }

    async def get_student_attendance(self, student_id: UUID, promotion_id: Optional[UUID] = None) -> Dict[str, Any]:
        """A student's records, most recent event first, with their attendance rate."""
        stmt = (
            select(AttendanceRecord)
            .join(Event, AttendanceRecord.event_id == Event.id)
            .where(AttendanceRecord.student_id == student_id)
            .order_by(Event.start_date.desc())
        )
        if promotion_id is not None:
            stmt = stmt.where(AttendanceRecord.promotion_id == promotion_id)

        records = list((await self.db.execute(stmt)).scalars().all())
        present = sum(1 for record in records if record.attended)
        return {
            "student_id": student_id,
            "promotion_id": promotion_id,
            "records": records,
            "total": len(records),
            "present": present,
            "absent": len(records) - present,
            "attendance_rate": round(attendance_rate(records), 2),
        }

    # Promotion-wide views

    async def _student_rows(self, promotion: Promotion, threshold: float) -> List[Dict[str, Any]]:
        stmt = (
            select(AttendanceRecord)
            .join(Event, AttendanceRecord.event_id == Event.id)
            .where(AttendanceRecord.promotion_id == promotion.id, *Event.live_criteria())
        )
        records_by_student = defaultdict(list)
        for record in (await self.db.execute(stmt)).scalars().all():
            records_by_student[record.student_id].append(record)

        rows = []
        for student_id in promotion.student_ids:
            records = records_by_student.get(student_id, [])
            present = sum(1 for record in records if record.attended)
            rate = attendance_rate(records)
            rows.append({
                "student_id": student_id,
                "total": len(records),
                "present": present,
                "absent": len(records) - present,
                "attendance_rate": round(rate, 2),
                "status": student_standing(rate, threshold),
            })
        return rows

    async def _get_promotion(self, promotion_id: UUID) -> Promotion:
        promotion = await self.db.get(Promotion, promotion_id)
        if not promotion:
            raise NotFoundError("Promotion", promotion_id)
        return promotion

    async def get_promotion_attendance(self, promotion_id: UUID, threshold: Optional[float] = None) -> Dict[str, Any]:
        """Per-student rates for a promotion, best attendance first."""
        threshold = settings.low_attendance_threshold if threshold is None else threshold
        promotion = await self._get_promotion(promotion_id)
        rows = await self._student_rows(promotion, threshold)
        rows.sort(key=lambda row: (-row["attendance_rate"], str(row["student_id"])))

        total = sum(row["total"] for row in rows)
        present = sum(row["present"] for row in rows)
        return {
            "promotion_id": promotion.id,
            "promotion_name": promotion.name,
            "threshold": threshold,
            "total_students": len(rows),
            "total_records": total,
            "present": present,
            "absent": total - present,
            "attendance_rate": round(present / total * 100, 2) if total else 100.0,
            "average_student_rate": (
                round(sum(row["attendance_rate"] for row in rows) / len(rows), 2) if rows else 100.0
            ),
            "at_risk_count": sum(1 for row in rows if row["status"] == STANDING_AT_RISK),
            "students": rows,
        }

    async def get_at_risk_students(self, promotion_id: UUID, threshold: Optional[float] = None) -> List[Dict[str, Any]]:
        """Students below the attendance threshold, lowest rate first."""
        threshold = settings.low_attendance_threshold if threshold is None else threshold
        promotion = await self._get_promotion(promotion_id)
        rows = [row for row in await self._student_rows(promotion, threshold) if row["status"] == STANDING_AT_RISK]
        rows.sort(key=lambda row: (row["attendance_rate"], str(row["student_id"])))
        logger.info(f"{len(rows)} student(s) below {threshold}% attendance in promotion {promotion.code}")
        return rows
