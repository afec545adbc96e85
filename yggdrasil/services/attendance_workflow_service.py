# yggdrasil/services/attendance_workflow_service.py
"""Attendance rule engine.

Every run is a fresh full scan over the database; nothing is remembered
between runs, so a condition that still holds is reported again.
"""
from collections import defaultdict
from datetime import timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select
import logging

from ..core.config import settings
from ..core.exceptions import NotFoundError, ValidationException
from ..models.attendance import AttendanceRecord
from ..models.event import Event, EventStatus, EventVisibility
from ..models.promotion import Promotion, PromotionStatus
from ..rules.attendance import (
    ALERT_TYPES, MISSING_ATTENDANCE, TREND_DECLINING, AttendanceAlert, WorkflowConfig,
    attendance_trend, evaluate_student, trend_alert
)
from ..utils.datetime_utils import utcnow
from .notification_service import AttendanceNotification, NotificationDispatcher

logger = logging.getLogger(__name__)


def default_workflow_config() -> WorkflowConfig:
    return WorkflowConfig(
        low_attendance_threshold=settings.low_attendance_threshold,
        consecutive_absence_limit=settings.consecutive_absence_limit,
        consecutive_absence_lookback=settings.consecutive_absence_lookback,
        missing_attendance_hours=settings.missing_attendance_hours,
        trend_analysis_period_days=settings.trend_analysis_period_days,
    )


class AttendanceRuleEngine:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        dispatcher: NotificationDispatcher,
        config: Optional[WorkflowConfig] = None,
    ):
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.config = config or default_workflow_config()

    # Configuration

    def get_config(self) -> WorkflowConfig:
        return WorkflowConfig(**self.config.to_dict())

    def update_config(self, **changes) -> WorkflowConfig:
        unknown = set(changes) - set(self.config.to_dict())
        if unknown:
            raise ValidationException(f"Unknown workflow setting(s): {', '.join(sorted(unknown))}")
        alerts = changes.get("enabled_alerts")
        if alerts is not None and any(alert not in ALERT_TYPES for alert in alerts):
            raise ValidationException("Unknown alert type in enabled_alerts", field="enabled_alerts")

        values = self.config.to_dict()
        values.update({key: value for key, value in changes.items() if value is not None})
        self.config = WorkflowConfig(**values)
        logger.info(f"Attendance workflow configuration updated: {sorted(changes)}")
        return self.get_config()

    # Notifications

    def _notify_alert(self, alert: AttendanceAlert, coordinator_id: Optional[UUID]):
        if coordinator_id is None:
            logger.warning(
                f"No coordinator for promotion {alert.promotion_name}; "
                f"{alert.type} alert for {alert.student_id or 'promotion'} not sent"
            )
            return
        subject = "Attendance Trend Alert" if alert.type == TREND_DECLINING else "Attendance Alert"
        self.dispatcher.dispatch(AttendanceNotification(
            recipient_id=str(coordinator_id),
            recipient_type="coordinator",
            subject=subject,
            message=alert.details,
            priority=alert.severity,
            channels=list(self.config.notification_channels),
            data=alert.to_dict(),
        ))

    # Rules

    async def _evaluate_promotion(self, session: AsyncSession, promotion: Promotion) -> List[AttendanceAlert]:
        stmt = (
            select(AttendanceRecord)
            .join(Event, AttendanceRecord.event_id == Event.id)
            .where(AttendanceRecord.promotion_id == promotion.id, *Event.live_criteria())
            .order_by(Event.start_date.desc(), AttendanceRecord.created_at.desc())
        )
        records_by_student = defaultdict(list)
        for record in (await session.execute(stmt)).scalars().all():
            records_by_student[record.student_id].append(record)

        alerts = []
        for student_id in promotion.student_ids:
            alerts.extend(evaluate_student(
                str(student_id),
                str(promotion.id),
                promotion.name,
                records_by_student.get(student_id, []),
                self.config,
            ))
        return alerts

    async def check_promotion(self, promotion_id: UUID, notify: bool = True) -> List[AttendanceAlert]:
        """Low-attendance and consecutive-absence alerts for one promotion's students."""
        async with self.session_factory() as session:
            promotion = await session.get(Promotion, promotion_id)
            if not promotion:
                raise NotFoundError("Promotion", promotion_id)
            alerts = await self._evaluate_promotion(session, promotion)
            coordinator_id = promotion.coordinator_id

        if alerts:
            logger.info(f"Generated {len(alerts)} attendance alert(s) for promotion {promotion.name}")
        if notify:
            for alert in alerts:
                self._notify_alert(alert, coordinator_id)
        return alerts

    async def _active_promotion_ids(self) -> List[UUID]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Promotion.id).where(Promotion.status == PromotionStatus.ACTIVE)
            )
            return list(result.scalars().all())

    async def run_daily_check(self) -> List[AttendanceAlert]:
        promotion_ids = await self._active_promotion_ids()
        alerts = []
        failures = 0
        for promotion_id in promotion_ids:
            try:
                alerts.extend(await self.check_promotion(promotion_id))
            except Exception:
                failures += 1
                logger.exception(f"Attendance check failed for promotion {promotion_id}")

        logger.info(
            f"Daily attendance check completed for {len(promotion_ids)} promotion(s): "
            f"{len(alerts)} alert(s), {failures} failure(s)"
        )
        return alerts

    async def check_missing_attendance(self) -> List[Dict[str, Any]]:
        """Completed non-public events past the grace period with no record at all."""
        if not self.config.is_enabled(MISSING_ATTENDANCE):
            return []

        cutoff = utcnow() - timedelta(hours=self.config.missing_attendance_hours)
        has_records = select(AttendanceRecord.id).where(AttendanceRecord.event_id == Event.id).exists()
        stmt = select(Event).where(
            Event.is_active == True,  # noqa: E712
            Event.status == EventStatus.COMPLETED,
            Event.visibility != EventVisibility.PUBLIC,
            Event.end_date < cutoff,
            ~has_records,
        ).order_by(Event.end_date.asc())

        async with self.session_factory() as session:
            events = list((await session.execute(stmt)).scalars().all())

        missing = []
        for event in events:
            details = {
                "event_id": str(event.id),
                "event_title": event.title,
                "event_end": event.end_date.isoformat(),
                "organizer_id": str(event.organizer_id),
            }
            self.dispatcher.dispatch(AttendanceNotification(
                recipient_id=str(event.organizer_id),
                recipient_type="teacher",
                subject="Missing Attendance Record",
                message=(
                    f'Please mark attendance for event "{event.title}" '
                    f"which ended on {event.end_date:%Y-%m-%d %H:%M} UTC"
                ),
                priority="medium",
                channels=list(self.config.notification_channels),
                data=details,
            ))
            missing.append(details)

        logger.info(f"Found {len(missing)} event(s) with missing attendance")
        return missing

    async def _trend_for(self, session: AsyncSession, promotion: Promotion) -> Optional[AttendanceAlert]:
        now = utcnow()
        period = timedelta(days=self.config.trend_analysis_period_days)
        start, middle = now - period, now - period / 2

        stmt = (
            select(AttendanceRecord, Event.start_date)
            .join(Event, AttendanceRecord.event_id == Event.id)
            .where(
                AttendanceRecord.promotion_id == promotion.id,
                *Event.live_criteria(),
                Event.start_date >= start,
                Event.start_date <= now,
            )
        )
        first_half, second_half = [], []
        for record, event_start in (await session.execute(stmt)).all():
            (first_half if event_start < middle else second_half).append(record)

        trend = attendance_trend(first_half, second_half)
        if not trend.is_decreasing:
            return None
        return trend_alert(str(promotion.id), promotion.name, trend, self.config.trend_analysis_period_days)

    async def analyze_trends(self) -> List[AttendanceAlert]:
        if not self.config.is_enabled(TREND_DECLINING):
            return []

        alerts = []
        for promotion_id in await self._active_promotion_ids():
            try:
                async with self.session_factory() as session:
                    promotion = await session.get(Promotion, promotion_id)
                    if not promotion:
                        continue
                    alert = await self._trend_for(session, promotion)
                    coordinator_id = promotion.coordinator_id
            except Exception:
                logger.exception(f"Trend analysis failed for promotion {promotion_id}")
                continue

            if alert is None:
                continue
            alerts.append(alert)
            if alert.severity == "high":
                self._notify_alert(alert, coordinator_id)

        logger.info(f"Attendance trend analysis completed: {len(alerts)} declining promotion(s)")
        return alerts

    async def process_alerts(self) -> int:
        return len(self.dispatcher.flush())

    async def trigger_attendance_check(self, promotion_id: Optional[UUID] = None) -> List[AttendanceAlert]:
        logger.info(
            "Manual attendance check triggered "
            + (f"for promotion {promotion_id}" if promotion_id else "for all promotions")
        )
        if promotion_id is not None:
            return await self.check_promotion(promotion_id)
        return await self.run_daily_check()
