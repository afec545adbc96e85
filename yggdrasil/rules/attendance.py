# yggdrasil/rules/attendance.py
"""Attendance thresholds evaluated by the workflow engine.

Every function here is pure: callers fetch records and pass them in.
"""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

LOW_ATTENDANCE = "low_attendance"
CONSECUTIVE_ABSENCES = "consecutive_absences"
MISSING_ATTENDANCE = "missing_attendance"
TREND_DECLINING = "trend_declining"

ALERT_TYPES = (LOW_ATTENDANCE, CONSECUTIVE_ABSENCES, MISSING_ATTENDANCE, TREND_DECLINING)

HIGH_SEVERITY_RATE = 50
HIGH_SEVERITY_ABSENCES = 5
TREND_DECREASING_POINTS = 5
TREND_MEDIUM_POINTS = 10
TREND_HIGH_POINTS = 20
EXCELLING_RATE = 90

STANDING_EXCELLING = "excelling"
STANDING_ON_TRACK = "on_track"
STANDING_AT_RISK = "at_risk"


@dataclass
class WorkflowConfig:
    low_attendance_threshold: float = 75
    consecutive_absence_limit: int = 3
    consecutive_absence_lookback: int = 10
    missing_attendance_hours: int = 24
    trend_analysis_period_days: int = 14
    enabled_alerts: List[str] = field(default_factory=lambda: list(ALERT_TYPES))
    notification_channels: List[str] = field(default_factory=lambda: ["email", "dashboard"])

    def is_enabled(self, alert_type: str) -> bool:
        return alert_type in self.enabled_alerts

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AttendanceAlert:
    type: str
    promotion_id: str
    promotion_name: str
    severity: str
    details: str
    threshold: float
    current_value: float
    student_id: Optional[str] = None
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TrendResult:
    first_half_rate: float
    second_half_rate: float
    decline_rate: float
    is_decreasing: bool
    severity: str


def attendance_rate(records: Sequence) -> float:
    """Attended share in percent; a student with no records counts as 100."""
    if not records:
        return 100.0
    attended = sum(1 for record in records if record.attended)
    return attended / len(records) * 100


def student_standing(rate: float, threshold: float) -> str:
    if rate < threshold:
        return STANDING_AT_RISK
    if rate >= EXCELLING_RATE:
        return STANDING_EXCELLING
    return STANDING_ON_TRACK


def consecutive_absences(records_newest_first: Sequence, lookback: int = 10) -> int:
    """Unattended records at the head of the history, within the lookback window."""
    count = 0
    for record in list(records_newest_first)[:lookback]:
        if record.attended:
            break
        count += 1
    return count


def attendance_trend(first_half: Sequence, second_half: Sequence) -> TrendResult:
    first_rate = attendance_rate(first_half)
    second_rate = attendance_rate(second_half)
    decline = first_rate - second_rate

    severity = "low"
    if decline > TREND_HIGH_POINTS:
        severity = "high"
    elif decline > TREND_MEDIUM_POINTS:
        severity = "medium"

    return TrendResult(
        first_half_rate=first_rate,
        second_half_rate=second_rate,
        decline_rate=decline,
        is_decreasing=decline > TREND_DECREASING_POINTS,
        severity=severity,
    )


def evaluate_student(
    student_id: str,
    promotion_id: str,
    promotion_name: str,
    records_newest_first: Sequence,
    config: WorkflowConfig,
) -> List[AttendanceAlert]:
    """Low-attendance and consecutive-absence alerts for one student."""
    alerts = []

    if config.is_enabled(LOW_ATTENDANCE):
        rate = attendance_rate(records_newest_first)
        if rate < config.low_attendance_threshold:
            alerts.append(AttendanceAlert(
                type=LOW_ATTENDANCE,
                student_id=student_id,
                promotion_id=promotion_id,
                promotion_name=promotion_name,
                severity="high" if rate < HIGH_SEVERITY_RATE else "medium",
                details=f"Attendance rate is {rate:.1f}%, below the required {config.low_attendance_threshold}%",
                threshold=config.low_attendance_threshold,
                current_value=round(rate, 2),
                recommendations=[
                    "Schedule a meeting with the student",
                    "Review recent attendance patterns",
                    "Provide additional support if needed",
                ],
            ))

    if config.is_enabled(CONSECUTIVE_ABSENCES):
        absences = consecutive_absences(records_newest_first, config.consecutive_absence_lookback)
        if absences >= config.consecutive_absence_limit:
            alerts.append(AttendanceAlert(
                type=CONSECUTIVE_ABSENCES,
                student_id=student_id,
                promotion_id=promotion_id,
                promotion_name=promotion_name,
                severity="high" if absences >= HIGH_SEVERITY_ABSENCES else "medium",
                details=f"{absences} consecutive absences detected",
                threshold=config.consecutive_absence_limit,
                current_value=absences,
                recommendations=[
                    "Contact student immediately",
                    "Review academic standing",
                ],
            ))

    return alerts


def trend_alert(promotion_id: str, promotion_name: str, trend: TrendResult, period_days: int) -> AttendanceAlert:
    return AttendanceAlert(
        type=TREND_DECLINING,
        promotion_id=promotion_id,
        promotion_name=promotion_name,
        severity=trend.severity,
        details=(
            f"Promotion-wide attendance declining by {trend.decline_rate:.1f} points "
            f"over {period_days} days"
        ),
        threshold=TREND_DECREASING_POINTS,
        current_value=round(trend.decline_rate, 2),
        recommendations=[
            "Review recent events and curriculum",
            "Survey students for feedback",
            "Consider schedule adjustments",
        ],
    )
