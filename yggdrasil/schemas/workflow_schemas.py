from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_validator

from ..rules.attendance import ALERT_TYPES


class WorkflowConfigUpdate(BaseModel):
    low_attendance_threshold: Optional[float] = Field(default=None, ge=0, le=100)
    consecutive_absence_limit: Optional[int] = Field(default=None, ge=1, le=50)
    consecutive_absence_lookback: Optional[int] = Field(default=None, ge=1, le=100)
    missing_attendance_hours: Optional[int] = Field(default=None, ge=1, le=720)
    trend_analysis_period_days: Optional[int] = Field(default=None, ge=2, le=365)
    enabled_alerts: Optional[List[str]] = None
    notification_channels: Optional[List[str]] = None

    @field_validator('enabled_alerts')
    @classmethod
    def known_alerts(cls, v):
        if v is None:
            return v
        unknown = [alert for alert in v if alert not in ALERT_TYPES]
        if unknown:
            raise ValueError(f'Unknown alert type(s): {", ".join(unknown)}')
        return list(dict.fromkeys(v))


class TriggerRequest(BaseModel):
    promotion_id: Optional[UUID] = None
