# yggdrasil/schemas/schedule_schemas.py
"""Pydantic schemas for working-hours schedules."""
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.schedule import Schedule, WEEKDAYS
from ..utils.datetime_utils import isoformat

HHMM_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"


def _minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


class BreakPeriod(BaseModel):
    start_time: str = Field(..., pattern=HHMM_PATTERN)
    end_time: str = Field(..., pattern=HHMM_PATTERN)
    title: str = Field(default="Break", max_length=100)


class DaySchedule(BaseModel):
    is_working_day: bool = True
    start_time: str = Field(default="09:00", pattern=HHMM_PATTERN)
    end_time: str = Field(default="17:00", pattern=HHMM_PATTERN)
    breaks: List[BreakPeriod] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_hours(self):
        if not self.is_working_day:
            return self
        start, end = _minutes(self.start_time), _minutes(self.end_time)
        if end <= start:
            raise ValueError('End time must be after start time')
        for pause in self.breaks:
            break_start, break_end = _minutes(pause.start_time), _minutes(pause.end_time)
            if break_end <= break_start:
                raise ValueError('Break end time must be after start time')
            if break_start < start or break_end > end:
                raise ValueError('Break must be within working hours')
        return self


class ScheduleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    timezone: str = Field(default="UTC")
    working_hours: Dict[str, DaySchedule]
    is_public: bool = False

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v):
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f'Unknown timezone: {v}')
        return v

    @field_validator('working_hours')
    @classmethod
    def validate_days(cls, v):
        unknown = [day for day in v if day not in WEEKDAYS]
        if unknown:
            raise ValueError(f'Unknown weekday(s): {", ".join(unknown)}')
        return v


def schedule_to_dict(schedule: Schedule) -> dict:
    return {
        "id": str(schedule.id),
        "owner_id": str(schedule.owner_id),
        "name": schedule.name,
        "description": schedule.description,
        "timezone": schedule.timezone,
        "working_hours": schedule.working_hours,
        "is_public": schedule.is_public,
        "created_at": isoformat(schedule.created_at),
    }
