# yggdrasil/schemas/event_schemas.py
"""Pydantic schemas for calendar events."""
from typing import List, Literal, Optional
from datetime import date, datetime
from uuid import UUID
from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.event import Event, EventType, EventCategory, EventVisibility, EventStatus
from ..utils.datetime_utils import isoformat, to_naive_utc


class RecurrencePattern(BaseModel):
    # Free-form string so an unknown frequency reaches the expander and fails there
    frequency: str = Field(..., description="daily, weekly, monthly or yearly")
    interval: int = Field(default=1, ge=1, le=365)
    end_date: Optional[datetime] = Field(default=None, description="Last possible start (exclusive)")
    occurrence_count: Optional[int] = Field(default=None, ge=1, le=1000)
    exceptions: List[date] = Field(default_factory=list, description="Dates to skip")

    @field_validator('end_date')
    @classmethod
    def normalize_end_date(cls, v):
        return to_naive_utc(v)


class EventBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    start_date: datetime
    end_date: datetime
    event_type: EventType = Field(default=EventType.EVENT)
    category: EventCategory = Field(default=EventCategory.ACADEMIC)
    location: Optional[str] = Field(default=None, max_length=500)
    course_id: Optional[UUID] = None
    promotion_id: Optional[UUID] = None
    visibility: EventVisibility = Field(default=EventVisibility.PUBLIC)
    attendees: List[UUID] = Field(default_factory=list)

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_dates(cls, v):
        return to_naive_utc(v)

    @field_validator('title')
    @classmethod
    def strip_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Event title is required')
        return v

    @field_validator('attendees')
    @classmethod
    def unique_attendees(cls, v):
        return list(dict.fromkeys(v))


class EventCreate(EventBase):
    is_recurring: bool = False
    recurrence: Optional[RecurrencePattern] = None

    @model_validator(mode='after')
    def validate_recurrence(self):
        if self.is_recurring and self.recurrence is None:
            raise ValueError('Recurring pattern is required for recurring events')
        return self


class EventUpdate(BaseModel):
    """All fields optional; dates are validated together with the stored ones."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    event_type: Optional[EventType] = None
    category: Optional[EventCategory] = None
    location: Optional[str] = Field(default=None, max_length=500)
    course_id: Optional[UUID] = None
    promotion_id: Optional[UUID] = None
    visibility: Optional[EventVisibility] = None
    status: Optional[EventStatus] = None
    attendees: Optional[List[UUID]] = None

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_dates(cls, v):
        return to_naive_utc(v)


class BookingSlot(BaseModel):
    start: datetime
    end: datetime

    @field_validator('start', 'end')
    @classmethod
    def normalize_dates(cls, v):
        return to_naive_utc(v)


class BookingRequest(BaseModel):
    requested_slot: BookingSlot
    requested_by: UUID
    purpose: str = Field(..., min_length=1, max_length=180)


def event_to_dict(event: Event) -> dict:
    return {
        "id": str(event.id),
        "title": event.title,
        "description": event.description,
        "start_date": isoformat(event.start_date),
        "end_date": isoformat(event.end_date),
        "duration_minutes": event.duration_minutes,
        "event_type": event.event_type.value,
        "category": event.category.value,
        "location": event.location,
        "organizer_id": str(event.organizer_id),
        "attendees": [str(user_id) for user_id in event.attendee_ids],
        "course_id": str(event.course_id) if event.course_id else None,
        "promotion_id": str(event.promotion_id) if event.promotion_id else None,
        "visibility": event.visibility.value,
        "status": event.status.value,
        "is_recurring": event.is_recurring,
        "recurrence": {
            "frequency": event.recurrence_frequency.value,
            "interval": event.recurrence_interval,
            "end_date": isoformat(event.recurrence_end_date),
        } if event.recurrence_frequency else None,
        "parent_event_id": str(event.parent_event_id) if event.parent_event_id else None,
        "is_active": event.is_active,
        "created_at": isoformat(event.created_at),
        "updated_at": isoformat(event.updated_at),
    }


def conflict_to_dict(event: Event) -> dict:
    return {
        "id": str(event.id),
        "title": event.title,
        "start_date": isoformat(event.start_date),
        "end_date": isoformat(event.end_date),
        "organizer_id": str(event.organizer_id),
        "location": event.location,
        "event_type": event.event_type.value,
    }


class EventFilters(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    event_type: Optional[EventType] = None
    category: Optional[EventCategory] = None
    status: Optional[EventStatus] = None
    organizer_id: Optional[UUID] = None
    attendee_id: Optional[UUID] = None
    course_id: Optional[UUID] = None
    promotion_id: Optional[UUID] = None
    visibility: Optional[EventVisibility] = None
    is_recurring: Optional[bool] = None
    sort_by: Literal["start_date", "end_date", "title", "created_at"] = "start_date"
    sort_order: Literal["asc", "desc"] = "asc"

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_dates(cls, v):
        return to_naive_utc(v)
