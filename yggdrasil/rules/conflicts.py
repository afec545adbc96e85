# yggdrasil/rules/conflicts.py
"""Half-open interval overlap rules shared by conflict and availability checks."""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID

from ..core.exceptions import ValidationException


@dataclass(frozen=True)
class ConflictScope:
    """Who or what a candidate range competes with.

    An existing event is in scope when it matches any of the supplied fields.
    """
    organizer_id: Optional[UUID] = None
    location: Optional[str] = None
    attendee_id: Optional[UUID] = None

    @property
    def is_empty(self) -> bool:
        return self.organizer_id is None and not self.location and self.attendee_id is None


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """[a_start, a_end) and [b_start, b_end) share at least one instant."""
    return b_start < a_end and b_end > a_start


def validate_range(start: datetime, end: datetime):
    if start is None or end is None:
        raise ValidationException("Start date and end date are required")
    if end <= start:
        raise ValidationException("End date must be after start date", field="end_date")


def filter_conflicts(events: Iterable, start: datetime, end: datetime) -> List:
    """Keep events whose stored range overlaps [start, end)."""
    return [event for event in events if overlaps(event.start_date, event.end_date, start, end)]
