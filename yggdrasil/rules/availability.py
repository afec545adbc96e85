# yggdrasil/rules/availability.py
"""Free-slot computation over a working-hours definition and busy events."""
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from .conflicts import overlaps

WEEKDAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


def parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def generate_slots(window_start: datetime, window_end: datetime, duration_minutes: int) -> List[Slot]:
    """Tile the window from its start; slots that would pass window_end are dropped."""
    step = timedelta(minutes=duration_minutes)
    slots = []
    current = window_start
    while current + step <= window_end:
        slots.append(Slot(current, current + step))
        current += step
    return slots


def _to_local(value: datetime, tz: ZoneInfo) -> datetime:
    # Stored timestamps are naive UTC
    return value.replace(tzinfo=timezone.utc).astimezone(tz).replace(tzinfo=None)


def is_within_working_hours(slot: Slot, working_hours: Dict, tz_name: str = "UTC") -> bool:
    """Whole slot lies inside one working day's hours and clear of its breaks."""
    tz = ZoneInfo(tz_name or "UTC")
    local_start = _to_local(slot.start, tz)
    local_end = _to_local(slot.end, tz)

    day = working_hours.get(WEEKDAY_NAMES[local_start.weekday()])
    if not day or not day.get("is_working_day", True):
        return False

    day_start = datetime.combine(local_start.date(), parse_hhmm(day["start_time"]))
    day_end = datetime.combine(local_start.date(), parse_hhmm(day["end_time"]))
    if local_start < day_start or local_end > day_end:
        return False

    for pause in day.get("breaks") or []:
        break_start = datetime.combine(local_start.date(), parse_hhmm(pause["start_time"]))
        break_end = datetime.combine(local_start.date(), parse_hhmm(pause["end_time"]))
        if overlaps(local_start, local_end, break_start, break_end):
            return False
    return True


def free_slots(
    window_start: datetime,
    window_end: datetime,
    duration_minutes: int,
    working_hours: Dict,
    busy: Iterable,
    tz_name: Optional[str] = "UTC",
) -> List[Slot]:
    """Candidate slots that fit the working hours and clash with no busy event.

    ``busy`` holds objects exposing ``start_date`` / ``end_date``; callers
    pass only active, non-cancelled events.
    """
    busy = list(busy)
    available = []
    for slot in generate_slots(window_start, window_end, duration_minutes):
        if not is_within_working_hours(slot, working_hours, tz_name):
            continue
        if any(overlaps(event.start_date, event.end_date, slot.start, slot.end) for event in busy):
            continue
        available.append(slot)
    return available
