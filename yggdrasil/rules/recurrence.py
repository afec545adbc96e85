# yggdrasil/rules/recurrence.py
"""Expansion of a template event into concrete occurrences."""
import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from ..core.exceptions import ValidationException

FREQUENCIES = ("daily", "weekly", "monthly", "yearly")


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: str
    interval: int = 1
    end_date: Optional[datetime] = None
    occurrence_count: Optional[int] = None
    exceptions: frozenset = field(default_factory=frozenset)


@dataclass(frozen=True)
class Occurrence:
    start: datetime
    end: datetime


def build_rule(
    frequency,
    interval: Optional[int] = 1,
    end_date: Optional[datetime] = None,
    occurrence_count: Optional[int] = None,
    exceptions: Optional[Iterable[date]] = None,
) -> RecurrenceRule:
    """Normalize and validate raw rule fields."""
    frequency = getattr(frequency, "value", frequency)
    if frequency not in FREQUENCIES:
        raise ValidationException(
            f"Unsupported recurrence frequency: {frequency!r}. Expected one of {', '.join(FREQUENCIES)}",
            field="recurrence_frequency",
        )
    interval = 1 if interval is None else interval
    if interval < 1:
        raise ValidationException("Recurrence interval must be at least 1", field="recurrence_interval")
    if occurrence_count is not None and occurrence_count < 1:
        raise ValidationException("Occurrence count must be at least 1", field="occurrence_count")
    return RecurrenceRule(
        frequency=frequency,
        interval=interval,
        end_date=end_date,
        occurrence_count=occurrence_count,
        exceptions=frozenset(exceptions or ()),
    )


def add_months(value: datetime, months: int) -> datetime:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _nth_start(anchor: datetime, rule: RecurrenceRule, n: int) -> datetime:
    # Always step from the anchor so month-end clamping does not drift
    if rule.frequency == "daily":
        return anchor + timedelta(days=n * rule.interval)
    if rule.frequency == "weekly":
        return anchor + timedelta(weeks=n * rule.interval)
    if rule.frequency == "monthly":
        return add_months(anchor, n * rule.interval)
    return add_months(anchor, 12 * n * rule.interval)


def expand(
    template_start: datetime,
    template_end: datetime,
    rule: RecurrenceRule,
    until: datetime,
    max_occurrences: int = 500,
) -> List[Occurrence]:
    """Occurrences of a template whose start falls before ``until``.

    The first occurrence is the template itself. Starts are strictly
    increasing and every occurrence keeps the template's duration.
    """
    if rule.frequency not in FREQUENCIES:
        raise ValidationException(f"Unsupported recurrence frequency: {rule.frequency!r}")
    if until <= template_start:
        raise ValidationException("Recurrence end date must be after the event start", field="recurrence_end_date")

    duration = template_end - template_start
    limit = max_occurrences
    if rule.occurrence_count is not None:
        limit = min(limit, rule.occurrence_count)

    occurrences = [Occurrence(template_start, template_end)]
    step = 1
    while len(occurrences) < limit:
        start = _nth_start(template_start, rule, step)
        if start >= until:
            break
        if start.date() not in rule.exceptions:
            occurrences.append(Occurrence(start, start + duration))
        step += 1
    return occurrences
