# yggdrasil/services/calendar_service.py
"""Calendar events: conflict-checked creation, recurrence, views, availability and bookings."""
from typing import Any, Dict, List, NamedTuple, Optional, Tuple
from uuid import UUID
from datetime import datetime, timedelta
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
import logging

from .base_service import BaseService
from ..core.config import settings
from ..core.exceptions import (
    ConflictError, InvalidStateTransition, NotFoundError, PermissionDeniedError, ValidationException
)
from ..models.event import (
    Event, EventAttendee, EventType, EventCategory, EventVisibility, EventStatus,
    RecurrenceFrequency, ALLOWED_STATUS_TRANSITIONS
)
from ..models.schedule import Schedule
from ..rules.availability import Slot, free_slots
from ..rules.conflicts import ConflictScope, filter_conflicts, validate_range
from ..rules.recurrence import add_months, build_rule, expand
from ..schemas.event_schemas import (
    BookingRequest, EventCreate, EventFilters, EventUpdate, conflict_to_dict
)
from ..schemas.schedule_schemas import ScheduleCreate
from ..utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "Scheduling conflict detected. Please choose a different time."
TIME_SLOT_MINUTES = 30
MAX_SLOT_MINUTES = 24 * 60
VIEW_TYPES = ("day", "week", "month", "year")

SORT_FIELDS = {
    "start_date": Event.start_date,
    "end_date": Event.end_date,
    "title": Event.title,
    "created_at": Event.created_at,
}

# Columns copied from a recurring template onto each generated instance
INSTANCE_FIELDS = (
    "title", "description", "event_type", "category", "location", "organizer_id",
    "course_id", "promotion_id", "visibility", "recurrence_frequency",
    "recurrence_interval", "recurrence_end_date",
)


class CreatedEvent(NamedTuple):
    event: Event
    conflicts: List[Event]
    occurrences: int


class CalendarService(BaseService[Event]):
    def __init__(self, db: AsyncSession):
        super().__init__(Event, db)

    # Query helpers

    @staticmethod
    def _live_events():
        return select(Event).where(*Event.live_criteria())

    @staticmethod
    def _involves(user_id: UUID):
        return or_(
            Event.organizer_id == user_id,
            Event.attendees.any(EventAttendee.user_id == user_id),
        )

    @staticmethod
    def _visible_to(user_id: UUID):
        return or_(
            Event.visibility == EventVisibility.PUBLIC,
            Event.organizer_id == user_id,
            Event.attendees.any(EventAttendee.user_id == user_id),
        )

    async def _get_active_event(self, event_id: UUID) -> Event:
        stmt = select(Event).where(Event.id == event_id, Event.is_active == True)  # noqa: E712
        result = await self.db.execute(stmt)
        event = result.scalar_one_or_none()
        if not event:
            raise NotFoundError("Event", event_id)
        return event

    @staticmethod
    def _blocks_on_conflict(event_type: EventType) -> bool:
        return event_type.value in settings.conflict_blocking_event_types

    # Conflict detection

    async def find_conflicts(
        self,
        start: datetime,
        end: datetime,
        scope: ConflictScope,
        exclude_event_id: Optional[UUID] = None,
    ) -> List[Event]:
        """Active, non-cancelled events in scope whose range overlaps [start, end)."""
        validate_range(start, end)
        if scope.is_empty:
            raise ValidationException("An organizer, location or attendee is required to check conflicts")

        scope_clauses = []
        if scope.organizer_id is not None:
            scope_clauses.append(Event.organizer_id == scope.organizer_id)
        if scope.location:
            scope_clauses.append(Event.location == scope.location)
        if scope.attendee_id is not None:
            scope_clauses.append(Event.attendees.any(EventAttendee.user_id == scope.attendee_id))

        stmt = self._live_events().where(
            Event.start_date < end,
            Event.end_date > start,
            or_(*scope_clauses),
        )
        if exclude_event_id is not None:
            stmt = stmt.where(Event.id != exclude_event_id)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    # CRUD

    async def create_event(self, data: EventCreate, organizer_id: UUID) -> CreatedEvent:
        validate_range(data.start_date, data.end_date)

        conflicts = await self.find_conflicts(
            data.start_date,
            data.end_date,
            ConflictScope(organizer_id=organizer_id, location=data.location),
        )
        if conflicts and self._blocks_on_conflict(data.event_type):
            raise ConflictError(CONFLICT_MESSAGE, [conflict_to_dict(e) for e in conflicts])

        # Expand first so a bad rule fails before anything is written
        occurrences = []
        rule = None
        if data.is_recurring:
            rule = build_rule(
                data.recurrence.frequency,
                interval=data.recurrence.interval,
                end_date=data.recurrence.end_date,
                occurrence_count=data.recurrence.occurrence_count,
                exceptions=data.recurrence.exceptions,
            )
            until = rule.end_date or utcnow() + timedelta(days=settings.recurrence_horizon_days)
            occurrences = expand(
                data.start_date, data.end_date, rule, until,
                max_occurrences=settings.recurrence_max_occurrences,
            )

        event = Event(
            **data.model_dump(exclude={"attendees", "recurrence", "is_recurring"}),
            organizer_id=organizer_id,
            status=EventStatus.SCHEDULED,
            is_active=True,
            is_recurring=rule is not None,
            attendees=[],
        )
        if rule is not None:
            event.recurrence_frequency = RecurrenceFrequency(rule.frequency)
            event.recurrence_interval = rule.interval
            event.recurrence_end_date = rule.end_date
        for user_id in data.attendees:
            event.add_attendee(user_id)

        self.db.add(event)
        await self.db.flush()

        # The template is the first occurrence; the rest are inserted as one batch
        instances = [
            self._instance_of(event, occurrence.start, occurrence.end)
            for occurrence in occurrences[1:]
        ]
        if instances:
            self.db.add_all(instances)

        await self.db.commit()
        logger.info(
            f"Event {event.id} created by {organizer_id} "
            f"({len(instances)} recurring instance(s), {len(conflicts)} overlap(s))"
        )
        return CreatedEvent(event=event, conflicts=conflicts, occurrences=len(instances) + 1)

    @staticmethod
    def _instance_of(template: Event, start: datetime, end: datetime) -> Event:
        instance = Event(
            **{name: getattr(template, name) for name in INSTANCE_FIELDS},
            start_date=start,
            end_date=end,
            status=EventStatus.SCHEDULED,
            is_recurring=True,
            is_active=True,
            parent_event_id=template.id,
            attendees=[],
        )
        for user_id in template.attendee_ids:
            instance.add_attendee(user_id)
        return instance

    async def get_event(self, event_id: UUID, user_id: Optional[UUID] = None) -> Event:
        event = await self._get_active_event(event_id)
        if not event.can_user_view(user_id):
            raise PermissionDeniedError("Insufficient permissions to view this event")
        return event

    async def update_event(self, event_id: UUID, data: EventUpdate, user_id: UUID) -> Event:
        event = await self._get_active_event(event_id)
        if not event.can_user_edit(user_id):
            raise PermissionDeniedError("Insufficient permissions to edit this event")

        changes = data.model_dump(exclude_unset=True, exclude={"attendees", "status"})
        for key, value in list(changes.items()):
            # Explicit nulls only clear optional columns
            if value is None and key in ("title", "start_date", "end_date", "event_type", "category", "visibility"):
                changes.pop(key)

        new_start = changes.get("start_date", event.start_date)
        new_end = changes.get("end_date", event.end_date)
        new_type = changes.get("event_type", event.event_type)
        new_location = changes.get("location", event.location)
        validate_range(new_start, new_end)

        rescheduled = (
            new_start != event.start_date
            or new_end != event.end_date
            or new_location != event.location
            or new_type != event.event_type
        )
        if rescheduled and self._blocks_on_conflict(new_type):
            conflicts = await self.find_conflicts(
                new_start,
                new_end,
                ConflictScope(organizer_id=event.organizer_id, location=new_location),
                exclude_event_id=event.id,
            )
            if conflicts:
                raise ConflictError(CONFLICT_MESSAGE, [conflict_to_dict(e) for e in conflicts])

        if data.status is not None and data.status != event.status:
            if data.status not in ALLOWED_STATUS_TRANSITIONS[event.status]:
                raise InvalidStateTransition("event", event.status.value, data.status.value)
            event.status = data.status

        for key, value in changes.items():
            setattr(event, key, value)

        if data.attendees is not None:
            wanted = set(data.attendees)
            for current in list(event.attendee_ids):
                if current not in wanted:
                    event.remove_attendee(current)
            for user in data.attendees:
                event.add_attendee(user)

        await self.db.commit()
        logger.info(f"Event {event.id} updated by {user_id}")
        return event

    async def delete_event(self, event_id: UUID, user_id: UUID) -> bool:
        event = await self._get_active_event(event_id)
        if not event.can_user_edit(user_id):
            raise PermissionDeniedError("Insufficient permissions to delete this event")

        # Soft delete: never physically removed
        event.is_active = False
        event.status = EventStatus.CANCELLED
        await self.db.commit()
        logger.info(f"Event {event.id} cancelled by {user_id}")
        return True

    # Search and views

    def _filtered(self, stmt, filters: EventFilters, user_id: Optional[UUID]):
        if filters.start_date and filters.end_date:
            validate_range(filters.start_date, filters.end_date)
        if filters.start_date:
            stmt = stmt.where(Event.end_date > filters.start_date)
        if filters.end_date:
            stmt = stmt.where(Event.start_date < filters.end_date)

        for key in ("event_type", "category", "status", "organizer_id", "course_id",
                    "promotion_id", "visibility", "is_recurring"):
            value = getattr(filters, key)
            if value is not None:
                stmt = stmt.where(getattr(Event, key) == value)
        if filters.attendee_id is not None:
            stmt = stmt.where(Event.attendees.any(EventAttendee.user_id == filters.attendee_id))

        if user_id is None:
            stmt = stmt.where(Event.visibility == EventVisibility.PUBLIC)
        else:
            stmt = stmt.where(self._visible_to(user_id))
        return stmt

    async def search_events(
        self,
        filters: EventFilters,
        user_id: Optional[UUID] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Event], int]:
        base = select(Event).where(Event.is_active == True)  # noqa: E712
        stmt = self._filtered(base, filters, user_id)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.db.execute(count_stmt)).scalar()

        sort_field = SORT_FIELDS[filters.sort_by]
        order = sort_field.desc() if filters.sort_order == "desc" else sort_field.asc()
        stmt = stmt.order_by(order).offset(offset).limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def get_calendar_view(self, view_type: str, start_date: datetime, user_id: Optional[UUID] = None) -> Dict[str, Any]:
        if view_type not in VIEW_TYPES:
            raise ValidationException(f"Unknown view type: {view_type}", field="view_type")

        if view_type == "day":
            end_date = start_date + timedelta(days=1)
        elif view_type == "week":
            end_date = start_date + timedelta(days=7)
        elif view_type == "month":
            end_date = add_months(start_date, 1)
        else:
            end_date = add_months(start_date, 12)

        stmt = self._filtered(
            select(Event).where(Event.is_active == True),  # noqa: E712
            EventFilters(start_date=start_date, end_date=end_date),
            user_id,
        ).order_by(Event.start_date.asc())
        events = list((await self.db.execute(stmt)).scalars().all())

        time_slots = None
        if view_type in ("day", "week"):
            live = [event for event in events if event.status != EventStatus.CANCELLED]
            time_slots = []
            current = start_date
            step = timedelta(minutes=TIME_SLOT_MINUTES)
            while current < end_date:
                busy = filter_conflicts(live, current, current + step)
                time_slots.append({
                    "start": current,
                    "end": current + step,
                    "is_available": not busy,
                    "conflicts": [str(event.id) for event in busy],
                })
                current += step

        return {
            "type": view_type,
            "start_date": start_date,
            "end_date": end_date,
            "events": events,
            "time_slots": time_slots,
        }

    async def get_upcoming_events(self, user_id: UUID, limit: int = 10) -> List[Event]:
        stmt = (
            self._live_events()
            .where(
                Event.status == EventStatus.SCHEDULED,
                Event.start_date > utcnow(),
                self._involves(user_id),
            )
            .order_by(Event.start_date.asc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def toggle_event_attendance(self, event_id: UUID, user_id: UUID) -> Tuple[Event, str]:
        event = await self._get_active_event(event_id)
        if not event.can_user_view(user_id):
            raise PermissionDeniedError("Insufficient permissions")

        if event.is_user_attending(user_id):
            event.remove_attendee(user_id)
            action = "left"
        else:
            event.add_attendee(user_id)
            action = "joined"

        await self.db.commit()
        return event, action

    # Availability and bookings

    async def _schedule_for(self, user_id: UUID) -> Schedule:
        owned = await self.db.execute(
            select(Schedule)
            .where(Schedule.owner_id == user_id, Schedule.is_active == True)  # noqa: E712
            .order_by(Schedule.created_at.asc())
            .limit(1)
        )
        schedule = owned.scalar_one_or_none()
        if schedule:
            return schedule

        shared = await self.db.execute(
            select(Schedule)
            .where(Schedule.is_public == True, Schedule.is_active == True)  # noqa: E712
            .order_by(Schedule.created_at.asc())
            .limit(1)
        )
        schedule = shared.scalar_one_or_none()
        if not schedule:
            raise NotFoundError("Schedule", message="No schedule configured for user")
        return schedule

    async def get_availability(
        self,
        user_id: UUID,
        window_start: datetime,
        window_end: datetime,
        duration_minutes: int = 60,
    ) -> List[Slot]:
        if not 1 <= duration_minutes <= MAX_SLOT_MINUTES:
            raise ValidationException(
                f"Slot duration must be between 1 and {MAX_SLOT_MINUTES} minutes", field="duration"
            )
        validate_range(window_start, window_end)

        schedule = await self._schedule_for(user_id)

        stmt = self._live_events().where(
            Event.start_date < window_end,
            Event.end_date > window_start,
            self._involves(user_id),
        )
        busy = (await self.db.execute(stmt)).scalars().all()

        return free_slots(
            window_start,
            window_end,
            duration_minutes,
            schedule.working_hours,
            busy,
            schedule.timezone,
        )

    async def book_slot(self, request: BookingRequest, organizer_id: UUID) -> CreatedEvent:
        slot = request.requested_slot
        conflicts = await self.find_conflicts(
            slot.start,
            slot.end,
            ConflictScope(organizer_id=request.requested_by, attendee_id=request.requested_by),
        )
        if conflicts:
            raise ConflictError(
                "Time slot conflicts with existing events",
                [conflict_to_dict(e) for e in conflicts],
            )

        booking = EventCreate(
            title=f"Booking: {request.purpose}",
            description=f"Booked by user {request.requested_by}",
            start_date=slot.start,
            end_date=slot.end,
            event_type=EventType.MEETING,
            category=EventCategory.PERSONAL,
            visibility=EventVisibility.PRIVATE,
            attendees=[request.requested_by],
        )
        return await self.create_event(booking, organizer_id)

    # Statistics

    async def get_calendar_stats(self, user_id: Optional[UUID] = None) -> Dict[str, Any]:
        criteria = [Event.is_active == True]  # noqa: E712
        if user_id is None:
            criteria.append(Event.visibility == EventVisibility.PUBLIC)
        else:
            criteria.append(self._involves(user_id))

        total = (await self.db.execute(
            select(func.count(Event.id)).where(*criteria)
        )).scalar()
        upcoming = (await self.db.execute(
            select(func.count(Event.id)).where(*criteria, Event.start_date > utcnow())
        )).scalar()
        completed = (await self.db.execute(
            select(func.count(Event.id)).where(*criteria, Event.status == EventStatus.COMPLETED)
        )).scalar()

        by_type = await self.db.execute(
            select(Event.event_type, func.count(Event.id)).where(*criteria).group_by(Event.event_type)
        )
        by_category = await self.db.execute(
            select(Event.category, func.count(Event.id)).where(*criteria).group_by(Event.category)
        )

        return {
            "total_events": total,
            "events_by_type": {event_type.value: count for event_type, count in by_type.all()},
            "events_by_category": {category.value: count for category, count in by_category.all()},
            "upcoming_events": upcoming,
            "completed_events": completed,
            "completion_rate": round(completed / total * 100, 2) if total else 0.0,
        }

    # Schedules

    async def create_schedule(self, data: ScheduleCreate, owner_id: UUID) -> Schedule:
        schedule = Schedule(
            owner_id=owner_id,
            name=data.name,
            description=data.description,
            timezone=data.timezone,
            working_hours={day: hours.model_dump() for day, hours in data.working_hours.items()},
            is_public=data.is_public,
            is_active=True,
        )
        self.db.add(schedule)
        await self.db.commit()
        logger.info(f"Schedule {schedule.id} created for {owner_id}")
        return schedule

    async def get_user_schedules(self, user_id: UUID) -> List[Schedule]:
        stmt = (
            select(Schedule)
            .where(Schedule.owner_id == user_id, Schedule.is_active == True)  # noqa: E712
            .order_by(Schedule.created_at.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
