import uuid
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from yggdrasil.core.exceptions import (
    ConflictError, InvalidStateTransition, NotFoundError, PermissionDeniedError, ValidationException
)
from yggdrasil.models import Event, EventStatus, EventType, EventVisibility
from yggdrasil.rules.availability import Slot
from yggdrasil.rules.conflicts import ConflictScope
from yggdrasil.schemas.event_schemas import (
    BookingRequest, BookingSlot, EventCreate, EventFilters, EventUpdate, RecurrencePattern
)
from yggdrasil.schemas.schedule_schemas import ScheduleCreate
from yggdrasil.services.calendar_service import CONFLICT_MESSAGE, CalendarService

from conftest import MONDAY

ORGANIZER = uuid.uuid4()


def at(hour: int, minute: int = 0, day: datetime = MONDAY) -> datetime:
    return day.replace(hour=hour, minute=minute)


def event_data(start: datetime, end: datetime, **fields) -> EventCreate:
    values = {"title": "Team sync", "event_type": EventType.MEETING}
    values.update(fields)
    return EventCreate(start_date=start, end_date=end, **values)


async def test_overlapping_meeting_is_rejected_with_the_conflicts(db):
    service = CalendarService(db)
    first = await service.create_event(event_data(at(10), at(11)), ORGANIZER)

    with pytest.raises(ConflictError) as excinfo:
        await service.create_event(event_data(at(10, 30), at(11, 30)), ORGANIZER)

    assert excinfo.value.message == CONFLICT_MESSAGE
    assert [c["id"] for c in excinfo.value.conflicts] == [str(first.event.id)]
    total = (await db.execute(select(func.count(Event.id)))).scalar()
    assert total == 1


async def test_touching_meetings_do_not_conflict(db):
    service = CalendarService(db)
    await service.create_event(event_data(at(10), at(11)), ORGANIZER)
    created = await service.create_event(event_data(at(11), at(12)), ORGANIZER)
    assert created.conflicts == []


async def test_non_blocking_types_are_created_despite_overlap(db):
    service = CalendarService(db)
    first = await service.create_event(event_data(at(10), at(11), event_type=EventType.CLASS), ORGANIZER)
    second = await service.create_event(event_data(at(10, 30), at(11, 30), event_type=EventType.CLASS), ORGANIZER)

    assert [event.id for event in second.conflicts] == [first.event.id]


async def test_location_clash_blocks_other_organizers(db):
    service = CalendarService(db)
    await service.create_event(event_data(at(9), at(10), location="Room 101"), ORGANIZER)

    with pytest.raises(ConflictError):
        await service.create_event(event_data(at(9, 30), at(10, 30), location="Room 101"), uuid.uuid4())


async def test_find_conflicts_ignores_cancelled_and_deleted_events(db, make_event):
    await make_event(at(10), organizer_id=ORGANIZER, status=EventStatus.CANCELLED)
    await make_event(at(10), organizer_id=ORGANIZER, is_active=False)
    live = await make_event(at(10), organizer_id=ORGANIZER)

    service = CalendarService(db)
    conflicts = await service.find_conflicts(at(10, 15), at(10, 45), ConflictScope(organizer_id=ORGANIZER))
    assert [event.id for event in conflicts] == [live.id]

    excluded = await service.find_conflicts(
        at(10, 15), at(10, 45), ConflictScope(organizer_id=ORGANIZER), exclude_event_id=live.id
    )
    assert excluded == []


async def test_find_conflicts_by_attendee(db, make_event):
    student = uuid.uuid4()
    event = await make_event(at(14))
    event.add_attendee(student)
    await db.commit()

    service = CalendarService(db)
    conflicts = await service.find_conflicts(at(14, 30), at(15, 30), ConflictScope(attendee_id=student))
    assert [c.id for c in conflicts] == [event.id]


async def test_find_conflicts_validates_its_input(db):
    service = CalendarService(db)
    with pytest.raises(ValidationException):
        await service.find_conflicts(at(11), at(10), ConflictScope(organizer_id=ORGANIZER))
    with pytest.raises(ValidationException):
        await service.find_conflicts(at(10), at(11), ConflictScope())


async def test_recurring_event_creates_linked_instances(db):
    service = CalendarService(db)
    data = event_data(
        at(9), at(10),
        event_type=EventType.CLASS,
        is_recurring=True,
        recurrence=RecurrencePattern(frequency="weekly", end_date=at(9) + timedelta(weeks=4)),
        attendees=[uuid.uuid4()],
    )
    created = await service.create_event(data, ORGANIZER)

    assert created.occurrences == 4
    result = await db.execute(
        select(Event).where(Event.parent_event_id == created.event.id).order_by(Event.start_date)
    )
    instances = list(result.scalars().all())
    assert [e.start_date for e in instances] == [at(9) + timedelta(weeks=n) for n in (1, 2, 3)]
    assert all(e.is_recurring and e.attendee_ids == created.event.attendee_ids for e in instances)
    assert created.event.recurrence_frequency.value == "weekly"


async def test_unknown_frequency_writes_nothing(db):
    service = CalendarService(db)
    data = event_data(
        at(9), at(10),
        is_recurring=True,
        recurrence=RecurrencePattern(frequency="hourly", end_date=at(9) + timedelta(days=2)),
    )
    with pytest.raises(ValidationException):
        await service.create_event(data, ORGANIZER)

    assert (await db.execute(select(func.count(Event.id)))).scalar() == 0


async def test_reschedule_into_a_conflict_is_rejected(db):
    service = CalendarService(db)
    await service.create_event(event_data(at(10), at(11)), ORGANIZER)
    second = await service.create_event(event_data(at(12), at(13)), ORGANIZER)

    with pytest.raises(ConflictError):
        await service.update_event(
            second.event.id, EventUpdate(start_date=at(10, 30), end_date=at(11, 30)), ORGANIZER
        )

    moved = await service.update_event(second.event.id, EventUpdate(start_date=at(12, 30), end_date=at(13, 30)), ORGANIZER)
    assert moved.start_date == at(12, 30)


async def test_only_the_organizer_can_update(db):
    service = CalendarService(db)
    created = await service.create_event(event_data(at(10), at(11)), ORGANIZER)
    with pytest.raises(PermissionDeniedError):
        await service.update_event(created.event.id, EventUpdate(title="Hijacked"), uuid.uuid4())


async def test_status_transitions(db):
    service = CalendarService(db)
    created = await service.create_event(event_data(at(10), at(11)), ORGANIZER)

    done = await service.update_event(created.event.id, EventUpdate(status=EventStatus.COMPLETED), ORGANIZER)
    assert done.status == EventStatus.COMPLETED

    with pytest.raises(InvalidStateTransition):
        await service.update_event(created.event.id, EventUpdate(status=EventStatus.SCHEDULED), ORGANIZER)


async def test_delete_is_soft(db):
    service = CalendarService(db)
    created = await service.create_event(event_data(at(10), at(11)), ORGANIZER)
    await service.delete_event(created.event.id, ORGANIZER)

    stored = await db.get(Event, created.event.id)
    assert stored is not None
    assert stored.is_active is False
    assert stored.status == EventStatus.CANCELLED
    with pytest.raises(NotFoundError):
        await service.get_event(created.event.id)

    # The freed slot can be booked again
    await service.create_event(event_data(at(10), at(11)), ORGANIZER)


async def test_private_events_are_hidden_from_outsiders(db, make_event):
    private = await make_event(at(10), organizer_id=ORGANIZER, visibility=EventVisibility.PRIVATE)
    await make_event(at(12), organizer_id=ORGANIZER)

    service = CalendarService(db)
    with pytest.raises(PermissionDeniedError):
        await service.get_event(private.id, uuid.uuid4())
    assert (await service.get_event(private.id, ORGANIZER)).id == private.id

    events, total = await service.search_events(EventFilters(organizer_id=ORGANIZER), uuid.uuid4())
    assert total == 1
    events, total = await service.search_events(EventFilters(organizer_id=ORGANIZER), ORGANIZER)
    assert total == 2
    assert [e.start_date for e in events] == [at(10), at(12)]


async def test_anonymous_callers_only_see_public_events(db, make_event):
    private = await make_event(at(10), organizer_id=ORGANIZER, visibility=EventVisibility.PRIVATE)
    public = await make_event(at(12), organizer_id=ORGANIZER)

    service = CalendarService(db)
    with pytest.raises(PermissionDeniedError):
        await service.get_event(private.id)
    assert (await service.get_event(public.id)).id == public.id

    events, total = await service.search_events(EventFilters())
    assert total == 1
    assert [e.id for e in events] == [public.id]

    view = await service.get_calendar_view("day", MONDAY)
    assert [e.id for e in view["events"]] == [public.id]
    assert [slot["start"] for slot in view["time_slots"] if not slot["is_available"]] == [at(12), at(12, 30)]

    stats = await service.get_calendar_stats()
    assert stats["total_events"] == 1


async def test_toggle_attendance(db, make_event):
    event = await make_event(at(10))
    user = uuid.uuid4()
    service = CalendarService(db)

    event, action = await service.toggle_event_attendance(event.id, user)
    assert action == "joined" and event.is_user_attending(user)
    event, action = await service.toggle_event_attendance(event.id, user)
    assert action == "left" and not event.is_user_attending(user)


async def test_day_view_has_half_hour_slots(db, make_event):
    event = await make_event(at(10), minutes=60)
    service = CalendarService(db)

    view = await service.get_calendar_view("day", MONDAY)
    assert len(view["time_slots"]) == 48
    busy = [slot for slot in view["time_slots"] if not slot["is_available"]]
    assert [slot["start"] for slot in busy] == [at(10), at(10, 30)]
    assert busy[0]["conflicts"] == [str(event.id)]
    assert [e.id for e in view["events"]] == [event.id]

    month = await service.get_calendar_view("month", MONDAY)
    assert month["time_slots"] is None

    with pytest.raises(ValidationException):
        await service.get_calendar_view("decade", MONDAY)


WORKING_WEEK = {
    "monday": {
        "start_time": "09:00",
        "end_time": "17:00",
        "breaks": [{"start_time": "12:00", "end_time": "13:00", "title": "Lunch"}],
    },
}


async def test_availability_skips_busy_slots_and_breaks(db, make_event):
    service = CalendarService(db)
    await service.create_schedule(ScheduleCreate(name="Default", working_hours=WORKING_WEEK), ORGANIZER)
    await make_event(at(10), organizer_id=ORGANIZER)

    slots = await service.get_availability(ORGANIZER, at(9), at(13, 30), 60)
    assert slots == [Slot(at(9), at(10)), Slot(at(11), at(12))]


async def test_availability_falls_back_to_a_public_schedule(db):
    service = CalendarService(db)
    await service.create_schedule(
        ScheduleCreate(name="School hours", working_hours=WORKING_WEEK, is_public=True), uuid.uuid4()
    )
    slots = await service.get_availability(uuid.uuid4(), at(9), at(11), 60)
    assert len(slots) == 2


async def test_availability_without_schedule(db):
    service = CalendarService(db)
    with pytest.raises(NotFoundError, match="No schedule configured for user"):
        await service.get_availability(uuid.uuid4(), at(9), at(11), 60)
    with pytest.raises(ValidationException):
        await service.get_availability(uuid.uuid4(), at(9), at(11), 0)


async def test_booking_creates_a_private_meeting(db):
    service = CalendarService(db)
    requester = uuid.uuid4()
    request = BookingRequest(
        requested_slot=BookingSlot(start=at(15), end=at(15, 30)),
        requested_by=requester,
        purpose="Thesis review",
    )
    booked = await service.book_slot(request, ORGANIZER)

    assert booked.event.title == "Booking: Thesis review"
    assert booked.event.visibility == EventVisibility.PRIVATE
    assert booked.event.attendee_ids == [requester]

    with pytest.raises(ConflictError, match="Time slot conflicts with existing events"):
        await service.book_slot(request, uuid.uuid4())


async def test_calendar_stats(db, make_event):
    await make_event(at(10), event_type=EventType.EXAM, status=EventStatus.COMPLETED)
    await make_event(at(12))

    stats = await CalendarService(db).get_calendar_stats()
    assert stats["total_events"] == 2
    assert stats["events_by_type"] == {"exam": 1, "class": 1}
    assert stats["completed_events"] == 1
    assert stats["completion_rate"] == 50.0
