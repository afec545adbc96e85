# yggdrasil/routers/planning.py
"""Calendar events, availability, bookings and working-hour schedules."""
from typing import Optional
from uuid import UUID
from datetime import datetime
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.exceptions import ValidationException
from ..core.security import CurrentUser, get_current_user, get_optional_user
from ..models.event import EventType, EventCategory, EventStatus, EventVisibility
from ..rules.conflicts import ConflictScope
from ..schemas.event_schemas import (
    BookingRequest, EventCreate, EventFilters, EventUpdate, conflict_to_dict, event_to_dict
)
from ..schemas.schedule_schemas import ScheduleCreate, schedule_to_dict
from ..services.calendar_service import CalendarService
from ..utils.datetime_utils import isoformat, to_naive_utc
from ..utils.pagination import OffsetParams, Paginator
from ..utils.responses import success_response

router = APIRouter(prefix="/api/planning", tags=["Planning - Calendar"])


def _created_message(created) -> str:
    message = "Event created successfully"
    if created.occurrences > 1:
        message += f" with {created.occurrences} occurrences"
    if created.conflicts:
        message += f"; overlaps {len(created.conflicts)} existing event(s)"
    return message


@router.post("/events", status_code=201)
async def create_event(
    event_data: EventCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create an event; meetings that overlap the organizer or location are rejected"""
    service = CalendarService(db)
    created = await service.create_event(event_data, user.id)
    return success_response(event_to_dict(created.event), _created_message(created))


@router.get("/events")
async def search_events(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    event_type: Optional[EventType] = Query(None, alias="type"),
    category: Optional[EventCategory] = Query(None),
    status: Optional[EventStatus] = Query(None),
    organizer_id: Optional[UUID] = Query(None, alias="organizerId"),
    attendee_id: Optional[UUID] = Query(None, alias="attendeeId"),
    course_id: Optional[UUID] = Query(None, alias="courseId"),
    promotion_id: Optional[UUID] = Query(None, alias="promotionId"),
    visibility: Optional[EventVisibility] = Query(None),
    is_recurring: Optional[bool] = Query(None, alias="isRecurring"),
    sort_by: str = Query("start_date", alias="sortBy", pattern="^(start_date|end_date|title|created_at)$"),
    sort_order: str = Query("asc", alias="sortOrder", pattern="^(asc|desc)$"),
    pagination: OffsetParams = Depends(Paginator.get_offset_params),
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Search events visible to the caller"""
    filters = EventFilters(
        start_date=start_date,
        end_date=end_date,
        event_type=event_type,
        category=category,
        status=status,
        organizer_id=organizer_id,
        attendee_id=attendee_id,
        course_id=course_id,
        promotion_id=promotion_id,
        visibility=visibility,
        is_recurring=is_recurring,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    service = CalendarService(db)
    events, total = await service.search_events(
        filters, user.id if user else None, offset=pagination.offset, limit=pagination.limit
    )
    return Paginator.create_response(
        [event_to_dict(event) for event in events],
        Paginator.create_offset_meta(pagination.offset, pagination.limit, total),
    )


@router.get("/events/upcoming")
async def get_upcoming_events(
    limit: int = Query(10, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = CalendarService(db)
    events = await service.get_upcoming_events(user.id, limit)
    return success_response([event_to_dict(event) for event in events])


@router.get("/events/conflicts")
async def find_conflicts(
    start_date: datetime = Query(..., alias="startDate"),
    end_date: datetime = Query(..., alias="endDate"),
    organizer_id: Optional[UUID] = Query(None, alias="organizerId"),
    location: Optional[str] = Query(None, max_length=500),
    attendee_id: Optional[UUID] = Query(None, alias="attendeeId"),
    exclude_event_id: Optional[UUID] = Query(None, alias="excludeEventId"),
    db: AsyncSession = Depends(get_db)
):
    """Active events in scope overlapping [startDate, endDate)"""
    service = CalendarService(db)
    conflicts = await service.find_conflicts(
        to_naive_utc(start_date),
        to_naive_utc(end_date),
        ConflictScope(organizer_id=organizer_id, location=location, attendee_id=attendee_id),
        exclude_event_id=exclude_event_id,
    )
    conflicts.sort(key=lambda event: event.start_date)
    return success_response(
        [conflict_to_dict(event) for event in conflicts],
        f"{len(conflicts)} conflict(s) found",
    )


@router.get("/events/{event_id}")
async def get_event(
    event_id: UUID,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    service = CalendarService(db)
    event = await service.get_event(event_id, user.id if user else None)
    return success_response(event_to_dict(event))


@router.put("/events/{event_id}")
async def update_event(
    event_id: UUID,
    event_data: EventUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = CalendarService(db)
    event = await service.update_event(event_id, event_data, user.id)
    return success_response(event_to_dict(event), "Event updated successfully")


@router.delete("/events/{event_id}")
async def delete_event(
    event_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = CalendarService(db)
    await service.delete_event(event_id, user.id)
    return success_response(message="Event deleted successfully")


@router.post("/events/{event_id}/attendees")
async def toggle_event_attendance(
    event_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Join the event, or leave it when already attending"""
    service = CalendarService(db)
    event, action = await service.toggle_event_attendance(event_id, user.id)
    return success_response(event_to_dict(event), f"Successfully {action} the event")


@router.get("/calendar/view")
async def get_calendar_view(
    view: str = Query("week", pattern="^(day|week|month|year)$"),
    start_date: datetime = Query(..., alias="startDate"),
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    service = CalendarService(db)
    calendar = await service.get_calendar_view(view, to_naive_utc(start_date), user.id if user else None)

    time_slots = None
    if calendar["time_slots"] is not None:
        time_slots = [
            {**slot, "start": isoformat(slot["start"]), "end": isoformat(slot["end"])}
            for slot in calendar["time_slots"]
        ]
    return success_response({
        "type": calendar["type"],
        "start_date": isoformat(calendar["start_date"]),
        "end_date": isoformat(calendar["end_date"]),
        "events": [event_to_dict(event) for event in calendar["events"]],
        "time_slots": time_slots,
    })


@router.get("/calendar/stats")
async def get_calendar_stats(
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    service = CalendarService(db)
    stats = await service.get_calendar_stats(user.id if user else None)
    return success_response(stats)


@router.get("/availability")
async def get_availability(
    start_date: datetime = Query(..., alias="startDate"),
    end_date: datetime = Query(..., alias="endDate"),
    duration: int = Query(60, ge=1, le=1440, description="Slot length in minutes"),
    user_id: Optional[UUID] = Query(None, alias="userId"),
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Free slots of the requested length for a user (defaults to the caller)"""
    target = user_id or (user.id if user else None)
    if target is None:
        raise ValidationException("userId query parameter or X-User-Id header is required", field="userId")

    service = CalendarService(db)
    slots = await service.get_availability(
        target, to_naive_utc(start_date), to_naive_utc(end_date), duration
    )
    return success_response(
        [
            {"start": isoformat(slot.start), "end": isoformat(slot.end), "duration_minutes": slot.duration_minutes}
            for slot in slots
        ],
        f"{len(slots)} available slot(s)",
    )


@router.post("/bookings", status_code=201)
async def book_slot(
    booking: BookingRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = CalendarService(db)
    created = await service.book_slot(booking, user.id)
    return success_response(event_to_dict(created.event), "Slot booked successfully")


@router.post("/schedules", status_code=201)
async def create_schedule(
    schedule_data: ScheduleCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = CalendarService(db)
    schedule = await service.create_schedule(schedule_data, user.id)
    return success_response(schedule_to_dict(schedule), "Schedule created successfully")


@router.get("/schedules")
async def get_user_schedules(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = CalendarService(db)
    schedules = await service.get_user_schedules(user.id)
    return success_response([schedule_to_dict(schedule) for schedule in schedules])
