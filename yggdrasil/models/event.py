from sqlalchemy import Column, String, Integer, DateTime, Boolean, ForeignKey, Text, Enum, Uuid, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from .base import Base
import enum


class EventType(enum.Enum):
    CLASS = "class"
    EXAM = "exam"
    MEETING = "meeting"
    EVENT = "event"


class EventCategory(enum.Enum):
    ACADEMIC = "academic"
    ADMINISTRATIVE = "administrative"
    SOCIAL = "social"
    PERSONAL = "personal"
    SYSTEM = "system"


class EventVisibility(enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class EventStatus(enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RecurrenceFrequency(enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


# scheduled -> completed | cancelled; nothing leaves a terminal state
ALLOWED_STATUS_TRANSITIONS = {
    EventStatus.SCHEDULED: {EventStatus.COMPLETED, EventStatus.CANCELLED},
    EventStatus.COMPLETED: set(),
    EventStatus.CANCELLED: set(),
}


class Event(Base):
    __tablename__ = "calendar_events"

    # Event Information
    title = Column(String(200), nullable=False)
    description = Column(Text)
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=False, index=True)
    event_type = Column(Enum(EventType), nullable=False)
    category = Column(Enum(EventCategory), default=EventCategory.ACADEMIC, nullable=False)
    location = Column(String(500), index=True)

    # References (users, courses and promotions live in other services)
    organizer_id = Column(Uuid, nullable=False, index=True)
    course_id = Column(Uuid, index=True)
    promotion_id = Column(Uuid, index=True)

    visibility = Column(Enum(EventVisibility), default=EventVisibility.PUBLIC, nullable=False)
    status = Column(Enum(EventStatus), default=EventStatus.SCHEDULED, nullable=False)

    # Recurrence
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurrence_frequency = Column(Enum(RecurrenceFrequency))
    recurrence_interval = Column(Integer, default=1)
    recurrence_end_date = Column(DateTime)
    parent_event_id = Column(Uuid, ForeignKey("calendar_events.id"), index=True)

    # Soft delete
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    attendees = relationship(
        "EventAttendee",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="EventAttendee.created_at",
    )

    __table_args__ = (
        Index("ix_calendar_events_range_status", "start_date", "end_date", "status", "is_active"),
    )

    @classmethod
    def live_criteria(cls):
        """Filters excluding soft-deleted and cancelled events."""
        return (
            cls.is_active == True,  # noqa: E712
            cls.status != EventStatus.CANCELLED,
        )

    @property
    def attendee_ids(self) -> list:
        return [attendee.user_id for attendee in self.attendees]

    @property
    def duration_minutes(self) -> int:
        return int((self.end_date - self.start_date).total_seconds() // 60)

    def is_user_attending(self, user_id) -> bool:
        return user_id in self.attendee_ids

    def add_attendee(self, user_id) -> bool:
        if self.is_user_attending(user_id):
            return False
        self.attendees.append(EventAttendee(user_id=user_id))
        return True

    def remove_attendee(self, user_id) -> bool:
        for attendee in self.attendees:
            if attendee.user_id == user_id:
                self.attendees.remove(attendee)
                return True
        return False

    def can_user_view(self, user_id) -> bool:
        if self.visibility == EventVisibility.PUBLIC:
            return True
        return self.organizer_id == user_id or self.is_user_attending(user_id)

    def can_user_edit(self, user_id) -> bool:
        return self.organizer_id == user_id


class EventAttendee(Base):
    __tablename__ = "event_attendees"

    event_id = Column(Uuid, ForeignKey("calendar_events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_attendee"),
    )
