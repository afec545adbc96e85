# yggdrasil/models/__init__.py
"""Import all models here so Base.metadata knows every table."""
from .base import Base

from .event import (
    Event, EventAttendee, EventType, EventCategory, EventVisibility,
    EventStatus, RecurrenceFrequency
)
from .schedule import Schedule
from .attendance import AttendanceRecord
from .promotion import Promotion, PromotionStudent, PromotionCourse, PromotionStatus
from .news import NewsArticle, NewsCategory, NewsStatus
