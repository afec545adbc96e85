from sqlalchemy import Column, String, Boolean, Text, JSON, Uuid
from .base import Base


WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class Schedule(Base):
    """Working hours definition of a user, used for availability lookups."""
    __tablename__ = "schedules"

    owner_id = Column(Uuid, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    timezone = Column(String(64), default="UTC", nullable=False)

    # {"monday": {"is_working_day": true, "start_time": "09:00", "end_time": "17:00",
    #             "breaks": [{"start_time": "12:00", "end_time": "13:00", "title": "Lunch"}]}, ...}
    working_hours = Column(JSON, nullable=False)

    is_public = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
