import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ["ENVIRONMENT"] = "test"
os.environ["WORKFLOWS_ENABLED"] = "false"
os.environ["AUTO_CREATE_TABLES"] = "false"

import uuid
from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from yggdrasil.core.database import get_db
from yggdrasil.main import app
from yggdrasil.models import Base, Event, EventType, EventStatus, EventVisibility
from yggdrasil.services.attendance_workflow_service import AttendanceRuleEngine, default_workflow_config
from yggdrasil.services.notification_service import NotificationDispatcher

# A Monday
MONDAY = datetime(2030, 1, 7)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def dispatcher():
    return NotificationDispatcher(max_pending=100)


@pytest.fixture
def rule_engine(session_factory, dispatcher):
    return AttendanceRuleEngine(session_factory, dispatcher)


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    rule_engine = app.state.rule_engine
    original_factory = rule_engine.session_factory
    rule_engine.session_factory = session_factory
    rule_engine.config = default_workflow_config()
    app.state.dispatcher.flush()
    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await app.state.scheduler.stop()
    app.dependency_overrides.clear()
    rule_engine.session_factory = original_factory


@pytest.fixture
def make_event(db):
    """Persist an event directly, bypassing conflict checks."""
    async def _make_event(start: datetime, minutes: int = 60, **fields) -> Event:
        values = {
            "title": "Lecture",
            "event_type": EventType.CLASS,
            "organizer_id": uuid.uuid4(),
            "visibility": EventVisibility.PUBLIC,
            "status": EventStatus.SCHEDULED,
            "is_active": True,
            "attendees": [],
        }
        values.update(fields)
        event = Event(start_date=start, end_date=start + timedelta(minutes=minutes), **values)
        db.add(event)
        await db.commit()
        return event

    return _make_event


def headers(user_id, role: str = "teacher") -> dict:
    return {"X-User-Id": str(user_id), "X-User-Role": role}
