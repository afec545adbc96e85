import pytest

from yggdrasil import tasks
from yggdrasil.rules.attendance import AttendanceAlert
from yggdrasil.services.notification_service import AttendanceNotification


def notice(subject: str = "Attendance Alert") -> AttendanceNotification:
    return AttendanceNotification(
        recipient_id="c1", recipient_type="coordinator", subject=subject, message="Check CS 2030",
    )


class StubEngine:
    async def run_daily_check(self):
        tasks.dispatcher.dispatch(notice())
        return [AttendanceAlert(
            type="low_attendance",
            promotion_id="p1",
            promotion_name="CS 2030",
            severity="high",
            details="Attendance rate is 40.0%",
            threshold=75,
            current_value=40.0,
            student_id="s1",
        )]

    async def check_missing_attendance(self):
        return [{"event_id": "e1"}]

    async def analyze_trends(self):
        raise RuntimeError("database unavailable")


class FakeWorkerEngine:
    def __init__(self):
        self.disposed = False

    async def dispose(self):
        self.disposed = True


@pytest.fixture
def worker_engines(monkeypatch):
    created = []

    def create():
        created.append(FakeWorkerEngine())
        return created[-1]

    monkeypatch.setattr(tasks, "create_worker_engine", create)
    monkeypatch.setattr(tasks, "_engine", lambda session_factory: StubEngine())
    tasks.dispatcher.flush()
    return created


def test_tasks_return_serializable_results(worker_engines):
    alerts = tasks.run_daily_attendance_check()
    assert alerts[0]["type"] == "low_attendance"
    assert alerts[0]["student_id"] == "s1"
    assert tasks.check_missing_attendance() == [{"event_id": "e1"}]


def test_each_run_disposes_its_engine(worker_engines):
    tasks.check_missing_attendance()
    with pytest.raises(RuntimeError):
        tasks.analyze_attendance_trends()

    assert len(worker_engines) == 2
    assert all(engine.disposed for engine in worker_engines)


def test_jobs_deliver_their_own_notifications(worker_engines):
    tasks.run_daily_attendance_check()
    assert tasks.dispatcher.pending == 0
    assert tasks.dispatcher.delivered_count >= 1


def test_alert_processing_flushes_the_worker_outbox():
    tasks.dispatcher.flush()
    tasks.dispatcher.dispatch(notice())
    assert tasks.process_attendance_alerts() == 1
    assert tasks.dispatcher.pending == 0
