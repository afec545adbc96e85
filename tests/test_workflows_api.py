import uuid
from datetime import datetime, timedelta

from yggdrasil.main import app
from yggdrasil.models import AttendanceRecord, Promotion

from conftest import headers

BASE = "/api/planning/attendance-workflows"
ADMIN = headers(uuid.uuid4(), "admin")
STUDENT = headers(uuid.uuid4(), "student")


async def test_status_lists_the_jobs(client):
    body = (await client.get(f"{BASE}/status")).json()["data"]
    assert body["state"] == "stopped"
    assert [job["name"] for job in body["jobs"]] == [
        "daily-check", "hourly-missing", "weekly-trends", "alert-processing",
    ]
    assert body["config"]["low_attendance_threshold"] == 75
    assert body["pending_notifications"] == 0


async def test_start_and_stop(client):
    assert (await client.post(f"{BASE}/start", headers=STUDENT)).status_code == 403

    started = await client.post(f"{BASE}/start", headers=ADMIN)
    assert started.json()["data"]["is_running"] is True
    assert app.state.scheduler.is_running

    again = await client.post(f"{BASE}/start", headers=ADMIN)
    assert again.json()["message"] == "Attendance workflows already running"

    stopped = await client.post(f"{BASE}/stop", headers=ADMIN)
    assert stopped.json()["data"]["state"] == "stopped"
    again = await client.post(f"{BASE}/stop", headers=ADMIN)
    assert again.json()["message"] == "Attendance workflows already stopped"


async def test_config_updates(client):
    updated = await client.put(f"{BASE}/config", json={"low_attendance_threshold": 80}, headers=ADMIN)
    assert updated.status_code == 200
    assert updated.json()["data"]["low_attendance_threshold"] == 80
    assert (await client.get(f"{BASE}/config")).json()["data"]["low_attendance_threshold"] == 80

    unknown = await client.put(f"{BASE}/config", json={"enabled_alerts": ["weather"]}, headers=ADMIN)
    assert unknown.status_code == 400
    out_of_range = await client.put(f"{BASE}/config", json={"low_attendance_threshold": 120}, headers=ADMIN)
    assert out_of_range.status_code == 400
    assert (await client.put(f"{BASE}/config", json={}, headers=STUDENT)).status_code == 403


async def test_trigger_for_one_promotion(client, db, make_event):
    student, coordinator = uuid.uuid4(), uuid.uuid4()
    promotion = Promotion(
        name="Robotics", code="ROB2030", start_year=2029, end_year=2031,
        capacity=10, coordinator_id=coordinator, students=[], courses=[],
    )
    promotion.add_student(student)
    db.add(promotion)
    await db.commit()
    for day in range(3):
        event = await make_event(datetime(2029, 10, 1, 9) + timedelta(days=day), promotion_id=promotion.id)
        db.add(AttendanceRecord(event_id=event.id, student_id=student, promotion_id=promotion.id, attended=False))
    await db.commit()

    response = await client.post(
        f"{BASE}/trigger", json={"promotion_id": str(promotion.id)}, headers=headers(uuid.uuid4(), "teacher")
    )
    assert response.status_code == 200
    alerts = response.json()["data"]
    assert {alert["type"] for alert in alerts} == {"low_attendance", "consecutive_absences"}
    assert all(alert["student_id"] == str(student) for alert in alerts)

    status = (await client.get(f"{BASE}/status")).json()["data"]
    assert status["pending_notifications"] == 2

    processed = await client.post(f"{BASE}/jobs/alert-processing/run", headers=ADMIN)
    assert processed.json()["data"]["success"] is True
    assert processed.json()["data"]["result"] == 2


async def test_trigger_without_body_checks_everything(client):
    response = await client.post(f"{BASE}/trigger", headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["data"] == []

    missing = await client.post(f"{BASE}/trigger", json={"promotion_id": str(uuid.uuid4())}, headers=ADMIN)
    assert missing.status_code == 404
    assert (await client.post(f"{BASE}/trigger", headers=STUDENT)).status_code == 403


async def test_run_unknown_job(client):
    response = await client.post(f"{BASE}/jobs/nightly-backup/run", headers=ADMIN)
    assert response.status_code == 404


async def test_health_endpoints(client):
    health = await client.get("/health/")
    assert health.json()["data"]["status"] == "healthy"

    root = await client.get("/")
    assert root.json()["success"] is True
