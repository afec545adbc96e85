import pytest
from celery.schedules import crontab

from yggdrasil.core.celery_app import celery_app, parse_cron
from yggdrasil.core.config import settings
from yggdrasil.core.exceptions import NotFoundError
from yggdrasil.core.scheduler import SchedulerState, WorkflowScheduler, build_attendance_scheduler

# Far enough away that no loop fires during a test
NEW_YEAR = "0 0 1 1 *"


def test_parse_cron_builds_crontab():
    schedule = parse_cron("15 2 * * 1")
    assert isinstance(schedule, crontab)
    assert schedule.minute == {15}
    assert schedule.hour == {2}
    assert schedule.day_of_week == {1}


@pytest.mark.parametrize("expression", ["* * * *", "0 9 * * * *", ""])
def test_parse_cron_requires_five_fields(expression):
    with pytest.raises(ValueError):
        parse_cron(expression)


def test_beat_schedule_mirrors_the_workflow_jobs():
    beat = celery_app.conf.beat_schedule
    assert set(beat) == {
        "attendance-daily-check",
        "attendance-hourly-missing",
        "attendance-weekly-trends",
        "attendance-alert-processing",
    }
    assert beat["attendance-daily-check"]["task"] == "yggdrasil.tasks.run_daily_attendance_check"


def test_attendance_scheduler_registers_four_jobs(rule_engine):
    scheduler = build_attendance_scheduler(rule_engine, settings)
    assert list(scheduler.jobs) == ["daily-check", "hourly-missing", "weekly-trends", "alert-processing"]
    assert scheduler.jobs["daily-check"].cron == settings.attendance_daily_check_cron
    assert scheduler.state == SchedulerState.STOPPED


def test_duplicate_job_names_are_rejected():
    async def job():
        return None

    scheduler = WorkflowScheduler()
    scheduler.add_job("nightly", NEW_YEAR, job)
    with pytest.raises(ValueError):
        scheduler.add_job("nightly", NEW_YEAR, job)


async def test_start_and_stop_are_idempotent():
    async def job():
        return None

    scheduler = WorkflowScheduler()
    scheduler.add_job("nightly", NEW_YEAR, job)

    assert scheduler.start() is True
    assert scheduler.start() is False
    assert scheduler.is_running
    assert scheduler.status()["jobs"][0]["active"] is True

    assert await scheduler.stop() is True
    assert await scheduler.stop() is False
    assert not scheduler.is_running
    assert scheduler.jobs["nightly"].task is None


async def test_job_added_while_running_gets_a_loop():
    async def job():
        return None

    scheduler = WorkflowScheduler()
    scheduler.start()
    try:
        added = scheduler.add_job("late", NEW_YEAR, job)
        assert added.task is not None
    finally:
        await scheduler.stop()


async def test_failing_run_is_recorded_and_does_not_stick():
    calls = []

    async def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("database unavailable")
        return 7

    scheduler = WorkflowScheduler()
    scheduler.add_job("flaky", NEW_YEAR, flaky)

    failed = await scheduler.run_job("flaky")
    assert failed["success"] is False
    assert failed["error"] == "database unavailable"

    succeeded = await scheduler.run_job("flaky")
    assert succeeded["success"] is True
    assert succeeded["result"] == 7

    job = scheduler.jobs["flaky"]
    assert (job.run_count, job.failure_count, job.last_error) == (2, 1, None)
    assert job.last_run_at is not None


async def test_run_unknown_job():
    with pytest.raises(NotFoundError):
        await WorkflowScheduler().run_job("missing")
