# yggdrasil/tasks.py
"""Celery tasks running the attendance workflow jobs outside the API process.

Under a prefork worker every child process has its own outbox, so each job
delivers the notifications it queued before returning. The alert-processing
task only drains what is left in the process that runs it.
"""
import asyncio
import logging

from .core.celery_app import celery_app
from .core.database import create_worker_engine, create_worker_sessionmaker
from .services.attendance_workflow_service import AttendanceRuleEngine
from .services.notification_service import NotificationDispatcher
from .core.config import settings

logger = logging.getLogger(__name__)

# One outbox per worker process, shared by every task it runs
dispatcher = NotificationDispatcher(max_pending=settings.notification_outbox_size)


def _engine(session_factory) -> AttendanceRuleEngine:
    return AttendanceRuleEngine(session_factory, dispatcher)


async def _run_job(job_name: str):
    worker_engine = create_worker_engine()
    try:
        rule_engine = _engine(create_worker_sessionmaker(worker_engine))
        return await getattr(rule_engine, job_name)()
    finally:
        await worker_engine.dispose()


def _run(job_name: str):
    result = asyncio.run(_run_job(job_name))
    sent = dispatcher.flush()
    if sent:
        logger.info(f"{job_name} delivered {len(sent)} notification(s)")
    return result


@celery_app.task(name="yggdrasil.tasks.run_daily_attendance_check")
def run_daily_attendance_check():
    alerts = _run("run_daily_check")
    return [alert.to_dict() for alert in alerts]


@celery_app.task(name="yggdrasil.tasks.check_missing_attendance")
def check_missing_attendance():
    return _run("check_missing_attendance")


@celery_app.task(name="yggdrasil.tasks.analyze_attendance_trends")
def analyze_attendance_trends():
    alerts = _run("analyze_trends")
    return [alert.to_dict() for alert in alerts]


@celery_app.task(name="yggdrasil.tasks.process_attendance_alerts")
def process_attendance_alerts():
    sent = dispatcher.flush()
    logger.info(f"Processed {len(sent)} pending attendance notification(s)")
    return len(sent)
