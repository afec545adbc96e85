# yggdrasil/core/scheduler.py
"""Process-scoped scheduler for the attendance workflow jobs.

One instance is built at startup and kept on ``app.state``. Each job runs
in its own asyncio task that sleeps until the job's next cron fire time.
Runs are not serialized against each other or against HTTP requests.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional
import asyncio
import enum
import logging
import time

from celery.schedules import crontab

from .celery_app import parse_cron
from .exceptions import NotFoundError

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Awaitable[Any]]


class SchedulerState(enum.Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass
class ScheduledJob:
    name: str
    cron: str
    func: JobFunc
    schedule: crontab
    task: Optional[asyncio.Task] = None
    last_run_at: Optional[datetime] = None
    last_duration: Optional[float] = None
    last_error: Optional[str] = None
    run_count: int = 0
    failure_count: int = 0

    def seconds_until_next_run(self) -> float:
        now = self.schedule.now()
        return max(self.schedule.remaining_estimate(now).total_seconds(), 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "cron": self.cron,
            "active": self.task is not None and not self.task.done(),
            "next_run_in_seconds": round(self.seconds_until_next_run(), 1),
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_duration": self.last_duration,
            "last_error": self.last_error,
            "run_count": self.run_count,
            "failure_count": self.failure_count,
        }


class WorkflowScheduler:
    def __init__(self):
        self.jobs: Dict[str, ScheduledJob] = {}
        self.state = SchedulerState.STOPPED

    @property
    def is_running(self) -> bool:
        return self.state == SchedulerState.RUNNING

    def add_job(self, name: str, cron: str, func: JobFunc) -> ScheduledJob:
        if name in self.jobs:
            raise ValueError(f"Job already registered: {name}")
        job = ScheduledJob(name=name, cron=cron, func=func, schedule=parse_cron(cron))
        self.jobs[name] = job
        if self.is_running:
            job.task = asyncio.create_task(self._loop(job), name=f"workflow:{name}")
        logger.info(f"Scheduled job: {name} with cron: {cron}")
        return job

    def start(self) -> bool:
        """Launch every job loop. Returns False when already running."""
        if self.is_running:
            logger.warning("Attendance workflows already running")
            return False

        for job in self.jobs.values():
            job.task = asyncio.create_task(self._loop(job), name=f"workflow:{job.name}")
        self.state = SchedulerState.RUNNING
        logger.info(f"Attendance workflow automation started with {len(self.jobs)} job(s)")
        return True

    async def stop(self) -> bool:
        """Cancel every job loop. Returns False when already stopped."""
        if not self.is_running:
            return False

        self.state = SchedulerState.STOPPED
        tasks = [job.task for job in self.jobs.values() if job.task is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for job in self.jobs.values():
            job.task = None
            logger.info(f"Stopped job: {job.name}")
        logger.info("Attendance workflow automation stopped")
        return True

    async def _loop(self, job: ScheduledJob):
        last_run_at = job.schedule.now()
        while True:
            delay = max(job.schedule.remaining_estimate(last_run_at).total_seconds(), 0.0)
            await asyncio.sleep(delay)
            last_run_at = job.schedule.now()
            await self._execute(job)

    async def _execute(self, job: ScheduledJob) -> Dict[str, Any]:
        logger.info(f"Running scheduled job: {job.name}")
        started = time.time()
        job.last_run_at = job.schedule.now()
        job.run_count += 1
        try:
            result = await job.func()
        except Exception as e:
            # A failing run never stops the loop
            job.failure_count += 1
            job.last_error = str(e)
            job.last_duration = round(time.time() - started, 3)
            logger.exception(f"Job failed: {job.name}")
            return {"job": job.name, "success": False, "error": str(e), "duration": job.last_duration}

        job.last_error = None
        job.last_duration = round(time.time() - started, 3)
        logger.info(f"Completed job: {job.name} in {job.last_duration:.3f}s")
        return {"job": job.name, "success": True, "result": result, "duration": job.last_duration}

    async def run_job(self, name: str) -> Dict[str, Any]:
        job = self.jobs.get(name)
        if job is None:
            raise NotFoundError("Job", name)
        return await self._execute(job)

    def status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "is_running": self.is_running,
            "jobs": [job.to_dict() for job in self.jobs.values()],
        }


def build_attendance_scheduler(engine, settings) -> WorkflowScheduler:
    """Scheduler with the four attendance jobs bound to ``engine``."""
    scheduler = WorkflowScheduler()
    scheduler.add_job("daily-check", settings.attendance_daily_check_cron, engine.run_daily_check)
    scheduler.add_job("hourly-missing", settings.missing_attendance_cron, engine.check_missing_attendance)
    scheduler.add_job("weekly-trends", settings.trend_analysis_cron, engine.analyze_trends)
    scheduler.add_job("alert-processing", settings.alert_processing_cron, engine.process_alerts)
    return scheduler
