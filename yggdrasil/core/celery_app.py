from celery import Celery
from celery.schedules import crontab

from .config import settings

# Celery configuration
celery_app = Celery(
    "yggdrasil",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["yggdrasil.tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.workflow_timezone,
    enable_utc=True,
)


def parse_cron(expression: str) -> crontab:
    """Five-field cron expression (minute hour day month weekday) as a Celery schedule."""
    fields = expression.split()
    if len(fields) != 5:
        raise ValueError(f"Cron expression must have 5 fields, got {len(fields)}: {expression!r}")
    minute, hour, day_of_month, month_of_year, day_of_week = fields
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        day_of_week=day_of_week,
        app=celery_app,
    )


# Same cadence as the in-process scheduler, for deployments that run beat instead
celery_app.conf.beat_schedule = {
    "attendance-daily-check": {
        "task": "yggdrasil.tasks.run_daily_attendance_check",
        "schedule": parse_cron(settings.attendance_daily_check_cron),
    },
    "attendance-hourly-missing": {
        "task": "yggdrasil.tasks.check_missing_attendance",
        "schedule": parse_cron(settings.missing_attendance_cron),
    },
    "attendance-weekly-trends": {
        "task": "yggdrasil.tasks.analyze_attendance_trends",
        "schedule": parse_cron(settings.trend_analysis_cron),
    },
    "attendance-alert-processing": {
        "task": "yggdrasil.tasks.process_attendance_alerts",
        "schedule": parse_cron(settings.alert_processing_cron),
    },
}
