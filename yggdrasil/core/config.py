# yggdrasil/core/config.py
"""Application configuration using Pydantic."""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    database_url: str
    redis_url: str = 'redis://localhost:6379/0'

    app_version: str = '1.0.0'
    environment: str = 'development'
    log_level: str = 'info'
    allowed_origins: List[str] = ['*']
    auto_create_tables: bool = True

    # Attendance workflow scheduling
    workflows_enabled: bool = True
    workflow_timezone: str = 'UTC'
    attendance_daily_check_cron: str = '0 8 * * *'
    missing_attendance_cron: str = '0 * * * *'
    trend_analysis_cron: str = '0 10 * * 0'
    alert_processing_cron: str = '*/15 * * * *'

    # Attendance rule thresholds
    low_attendance_threshold: float = 75
    consecutive_absence_limit: int = 3
    consecutive_absence_lookback: int = 10
    missing_attendance_hours: int = 24
    trend_analysis_period_days: int = 14
    notification_outbox_size: int = 1000

    # Calendar
    conflict_blocking_event_types: List[str] = ['meeting']
    recurrence_horizon_days: int = 365
    recurrence_max_occurrences: int = 500

    model_config = {
        'env_file': '.env',
        'extra': 'ignore'
    }


settings = Settings()
