# celery -A celery_worker worker --beat --loglevel=info
from yggdrasil.core.celery_app import celery_app
from yggdrasil.core.logging import setup_logging
from yggdrasil.core.config import settings

setup_logging(settings.log_level)

__all__ = ["celery_app"]
