from celery import Celery

from collab.core.config import get_settings
from collab.core.logger import setup_logging

settings = get_settings()
setup_logging(settings.log_level)

celery_app = Celery(
    "collab_worker",
    broker=settings.redis_url,
    backend=settings.redis_url,  # Required for task status/result retrieval
    include=["worker.tasks"],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes max per task
    worker_prefetch_multiplier=1,  # Fair task distribution
    beat_schedule={
        "cleanup-failed-session-deletions": {
            "task": "worker.tasks.cleanup_failed_deletions_task",
            "schedule": float(settings.cleanup_interval_seconds),
        },
    },
)
