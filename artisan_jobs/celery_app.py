from __future__ import annotations

from celery import Celery

from artisan_jobs.config import settings

celery_app = Celery(
    "artisan_directory",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["artisan_jobs.tasks"],
)

celery_app.conf.timezone = settings.timezone
celery_app.conf.broker_connection_retry_on_startup = True
celery_app.conf.task_serializer = "json"
celery_app.conf.result_serializer = "json"
