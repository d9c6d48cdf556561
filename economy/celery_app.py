"""
Celery application for the sweep workers and beat
"""

from celery import Celery
from economy.core.config import settings

celery = Celery(
    "economy",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["economy.tasks.sweeps", "economy.tasks.scheduler"]
)

celery.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # A sweep must finish before its Redis lock expires
    task_soft_time_limit=int(settings.sweep_lock_seconds * 0.9),
    task_time_limit=settings.sweep_lock_seconds,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    result_expires=3600,
    task_routes={
        "economy.tasks.sweeps.run_sweep_job": {"queue": "sweeps"},
    },
)
