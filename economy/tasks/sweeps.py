"""
Celery tasks running the expiry sweep jobs on workers
"""

import asyncio
import logging
import uuid
from typing import Any, Dict

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from economy.celery_app import celery
from economy.core.config import settings
from economy.db.session import create_engine_for_url
from economy.services.container import build_services
from economy.services.expiry import JOBS

logger = logging.getLogger(__name__)


def sweep_lock_key(job: str) -> str:
    return f"sweep:lock:{job}"


def sweep_task_lock_key(task: str) -> str:
    return f"sweep:lock:task:{task}"


async def run_job_once(job: str, session_factory, redis_client) -> Dict[str, Any]:
    """
    Run a sweep job unless another worker holds its lock.

    Tasks shared with a job running on another worker are held by per-task
    locks; those are skipped and listed under ``skipped_tasks``.

    Args:
        job: Sweep job name
        session_factory: Async session factory
        redis_client: Redis client holding the cross-worker locks

    Returns:
        The sweep report as a dict (``skipped`` set when the lock was taken)
    """
    lock_key = sweep_lock_key(job)
    token = uuid.uuid4().hex
    if not await redis_client.set(lock_key, token, nx=True, ex=settings.sweep_lock_seconds):
        logger.info(f"Sweep job {job} already running on another worker, skipping")
        return {"job": job, "skipped": True}

    held = []
    try:
        for task in JOBS.get(job, ()):
            if await redis_client.set(sweep_task_lock_key(task), token, nx=True, ex=settings.sweep_lock_seconds):
                held.append(task)
        services = build_services(session_factory, redis_client)
        report = await services.sweeper.run_job(
            job, skip=[task for task in JOBS.get(job, ()) if task not in held]
        )
        return report.model_dump(mode="json")
    finally:
        for key in [sweep_task_lock_key(task) for task in held] + [lock_key]:
            if await redis_client.get(key) == token:
                await redis_client.delete(key)


@celery.task(bind=True, max_retries=3, default_retry_delay=60)
def run_sweep_job(self, job: str):
    """
    Run one expiry sweep job (fast, hourly, daily or manual).

    Args:
        job: Sweep job name
    """
    try:
        logger.info(f"Starting sweep job {job}")

        async def _process():
            # Fresh engine and client per run; both are bound to this event loop
            engine = create_engine_for_url(settings.database_url)
            redis_client = redis.from_url(settings.redis_url, decode_responses=True)
            try:
                session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
                return await run_job_once(job, session_factory, redis_client)
            finally:
                await redis_client.aclose()
                await engine.dispose()

        return asyncio.run(_process())

    except Exception as exc:
        logger.error(f"Error running sweep job {job}: {exc}")
        if self.request.retries < self.max_retries:
            raise self.retry(exc=exc, countdown=60 * (2 ** self.request.retries))
        raise
