"""
Expiry sweeper - reconciles every piece of state with a natural expiry
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Iterable, Optional, Set, Tuple

from sqlalchemy.ext.asyncio import async_sessionmaker

from economy.core.clock import Clock, epoch_millis, utcnow
from economy.core.config import settings
from economy.core.errors import ValidationError
from economy.core.metrics import SWEEP_FAILURES, SWEEP_ROWS
from economy.models.enums import GrantKind
from economy.repos import grant_repo, housekeeping_repo
from economy.schemas.results import SweepReport
from economy.services.grants import GrantLifecycle

# Configure logging
logger = logging.getLogger(__name__)

ONLINE_USERS_KEY = "online:users"
AGENT_REQUEST_EXPIRED_REASON = "Request expired before review"

FAST_TASKS: Tuple[str, ...] = ("stale_presence",)
HOURLY_TASKS: Tuple[str, ...] = (
    "expired_tokens",
    "old_notifications",
    "expired_bans",
    "expired_mutes",
    "expired_agent_requests",
    "expired_verifications",
    "expired_vips",
)
DAILY_TASKS: Tuple[str, ...] = HOURLY_TASKS + ("soft_deleted_messages",)
ALL_TASKS: Tuple[str, ...] = FAST_TASKS + DAILY_TASKS

JOBS: Dict[str, Tuple[str, ...]] = {
    "fast": FAST_TASKS,
    "hourly": HOURLY_TASKS,
    "daily": DAILY_TASKS,
    "manual": ALL_TASKS,
}


def presence_key(user_id: str) -> str:
    return f"presence:{user_id}:lastSeen"


class ExpirySweeper:
    """
    Runs named sweep tasks; every task is idempotent and uses its own session.

    A job fans its tasks out concurrently and collects per-task counts. A
    failing task is logged and reported without affecting its siblings.
    Jobs share tasks, but a task never overlaps with itself: while it runs
    for one job, other jobs skip it and list it under ``skipped_tasks``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        grants: GrantLifecycle,
        redis_client,
        clock: Clock = utcnow
    ):
        self.session_factory = session_factory
        self.grants = grants
        self.redis = redis_client
        self.clock = clock
        self.tasks: Dict[str, Callable[[datetime], Awaitable[int]]] = {
            "stale_presence": self.sweep_stale_presence,
            "expired_tokens": self.sweep_expired_tokens,
            "old_notifications": self.sweep_old_notifications,
            "expired_bans": self.sweep_expired_bans,
            "expired_mutes": self.sweep_expired_mutes,
            "expired_agent_requests": self.sweep_expired_agent_requests,
            "expired_verifications": self.sweep_expired_verifications,
            "expired_vips": self.sweep_expired_vips,
            "soft_deleted_messages": self.sweep_soft_deleted_messages,
        }
        self._running: Set[str] = set()

    # Jobs

    async def run_job(
        self,
        job: str,
        now: Optional[datetime] = None,
        skip: Iterable[str] = ()
    ) -> SweepReport:
        """
        Run every task of a job against the same ``now``.

        Args:
            job: fast, hourly, daily or manual
            now: Reference time (defaults to the clock)
            skip: Tasks held by another worker, reported as skipped

        Returns:
            SweepReport with per-task counts and errors
        """
        if job not in JOBS:
            raise ValidationError(f"Unknown sweep job: {job}")
        now = now or self.clock()
        report = SweepReport(job=job, started_at=self.clock())

        # Jobs share tasks; a task still running for another job is skipped here
        busy = self._running.union(skip)
        report.skipped_tasks = [name for name in JOBS[job] if name in busy]
        task_names = [name for name in JOBS[job] if name not in busy]
        if report.skipped_tasks:
            logger.info(f"Sweep job {job} skipping tasks still running: {', '.join(report.skipped_tasks)}")

        self._running.update(task_names)
        try:
            outcomes = await asyncio.gather(
                *(self.tasks[name](now) for name in task_names),
                return_exceptions=True
            )
        finally:
            self._running.difference_update(task_names)
        for name, outcome in zip(task_names, outcomes):
            if isinstance(outcome, Exception):
                SWEEP_FAILURES.labels(task=name).inc()
                logger.error(f"Sweep task {name} failed: {outcome}", exc_info=outcome)
                report.errors[name] = str(outcome) or outcome.__class__.__name__
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                SWEEP_ROWS.labels(task=name).inc(outcome)
                report.counts[name] = outcome

        report.finished_at = self.clock()
        logger.info(
            f"Sweep job {job} reconciled {report.total} rows"
            + (f", {len(report.errors)} task(s) failed" if report.errors else "")
        )
        return report

    async def trigger_cleanup(self, now: Optional[datetime] = None) -> SweepReport:
        """Run every sweep task immediately."""
        return await self.run_job("manual", now)

    async def preview(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Count what a full sweep would reconcile, without changing anything."""
        now = now or self.clock()
        async with self.session_factory() as session:
            counts = await housekeeping_repo.count_due_rows(session, now=now, **self._cutoffs(now))
            counts["expired_verifications"] = len(
                await grant_repo.get_due_grants(session, GrantKind.VERIFICATION.value, now)
            )
            counts["expired_vips"] = len(await grant_repo.get_due_grants(session, GrantKind.VIP.value, now))
        counts["stale_presence"] = len(await self._stale_users(now))
        return counts

    # Tasks

    async def sweep_stale_presence(self, now: datetime) -> int:
        stale = await self._stale_users(now)
        for user_id in stale:
            await self.redis.srem(ONLINE_USERS_KEY, user_id)
            await self.redis.delete(presence_key(user_id))
        return len(stale)

    async def sweep_expired_tokens(self, now: datetime) -> int:
        cutoffs = self._cutoffs(now)
        return await self._in_transaction(
            housekeeping_repo.delete_expired_refresh_tokens, now, cutoffs["revoked_before"]
        )

    async def sweep_old_notifications(self, now: datetime) -> int:
        cutoffs = self._cutoffs(now)
        return await self._in_transaction(
            housekeeping_repo.delete_old_notifications, cutoffs["read_before"], cutoffs["unread_before"]
        )

    async def sweep_expired_bans(self, now: datetime) -> int:
        return await self._in_transaction(housekeeping_repo.release_expired_bans, now)

    async def sweep_expired_mutes(self, now: datetime) -> int:
        return await self._in_transaction(housekeeping_repo.release_expired_mutes, now)

    async def sweep_expired_agent_requests(self, now: datetime) -> int:
        return await self._in_transaction(
            housekeeping_repo.reject_expired_agent_requests, now, AGENT_REQUEST_EXPIRED_REASON
        )

    async def sweep_expired_verifications(self, now: datetime) -> int:
        return await self.grants.expire_due(GrantKind.VERIFICATION, now)

    async def sweep_expired_vips(self, now: datetime) -> int:
        return await self.grants.expire_due(GrantKind.VIP, now)

    async def sweep_soft_deleted_messages(self, now: datetime) -> int:
        return await self._in_transaction(
            housekeeping_repo.purge_soft_deleted_messages, self._cutoffs(now)["deleted_before"]
        )

    # Helpers

    def _cutoffs(self, now: datetime) -> Dict[str, datetime]:
        return {
            "revoked_before": now - timedelta(days=settings.revoked_token_retention_days),
            "read_before": now - timedelta(days=settings.read_notification_retention_days),
            "unread_before": now - timedelta(days=settings.unread_notification_retention_days),
            "deleted_before": now - timedelta(days=settings.message_retention_days),
        }

    async def _in_transaction(self, fn, *args) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                return await fn(session, *args)

    async def _stale_users(self, now: datetime) -> list:
        cutoff = epoch_millis(now) - settings.presence_stale_seconds * 1000
        stale = []
        for user_id in await self.redis.smembers(ONLINE_USERS_KEY):
            last_seen = await self.redis.get(presence_key(user_id))
            if last_seen is None or int(last_seen) < cutoff:
                stale.append(user_id)
        return stale
