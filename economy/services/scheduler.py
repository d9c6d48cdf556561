"""
In-process sweep scheduler - timers for the expiry jobs with start/stop controls
"""

import asyncio
import logging
from typing import Dict, List, Optional

from economy.core.config import settings
from economy.core.errors import ValidationError
from economy.schemas.results import SweepReport
from economy.services.expiry import JOBS, ExpirySweeper

# Configure logging
logger = logging.getLogger(__name__)


def default_intervals() -> Dict[str, float]:
    return {
        "fast": settings.sweep_fast_interval_seconds,
        "hourly": settings.sweep_hourly_interval_seconds,
        "daily": settings.sweep_daily_interval_seconds,
    }


class SweepScheduler:
    """
    Owns the timers of the periodic sweep jobs.

    Built once at startup and passed by reference. A job never overlaps with
    itself: a tick or manual run arriving while it is in flight is skipped.
    """

    def __init__(self, sweeper: ExpirySweeper, intervals: Optional[Dict[str, float]] = None):
        self.sweeper = sweeper
        self.intervals = intervals or default_intervals()
        self._timers: Dict[str, asyncio.Task] = {}
        self._in_flight: set = set()
        self._last_reports: Dict[str, SweepReport] = {}

    def _check_job(self, name: str) -> None:
        if name not in self.intervals:
            raise ValidationError(f"Unknown scheduled job: {name}")

    def list(self) -> List[dict]:
        """Describe every scheduled job."""
        jobs = []
        for name, interval in self.intervals.items():
            report = self._last_reports.get(name)
            jobs.append({
                "name": name,
                "interval_seconds": interval,
                "tasks": list(JOBS[name]),
                "running": self.is_running(name),
                "in_flight": name in self._in_flight,
                "last_run_at": report.finished_at.isoformat() if report and report.finished_at else None,
                "last_counts": report.counts if report else None,
                "last_errors": report.errors if report else None,
            })
        return jobs

    def is_running(self, name: str) -> bool:
        timer = self._timers.get(name)
        return timer is not None and not timer.done()

    def start(self, name: str) -> bool:
        """Start a job's timer; returns False if it was already running."""
        self._check_job(name)
        if self.is_running(name):
            return False
        self._timers[name] = asyncio.create_task(self._loop(name), name=f"sweep:{name}")
        logger.info(f"Started sweep job {name} every {self.intervals[name]}s")
        return True

    def stop(self, name: str) -> bool:
        """Stop a job's timer; returns False if it was not running."""
        self._check_job(name)
        timer = self._timers.pop(name, None)
        if timer is None or timer.done():
            return False
        timer.cancel()
        logger.info(f"Stopped sweep job {name}")
        return True

    def start_all(self) -> None:
        for name in self.intervals:
            self.start(name)

    async def shutdown(self) -> None:
        timers = list(self._timers.values())
        self._timers.clear()
        for timer in timers:
            timer.cancel()
        await asyncio.gather(*timers, return_exceptions=True)

    async def run_now(self, name: str) -> SweepReport:
        """Run a job immediately, unless it is already in flight."""
        if name not in JOBS:
            raise ValidationError(f"Unknown sweep job: {name}")
        return await self._execute(name)

    async def trigger_cleanup(self) -> SweepReport:
        return await self._execute("manual")

    async def _execute(self, name: str) -> SweepReport:
        if name in self._in_flight:
            logger.info(f"Sweep job {name} still running, skipping")
            return SweepReport(job=name, started_at=self.sweeper.clock(), skipped=True)
        self._in_flight.add(name)
        try:
            report = await self.sweeper.run_job(name)
        finally:
            self._in_flight.discard(name)
        self._last_reports[name] = report
        return report

    async def _loop(self, name: str) -> None:
        interval = self.intervals[name]
        while True:
            await asyncio.sleep(interval)
            try:
                await self._execute(name)
            except Exception:
                logger.exception(f"Sweep job {name} crashed")
