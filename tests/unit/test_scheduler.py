"""
Unit tests for the in-process sweep scheduler
"""

import asyncio

import pytest

from economy.core.errors import ValidationError
from economy.schemas.results import SweepReport
from economy.services.scheduler import SweepScheduler


class FakeSweeper:
    """Records run_job calls; optionally blocks until released"""

    def __init__(self, clock, fail: bool = False):
        self.clock = clock
        self.calls = []
        self.gate = None
        self.fail = fail

    async def run_job(self, job, now=None):
        self.calls.append(job)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise RuntimeError("sweep crashed")
        return SweepReport(job=job, counts={"expired_vips": 1}, started_at=self.clock(), finished_at=self.clock())


@pytest.fixture
def sweeper(clock):
    return FakeSweeper(clock)


@pytest.fixture
async def scheduler(sweeper):
    scheduler = SweepScheduler(sweeper, intervals={"fast": 0.01, "hourly": 3600, "daily": 86400})
    yield scheduler
    await scheduler.shutdown()


class TestSweepScheduler:

    async def test_list_describes_jobs(self, scheduler):
        jobs = {job["name"]: job for job in scheduler.list()}

        assert set(jobs) == {"fast", "hourly", "daily"}
        assert jobs["fast"]["tasks"] == ["stale_presence"]
        assert "expired_verifications" in jobs["hourly"]["tasks"]
        assert "soft_deleted_messages" in jobs["daily"]["tasks"]
        assert not any(job["running"] for job in jobs.values())

    async def test_start_and_stop(self, scheduler):
        assert scheduler.start("hourly") is True
        assert scheduler.start("hourly") is False
        assert scheduler.is_running("hourly")

        assert scheduler.stop("hourly") is True
        assert scheduler.stop("hourly") is False
        await asyncio.sleep(0)
        assert not scheduler.is_running("hourly")

    async def test_unknown_job_rejected(self, scheduler):
        with pytest.raises(ValidationError):
            scheduler.start("weekly")
        with pytest.raises(ValidationError):
            await scheduler.run_now("weekly")

    async def test_timer_runs_job(self, scheduler, sweeper):
        scheduler.start("fast")
        await asyncio.sleep(0.05)
        scheduler.stop("fast")

        assert "fast" in sweeper.calls
        job = next(job for job in scheduler.list() if job["name"] == "fast")
        assert job["last_counts"] == {"expired_vips": 1}

    async def test_run_now_skips_when_in_flight(self, scheduler, sweeper):
        sweeper.gate = asyncio.Event()
        first = asyncio.create_task(scheduler.run_now("hourly"))
        await asyncio.sleep(0)

        skipped = await scheduler.run_now("hourly")
        assert skipped.skipped is True

        sweeper.gate.set()
        report = await first
        assert report.skipped is False
        assert sweeper.calls == ["hourly"]

    async def test_trigger_cleanup_runs_manual_job(self, scheduler, sweeper):
        report = await scheduler.trigger_cleanup()

        assert report.job == "manual"
        assert sweeper.calls == ["manual"]

    async def test_crashing_job_keeps_timer_alive(self, clock):
        sweeper = FakeSweeper(clock, fail=True)
        scheduler = SweepScheduler(sweeper, intervals={"fast": 0.01})
        try:
            scheduler.start("fast")
            await asyncio.sleep(0.05)

            assert len(sweeper.calls) >= 2
            assert scheduler.is_running("fast")
        finally:
            await scheduler.shutdown()
