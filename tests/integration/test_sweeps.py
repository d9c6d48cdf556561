"""
Integration tests for the expiry sweeps
"""

import asyncio
from datetime import timedelta

import pytest

from economy.core.clock import epoch_millis
from economy.core.errors import ValidationError
from economy.models.grant import Grant
from economy.models.housekeeping import AgentRequest, Message, Notification, RefreshToken
from economy.models.room import RoomMember
from economy.services.expiry import HOURLY_TASKS, ONLINE_USERS_KEY, presence_key
from tests.fixtures.database import add_rows, count_rows, create_test_room, get_grant_row


@pytest.fixture
async def due_rows(session_factory, clock):
    """
    One row that is due and one that is not, for every sweep task.

    Counts expected from a sweep at ``clock()``: 1 per task, except
    notifications (2: one read, one unread).
    """
    now = clock()
    room = await create_test_room(session_factory, owner_id="owner")
    await add_rows(session_factory, [
        Grant(user_id="u-expired", kind="VERIFICATION", type="BLUE", status="ACTIVE", expires_at=now - timedelta(minutes=1)),
        Grant(user_id="u-valid", kind="VERIFICATION", type="BLUE", status="ACTIVE", expires_at=now + timedelta(days=3)),
        Grant(user_id="u-expired", kind="VIP", type="vip_weekly", status="ACTIVE", expires_at=now - timedelta(days=1)),
        Grant(user_id="u-valid", kind="VIP", type="vip_weekly", status="ACTIVE", expires_at=now),

        RoomMember(room_id=room.id, user_id="banned-past", is_banned=True, banned_until=now - timedelta(hours=1)),
        RoomMember(room_id=room.id, user_id="banned-future", is_banned=True, banned_until=now + timedelta(hours=1)),
        RoomMember(room_id=room.id, user_id="muted-past", is_muted=True, muted_until=now - timedelta(hours=1)),
        RoomMember(room_id=room.id, user_id="muted-future", is_muted=True, muted_until=now + timedelta(hours=1)),

        AgentRequest(user_id="agent-late", status="PENDING", expires_at=now - timedelta(days=1)),
        AgentRequest(user_id="agent-open", status="PENDING", expires_at=now + timedelta(days=1)),
        AgentRequest(user_id="agent-done", status="APPROVED", expires_at=now - timedelta(days=1)),

        RefreshToken(user_id="u1", token_hash="expired", expires_at=now - timedelta(seconds=1)),
        RefreshToken(user_id="u1", token_hash="revoked-old", expires_at=now + timedelta(days=20), revoked_at=now - timedelta(days=8)),
        RefreshToken(user_id="u1", token_hash="revoked-recent", expires_at=now + timedelta(days=20), revoked_at=now - timedelta(days=1)),
        RefreshToken(user_id="u1", token_hash="live", expires_at=now + timedelta(days=20)),

        Notification(user_id="u1", title="read old", is_read=True, created_at=now - timedelta(days=31)),
        Notification(user_id="u1", title="read recent", is_read=True, created_at=now - timedelta(days=5)),
        Notification(user_id="u1", title="unread 60d", is_read=False, created_at=now - timedelta(days=60)),
        Notification(user_id="u1", title="unread 91d", is_read=False, created_at=now - timedelta(days=91)),

        Message(room_id=room.id, sender_id="u1", content="gone", is_deleted=True, deleted_at=now - timedelta(days=31)),
        Message(room_id=room.id, sender_id="u1", content="recently gone", is_deleted=True, deleted_at=now - timedelta(days=2)),
        Message(room_id=room.id, sender_id="u1", content="kept", created_at=now - timedelta(days=365)),
    ])
    return now


@pytest.fixture
async def presence(redis_helper, clock):
    now_ms = epoch_millis(clock())
    await redis_helper.mark_online("fresh", now_ms - 60 * 1000)
    await redis_helper.mark_online("stale", now_ms - 10 * 60 * 1000)
    await redis_helper.mark_online("ghost", None)


@pytest.mark.integration
class TestSweepJobs:

    async def test_hourly_job(self, services, session_factory, due_rows):
        report = await services.sweeper.run_job("hourly", due_rows)

        assert report.errors == {}
        assert report.counts == {
            "expired_tokens": 2,
            "old_notifications": 2,
            "expired_bans": 1,
            "expired_mutes": 1,
            "expired_agent_requests": 1,
            "expired_verifications": 1,
            "expired_vips": 1,
        }

        assert (await get_grant_row(session_factory, "u-expired", "VERIFICATION")).status == "EXPIRED"
        assert (await get_grant_row(session_factory, "u-valid", "VERIFICATION")).status == "ACTIVE"
        assert (await get_grant_row(session_factory, "u-expired", "VIP")).status == "EXPIRED"
        # expires_at == now is not yet expired
        assert (await get_grant_row(session_factory, "u-valid", "VIP")).status == "ACTIVE"

        assert await count_rows(session_factory, RoomMember, RoomMember.is_banned.is_(True)) == 1
        assert await count_rows(session_factory, RoomMember, RoomMember.is_muted.is_(True)) == 1
        assert await count_rows(session_factory, AgentRequest, AgentRequest.status == "REJECTED") == 1
        assert await count_rows(session_factory, RefreshToken) == 2
        assert await count_rows(session_factory, Notification) == 2
        # Messages are only purged by the daily job
        assert await count_rows(session_factory, Message) == 3

    async def test_rejected_agent_request_gets_reason(self, services, session_factory, due_rows):
        await services.sweeper.run_job("hourly", due_rows)

        async with session_factory() as session:
            request = (await session.execute(
                AgentRequest.__table__.select().where(AgentRequest.user_id == "agent-late")
            )).one()
        assert request.status == "REJECTED"
        assert request.rejection_reason == "Request expired before review"
        assert request.reviewed_at is not None

    async def test_daily_job_purges_messages(self, services, session_factory, due_rows):
        report = await services.sweeper.run_job("daily", due_rows)

        assert report.counts["soft_deleted_messages"] == 1
        assert await count_rows(session_factory, Message) == 2

    async def test_fast_job_clears_stale_presence(self, services, mock_redis, presence):
        report = await services.sweeper.run_job("fast")

        assert report.counts == {"stale_presence": 2}
        assert await mock_redis.smembers(ONLINE_USERS_KEY) == {"fresh"}
        assert await mock_redis.get(presence_key("stale")) is None
        assert await mock_redis.get(presence_key("fresh")) is not None

    async def test_sweeps_are_idempotent(self, services, due_rows, presence):
        first = await services.sweeper.run_job("manual", due_rows)
        second = await services.sweeper.run_job("manual", due_rows)

        assert first.total > 0
        assert second.total == 0
        assert second.errors == {}

    async def test_failing_task_is_isolated(self, services, session_factory, due_rows):
        async def broken(now):
            raise RuntimeError("ban table unavailable")

        services.sweeper.tasks["expired_bans"] = broken
        report = await services.sweeper.run_job("hourly", due_rows)

        assert report.errors == {"expired_bans": "ban table unavailable"}
        assert "expired_bans" not in report.counts
        assert report.counts["expired_verifications"] == 1
        assert (await get_grant_row(session_factory, "u-expired", "VERIFICATION")).status == "EXPIRED"

    async def test_unknown_job(self, services):
        with pytest.raises(ValidationError):
            await services.sweeper.run_job("weekly")

    async def test_expired_grants_publish_events(self, services, redis_helper, due_rows):
        await services.sweeper.run_job("hourly", due_rows)

        assert [e["subject_id"] for e in redis_helper.events("verification:expired")] == ["u-expired"]
        assert [e["subject_id"] for e in redis_helper.events("vip:expired")] == ["u-expired"]


@pytest.mark.integration
class TestCleanupTrigger:

    async def test_preview_matches_trigger(self, services, due_rows, presence):
        preview = await services.sweeper.preview()

        report = await services.sweeper.trigger_cleanup()

        assert report.job == "manual"
        assert report.counts == preview
        assert report.counts["soft_deleted_messages"] == 1
        assert report.counts["stale_presence"] == 2

    async def test_preview_changes_nothing(self, services, session_factory, due_rows):
        await services.sweeper.preview()
        await services.sweeper.preview()

        assert await count_rows(session_factory, RefreshToken) == 4
        assert (await get_grant_row(session_factory, "u-expired", "VIP")).status == "ACTIVE"

    async def test_shared_task_never_overlaps_itself(self, services, due_rows):
        release_bans = services.sweeper.tasks["expired_bans"]
        running = []
        peak = []

        async def slow_bans(now):
            running.append(now)
            peak.append(len(running))
            try:
                await asyncio.sleep(0.2)
                return await release_bans(now)
            finally:
                running.pop()

        services.sweeper.tasks["expired_bans"] = slow_bans
        hourly, manual = await asyncio.gather(
            services.scheduler.run_now("hourly"),
            services.scheduler.trigger_cleanup(),
        )

        assert max(peak) == 1
        assert hourly.skipped_tasks == []
        assert hourly.counts["expired_bans"] == 1
        assert manual.skipped_tasks == list(HOURLY_TASKS)
        assert set(manual.counts) == {"stale_presence", "soft_deleted_messages"}

    async def test_task_runs_again_once_released(self, services, due_rows):
        await services.sweeper.run_job("hourly", due_rows)

        report = await services.sweeper.run_job("daily", due_rows)

        assert report.skipped_tasks == []
        assert report.counts["expired_bans"] == 0

    async def test_scheduler_run_now_records_report(self, services, due_rows):
        report = await services.scheduler.run_now("hourly")

        assert report.counts["expired_verifications"] == 1
        job = next(job for job in services.scheduler.list() if job["name"] == "hourly")
        assert job["last_counts"] == report.counts
