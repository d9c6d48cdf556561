"""
Unit tests for the idempotency guard
"""

import asyncio

import pytest
from pydantic import BaseModel

from economy.core.errors import (
    DuplicateRequest,
    InsufficientFunds,
    OperationTimeout,
    StorageUnavailable,
)
from economy.services.idempotency import IdempotencyGuard
from tests.fixtures.redis import FailingRedisClient, MockRedisClient


class Outcome(BaseModel):
    value: int


@pytest.fixture
def redis_client():
    return MockRedisClient()


@pytest.fixture
def guard(redis_client):
    return IdempotencyGuard(redis_client, ttl_seconds=60, lock_seconds=5, poll_interval_ms=5, wait_timeout_seconds=2)


class TestIdempotencyGuard:
    """First caller runs the operation, everyone else replays its result"""

    async def test_first_call_runs_and_stores(self, guard, redis_client):
        result = await guard.run("gift:alice", "k1", lambda: _value(7), Outcome)

        assert result == Outcome(value=7)
        assert await redis_client.get("idempotency:gift:alice:k1:result") is not None
        assert await redis_client.get("idempotency:gift:alice:k1:lock") is None

    async def test_repeat_replays_stored_result(self, guard):
        calls = []

        async def op():
            calls.append(1)
            return Outcome(value=len(calls))

        first = await guard.run("gift:alice", "k1", op, Outcome)
        with pytest.raises(DuplicateRequest) as exc_info:
            await guard.run("gift:alice", "k1", op, Outcome)

        assert exc_info.value.result == first
        assert len(calls) == 1

    async def test_scopes_are_independent(self, guard):
        await guard.run("gift:alice", "k1", lambda: _value(1), Outcome)
        result = await guard.run("gift:bob", "k1", lambda: _value(2), Outcome)

        assert result.value == 2

    async def test_concurrent_callers_run_once(self, guard):
        calls = []

        async def op():
            calls.append(1)
            await asyncio.sleep(0.05)
            return Outcome(value=42)

        results = await asyncio.gather(
            *[guard.run("gift:alice", "same", op, Outcome) for _ in range(5)],
            return_exceptions=True
        )

        assert len(calls) == 1
        winners = [r for r in results if isinstance(r, Outcome)]
        replays = [r for r in results if isinstance(r, DuplicateRequest)]
        assert len(winners) == 1
        assert len(replays) == 4
        assert all(r.result == Outcome(value=42) for r in replays)

    async def test_failure_is_not_stored_and_releases_lock(self, guard, redis_client):
        async def failing():
            raise InsufficientFunds(available=10, required=60)

        with pytest.raises(InsufficientFunds):
            await guard.run("gift:alice", "k1", failing, Outcome)

        assert await redis_client.get("idempotency:gift:alice:k1:result") is None
        assert await redis_client.get("idempotency:gift:alice:k1:lock") is None

        # A retry with the same key runs again
        result = await guard.run("gift:alice", "k1", lambda: _value(3), Outcome)
        assert result.value == 3

    async def test_lookup_hit_replays_without_running(self, guard, redis_client):
        async def lookup(key):
            return Outcome(value=99)

        async def op():
            raise AssertionError("operation must not run")

        with pytest.raises(DuplicateRequest) as exc_info:
            await guard.run("gift:alice", "k1", op, Outcome, lookup=lookup)

        assert exc_info.value.result.value == 99
        # The durable result is now cached as well
        assert await redis_client.get("idempotency:gift:alice:k1:result") is not None

    async def test_waiter_times_out_on_stuck_holder(self, redis_client):
        guard = IdempotencyGuard(redis_client, lock_seconds=30, poll_interval_ms=5, wait_timeout_seconds=0.05)
        await redis_client.set("idempotency:gift:alice:k1:lock", "someone-else", ex=30)

        with pytest.raises(OperationTimeout):
            await guard.run("gift:alice", "k1", lambda: _value(1), Outcome)

    async def test_waiter_takes_over_released_lock(self, guard, redis_client):
        await redis_client.set("idempotency:gift:alice:k1:lock", "crashed", ex=30)

        async def release_later():
            await asyncio.sleep(0.02)
            await redis_client.delete("idempotency:gift:alice:k1:lock")

        releaser = asyncio.create_task(release_later())
        result = await guard.run("gift:alice", "k1", lambda: _value(5), Outcome)
        await releaser

        assert result.value == 5

    async def test_redis_down_is_storage_unavailable(self):
        guard = IdempotencyGuard(FailingRedisClient(failing=("get", "set")))

        with pytest.raises(StorageUnavailable):
            await guard.run("gift:alice", "k1", lambda: _value(1), Outcome)


async def _value(value: int) -> Outcome:
    return Outcome(value=value)
