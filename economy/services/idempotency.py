"""
Idempotency guard - first writer wins, later callers replay the stored result
"""

import asyncio
import json
import logging
import uuid
from typing import Awaitable, Callable, Optional, Type, TypeVar

from pydantic import BaseModel
from redis.exceptions import RedisError

from economy.core.config import settings
from economy.core.errors import DuplicateRequest, OperationTimeout, StorageUnavailable

# Configure logging
logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)


class IdempotencyGuard:
    """
    Serialise requests carrying the same idempotency key.

    A Redis ``SET NX EX`` lock elects one caller to run the operation; its
    result is stored for ``ttl_seconds`` and every later or concurrent caller
    receives ``DuplicateRequest`` carrying that result. Failed operations are
    not stored, so a retry with the same key runs again.
    """

    def __init__(
        self,
        redis_client,
        ttl_seconds: int = settings.idempotency_ttl_seconds,
        lock_seconds: int = settings.idempotency_lock_seconds,
        poll_interval_ms: int = settings.idempotency_poll_interval_ms,
        wait_timeout_seconds: float = settings.idempotency_wait_timeout_seconds
    ):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.lock_seconds = lock_seconds
        self.poll_interval = poll_interval_ms / 1000.0
        self.wait_timeout_seconds = wait_timeout_seconds

    async def run(
        self,
        scope: str,
        key: str,
        fn: Callable[[], Awaitable[R]],
        result_type: Type[R],
        lookup: Optional[Callable[[str], Awaitable[Optional[R]]]] = None
    ) -> R:
        """
        Run ``fn`` at most once per (scope, key).

        Args:
            scope: Namespace of the key (operation and owning user)
            key: Client supplied idempotency key
            fn: Operation to run
            result_type: Pydantic model of the result, used to decode replays
            lookup: Durable lookup of an earlier result for the key

        Returns:
            The result of ``fn`` for the caller that ran it

        Raises:
            DuplicateRequest: the key was already processed; carries the result
            OperationTimeout: a concurrent holder of the key did not finish in time
            StorageUnavailable: Redis could not be reached
        """
        base = f"idempotency:{scope}:{key}"
        result_key = f"{base}:result"
        lock_key = f"{base}:lock"
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait_timeout_seconds

        try:
            while True:
                await self._raise_if_stored(result_key, result_type)

                token = uuid.uuid4().hex
                if await self.redis.set(lock_key, token, nx=True, ex=self.lock_seconds):
                    return await self._run_locked(result_key, lock_key, token, key, fn, lookup)

                # Another caller holds the key; wait for its result or its release
                while True:
                    if loop.time() >= deadline:
                        logger.warning(f"Timed out waiting on idempotency key {base}")
                        raise OperationTimeout("Timed out waiting for a concurrent request with the same idempotency key")
                    await asyncio.sleep(self.poll_interval)
                    await self._raise_if_stored(result_key, result_type)
                    if not await self.redis.exists(lock_key):
                        break
        except RedisError as e:
            logger.error(f"Redis error in idempotency guard for {base}: {e}")
            raise StorageUnavailable() from None

    async def _raise_if_stored(self, result_key: str, result_type: Type[R]) -> None:
        cached = await self.redis.get(result_key)
        if cached is not None:
            raise DuplicateRequest(result_type.model_validate(json.loads(cached)))

    async def _run_locked(self, result_key, lock_key, token, key, fn, lookup):
        try:
            if lookup is not None:
                existing = await lookup(key)
                if existing is not None:
                    raise DuplicateRequest(existing)
            result = await fn()
        except DuplicateRequest as duplicate:
            await self._store(result_key, duplicate.result)
            raise
        else:
            await self._store(result_key, result)
            return result
        finally:
            await self._release(lock_key, token)

    async def _store(self, result_key: str, result: BaseModel) -> None:
        payload = json.dumps(result.model_dump(mode="json"))
        try:
            await self.redis.set(result_key, payload, ex=self.ttl_seconds)
        except RedisError as e:
            # The operation is committed; replays fall back to the durable lookup
            logger.warning(f"Could not store idempotent result {result_key}: {e}")

    async def _release(self, lock_key: str, token: str) -> None:
        try:
            if await self.redis.get(lock_key) == token:
                await self.redis.delete(lock_key)
        except RedisError as e:
            logger.warning(f"Could not release idempotency lock {lock_key}: {e}")
