"""
Grant lifecycle - purchase, administrative grant, revoke and expiry of time-limited privileges
"""

import json
import logging
import math
from datetime import datetime, timedelta
from typing import List, Optional

from redis.exceptions import RedisError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from economy.core.clock import Clock, as_utc, utcnow
from economy.core.config import settings
from economy.core.errors import (
    AlreadyActiveError,
    ConcurrencyConflict,
    DuplicateRequest,
    EconomyError,
    GrantNotFound,
    ValidationError,
)
from economy.core.metrics import GRANT_PURCHASE_COUNT
from economy.models.enums import GrantKind, GrantStatus, LedgerEntryType
from economy.repos import audit_log_repo, grant_repo, ledger_entry_repo
from economy.schemas.results import GrantRecord
from economy.services.events import EventPublisher
from economy.services.idempotency import IdempotencyGuard
from economy.services.ledger import LedgerUnit, WalletLedger
from economy.services.packages import GrantPackage, get_package, list_packages

# Configure logging
logger = logging.getLogger(__name__)


def build_record(user_id: str, kind: GrantKind, grant, now: datetime, new_balance: Optional[int] = None) -> GrantRecord:
    """Describe a grant row (or its absence) as seen at ``now``."""
    if grant is None:
        return GrantRecord(user_id=user_id, kind=kind.value, new_balance=new_balance)
    expires_at = as_utc(grant.expires_at)
    active = grant.status == GrantStatus.ACTIVE.value and expires_at > now
    return GrantRecord(
        user_id=user_id,
        kind=kind.value,
        type=grant.type,
        status=grant.status,
        price=grant.price,
        expires_at=expires_at,
        is_active=active,
        days_remaining=math.ceil((expires_at - now).total_seconds() / 86400) if active else 0,
        new_balance=new_balance,
    )


def _refresh_record(record: GrantRecord, now: datetime) -> GrantRecord:
    # A cached record may have crossed its expiry since it was stored
    if record.is_active and record.expires_at is not None and record.expires_at <= now:
        return record.model_copy(update={"is_active": False, "days_remaining": 0})
    if record.is_active and record.expires_at is not None:
        days = math.ceil((record.expires_at - now).total_seconds() / 86400)
        return record.model_copy(update={"days_remaining": days})
    return record


class GrantLifecycle:
    """
    Owns the NONE -> ACTIVE -> EXPIRED lifecycle of verification badges and VIP.

    Purchases are paid through the wallet ledger and the ACTIVE check runs in
    the same unit as the debit, so the wallet version serialises concurrent
    purchases by one user. Renewing an ACTIVE grant is rejected.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        ledger: WalletLedger,
        guard: IdempotencyGuard,
        events: EventPublisher,
        redis_client,
        clock: Clock = utcnow,
        cache_ttl_seconds: int = settings.grant_cache_ttl_seconds
    ):
        self.session_factory = session_factory
        self.ledger = ledger
        self.guard = guard
        self.events = events
        self.redis = redis_client
        self.clock = clock
        self.cache_ttl_seconds = cache_ttl_seconds

    # Catalog

    def list_packages(self, kind: Optional[GrantKind] = None) -> List[dict]:
        return [package.to_dict() for package in list_packages(kind)]

    # Purchase

    async def purchase(self, user_id: str, grant_type: str, idempotency_key: str) -> GrantRecord:
        """
        Buy a grant package with coins.

        Args:
            user_id: Buyer
            grant_type: Package type, e.g. BLUE or vip_monthly
            idempotency_key: Client key, one debit per key

        Returns:
            GrantRecord of the new ACTIVE grant, including the new balance

        Raises:
            AlreadyActiveError: the user already holds an ACTIVE grant of this kind
            DuplicateRequest: the key was already used; carries the original result
        """
        package = get_package(grant_type)
        if not idempotency_key:
            raise ValidationError("Idempotency key is required")

        try:
            record = await self.guard.run(
                scope=f"grant:{user_id}",
                key=idempotency_key,
                fn=lambda: self._purchase(user_id, package, idempotency_key),
                result_type=GrantRecord,
                lookup=lambda key: self._lookup_purchase(user_id, package, key),
            )
        except DuplicateRequest:
            GRANT_PURCHASE_COUNT.labels(kind=package.kind.value, status="replayed").inc()
            raise
        except EconomyError as e:
            GRANT_PURCHASE_COUNT.labels(kind=package.kind.value, status=e.code).inc()
            raise

        GRANT_PURCHASE_COUNT.labels(kind=package.kind.value, status="completed").inc()
        logger.info(f"User {user_id} purchased {package.type} until {record.expires_at}")
        await self._after_change(user_id, package.kind, "updated", {
            "type": package.type,
            "expires_at": record.expires_at.isoformat() if record.expires_at else None,
            "source": "purchase",
        })
        return record

    async def _purchase(self, user_id: str, package: GrantPackage, idempotency_key: str) -> GrantRecord:
        ledger_key = f"grant:{user_id}:{idempotency_key}"

        async def _check_not_active(unit: LedgerUnit) -> None:
            existing = await grant_repo.get_grant(unit.session, user_id, package.kind.value)
            if existing is not None and existing.is_active_at(unit.now):
                raise AlreadyActiveError(
                    f"{package.kind.value} already active until {as_utc(existing.expires_at).isoformat()}"
                )

        async def _apply(unit: LedgerUnit) -> GrantRecord:
            await _check_not_active(unit)
            entry = await unit.debit(
                user_id, package.price, LedgerEntryType.PURCHASE,
                description=f"Purchased {package.name}",
                metadata={"kind": package.kind.value, "type": package.type, "duration_days": package.duration_days},
                idempotency_key=ledger_key,
                reference_type="grant",
                reference_id=package.type,
            )
            # A purchase committed after the first check has bumped the wallet
            # version, so from here on its grant row is visible
            await _check_not_active(unit)
            grant = await grant_repo.upsert_active_grant(
                unit.session,
                user_id=user_id,
                kind=package.kind.value,
                grant_type=package.type,
                price=package.price,
                expires_at=unit.now + timedelta(days=package.duration_days),
                now=unit.now,
            )
            return build_record(user_id, package.kind, grant, unit.now, new_balance=entry.balance_after)

        try:
            return await self.ledger.transactionally([user_id], _apply)
        except IntegrityError:
            existing = await self._lookup_purchase(user_id, package, idempotency_key)
            if existing is not None:
                raise DuplicateRequest(existing) from None
            # Grant row created concurrently by an administrator
            raise ConcurrencyConflict() from None

    async def _lookup_purchase(self, user_id: str, package: GrantPackage, idempotency_key: str) -> Optional[GrantRecord]:
        async with self.session_factory() as session:
            entry = await ledger_entry_repo.get_entry_by_idempotency_key(session, f"grant:{user_id}:{idempotency_key}")
            if entry is None:
                return None
            grant = await grant_repo.get_grant(session, user_id, package.kind.value)
        return build_record(user_id, package.kind, grant, self.clock(), new_balance=entry.balance_after)

    # Administration

    async def admin_grant(
        self,
        user_id: str,
        grant_type: str,
        actor_id: str,
        duration_days: Optional[int] = None,
        reason: Optional[str] = None
    ) -> GrantRecord:
        """
        Grant a package without payment, replacing any existing grant of the same kind.

        Args:
            user_id: Recipient
            grant_type: Package type
            actor_id: Administrator performing the grant
            duration_days: Validity; defaults to the package duration
            reason: Reason recorded in the audit log

        Returns:
            GrantRecord of the ACTIVE grant
        """
        package = get_package(grant_type)
        days = package.duration_days if duration_days is None else duration_days
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            raise ValidationError("Duration must be at least one day")

        now = self.clock()
        async with self.session_factory() as session:
            async with session.begin():
                grant = await grant_repo.upsert_active_grant(
                    session,
                    user_id=user_id,
                    kind=package.kind.value,
                    grant_type=package.type,
                    price=0,
                    expires_at=now + timedelta(days=days),
                    now=now,
                )
                await audit_log_repo.create_audit_log(
                    session,
                    actor_id=actor_id,
                    action="GRANT_CREATED",
                    target_id=user_id,
                    reason=reason,
                    details={"kind": package.kind.value, "type": package.type, "duration_days": days},
                )
            record = build_record(user_id, package.kind, grant, now)

        logger.info(f"Admin {actor_id} granted {package.type} to user {user_id} for {days} days")
        await self._after_change(user_id, package.kind, "updated", {
            "type": package.type,
            "expires_at": record.expires_at.isoformat(),
            "source": "admin",
        })
        return record

    async def revoke(
        self,
        user_id: str,
        actor_id: str,
        reason: Optional[str] = None,
        kind: GrantKind = GrantKind.VERIFICATION
    ) -> None:
        """
        Remove a user's grant of one kind.

        Raises:
            GrantNotFound: the user holds no grant of this kind
        """
        kind = GrantKind(kind)
        async with self.session_factory() as session:
            async with session.begin():
                deleted = await grant_repo.delete_grant(session, user_id, kind.value)
                if not deleted:
                    raise GrantNotFound(f"No {kind.value.lower()} grant for user {user_id}")
                await audit_log_repo.create_audit_log(
                    session,
                    actor_id=actor_id,
                    action="GRANT_REVOKED",
                    target_id=user_id,
                    reason=reason,
                    details={"kind": kind.value},
                )

        logger.info(f"Admin {actor_id} revoked {kind.value} of user {user_id}: {reason}")
        await self._after_change(user_id, kind, "revoked", {"reason": reason})

    # Expiry

    async def expire_due(self, kind: GrantKind, now: Optional[datetime] = None) -> int:
        """
        Flip ACTIVE grants of one kind whose expiry is before ``now`` to EXPIRED.

        Returns:
            Number of grants expired
        """
        kind = GrantKind(kind)
        now = now or self.clock()
        expired = []
        async with self.session_factory() as session:
            async with session.begin():
                for grant in await grant_repo.get_due_grants(session, kind.value, now):
                    if await grant_repo.mark_expired(session, [grant.id], now):
                        expired.append((grant.user_id, grant.type))

        for user_id, grant_type in expired:
            await self._after_change(user_id, kind, "expired", {"type": grant_type})
        if expired:
            logger.info(f"Expired {len(expired)} {kind.value} grants")
        return len(expired)

    # Queries

    async def get_grant(self, user_id: str, kind: GrantKind = GrantKind.VERIFICATION) -> GrantRecord:
        """Current grant of one kind, served from the cache when possible."""
        kind = GrantKind(kind)
        now = self.clock()
        cache_key = self._cache_key(user_id, kind)
        try:
            cached = await self.redis.get(cache_key)
        except RedisError as e:
            logger.warning(f"Grant cache read failed for {cache_key}: {e}")
            cached = None
        if cached is not None:
            return _refresh_record(GrantRecord.model_validate(json.loads(cached)), now)

        async with self.session_factory() as session:
            grant = await grant_repo.get_grant(session, user_id, kind.value)
        record = build_record(user_id, kind, grant, now)
        if record.is_active:
            try:
                await self.redis.set(cache_key, record.model_dump_json(), ex=self.cache_ttl_seconds)
            except RedisError as e:
                logger.warning(f"Grant cache write failed for {cache_key}: {e}")
        return record

    async def is_active(self, user_id: str, kind: GrantKind = GrantKind.VERIFICATION) -> bool:
        return (await self.get_grant(user_id, kind)).is_active

    # Helpers

    @staticmethod
    def _cache_key(user_id: str, kind: GrantKind) -> str:
        return f"grant:{kind.value.lower()}:{user_id}"

    async def invalidate(self, user_id: str, kind: GrantKind) -> None:
        cache_key = self._cache_key(user_id, kind)
        try:
            await self.redis.delete(cache_key)
        except RedisError as e:
            logger.error(f"Grant cache invalidation failed for {cache_key}: {e}")

    async def _after_change(self, user_id: str, kind: GrantKind, change: str, data: dict) -> None:
        await self.invalidate(user_id, kind)
        await self.events.publish(f"{kind.value.lower()}_{change}", user_id, {"kind": kind.value, **data})
