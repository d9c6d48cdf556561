"""
Wallet ledger - atomic, version checked balance mutations with an audit trail
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from economy.core.clock import Clock, utcnow
from economy.core.config import settings
from economy.core.errors import (
    ConcurrencyConflict,
    InsufficientFunds,
    OperationTimeout,
    StorageUnavailable,
    ValidationError,
)
from economy.core.metrics import LEDGER_CONFLICT_COUNT, LEDGER_UNIT_DURATION
from economy.models.enums import Currency, LedgerEntryType
from economy.models.ledger_entry import LedgerEntry
from economy.models.wallet import Wallet
from economy.repos import audit_log_repo, ledger_entry_repo, wallet_repo

# Configure logging
logger = logging.getLogger(__name__)

T = TypeVar("T")

STORAGE_ERRORS = (OperationalError, InterfaceError)


def _check_amount(amount) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError(f"Amount must be a positive integer, got {amount!r}")


class LedgerUnit:
    """
    One attempt of an atomic unit of work.

    Every leg reads the wallet, checks the balance and writes it back with a
    compare-and-swap on the wallet version, then appends its ledger entry.
    Callers add further rows through ``session``; all of it commits together.
    """

    def __init__(self, session: AsyncSession, now):
        self.session = session
        self.now = now
        self.entries: List[LedgerEntry] = []

    async def debit(
        self,
        user_id: str,
        amount: int,
        entry_type: LedgerEntryType,
        description: Optional[str] = None,
        currency: Currency = Currency.COINS,
        metadata: Optional[dict] = None,
        idempotency_key: Optional[str] = None,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None
    ) -> LedgerEntry:
        _check_amount(amount)
        return await self._apply(
            user_id, -amount, entry_type, description, currency,
            metadata, idempotency_key, reference_type, reference_id
        )

    async def credit(
        self,
        user_id: str,
        amount: int,
        entry_type: LedgerEntryType,
        description: Optional[str] = None,
        currency: Currency = Currency.COINS,
        metadata: Optional[dict] = None,
        idempotency_key: Optional[str] = None,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None
    ) -> LedgerEntry:
        _check_amount(amount)
        return await self._apply(
            user_id, amount, entry_type, description, currency,
            metadata, idempotency_key, reference_type, reference_id
        )

    async def _apply(
        self,
        user_id: str,
        delta: int,
        entry_type: LedgerEntryType,
        description: Optional[str],
        currency: Currency,
        metadata: Optional[dict],
        idempotency_key: Optional[str],
        reference_type: Optional[str],
        reference_id: Optional[str]
    ) -> LedgerEntry:
        wallet = await wallet_repo.get_wallet_for_user(self.session, user_id, refresh=True)
        if wallet is None:
            raise ValidationError(f"Wallet not found for user {user_id}")

        field = "balance" if currency == Currency.COINS else "diamonds"
        before = getattr(wallet, field)
        after = before + delta
        if after < 0:
            raise InsufficientFunds(available=before, required=-delta)

        updated = await wallet_repo.conditional_update(
            self.session, wallet.id, wallet.version, now=self.now, **{field: after}
        )
        if not updated:
            raise ConcurrencyConflict()

        entry = await ledger_entry_repo.append_entry(
            self.session,
            wallet_id=wallet.id,
            currency=currency.value,
            entry_type=entry_type.value,
            amount=delta,
            balance_before=before,
            balance_after=after,
            description=description,
            entry_metadata=metadata,
            idempotency_key=idempotency_key,
            reference_type=reference_type,
            reference_id=reference_id,
        )
        self.entries.append(entry)
        return entry


class WalletLedger:
    """Single writer of wallet balances"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        clock: Clock = utcnow,
        max_attempts: int = settings.wallet_max_attempts,
        backoff_base_ms: int = settings.wallet_backoff_base_ms,
        storage_max_attempts: int = settings.storage_max_attempts,
        timeout_seconds: float = settings.economic_op_timeout_seconds
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base_ms / 1000.0
        self.storage_max_attempts = storage_max_attempts
        self.timeout_seconds = timeout_seconds

    # Wallet lookup

    async def get_wallet(self, user_id: str) -> Wallet:
        """
        Get a user's wallet, creating an empty one on first use.

        Args:
            user_id: User id

        Returns:
            Wallet instance
        """
        wallets = await self.ensure_wallets([user_id])
        return wallets[user_id]

    async def ensure_wallets(self, user_ids: Iterable[str]) -> Dict[str, Wallet]:
        """
        Get the wallets of several users, creating missing ones.

        Args:
            user_ids: User ids (None entries are ignored)

        Returns:
            Dict mapping user id to Wallet
        """
        wanted = sorted({user_id for user_id in user_ids if user_id})

        async def _ensure():
            async with self.session_factory() as session:
                existing = {w.user_id for w in await wallet_repo.get_wallets_for_users(session, wanted)}
                for user_id in wanted:
                    if user_id in existing:
                        continue
                    try:
                        await wallet_repo.create_wallet_for_user(session, user_id)
                        await session.commit()
                        logger.info(f"Created wallet for user {user_id}")
                    except IntegrityError:
                        # Lost the creation race, the winner's row is read below
                        await session.rollback()
                wallets = await wallet_repo.get_wallets_for_users(session, wanted)
                await session.commit()
                return {w.user_id: w for w in wallets}

        return await self._run(_ensure)

    # Mutations

    async def transactionally(self, user_ids: Iterable[str], fn: Callable[[LedgerUnit], Awaitable[T]]) -> T:
        """
        Run ``fn`` as one atomic unit over the given users' wallets.

        The unit is re-run from scratch in a fresh session when a wallet
        version conflict is detected, up to ``max_attempts`` times.

        Args:
            user_ids: Users whose wallets the unit touches
            fn: Coroutine function receiving a LedgerUnit

        Returns:
            Whatever ``fn`` returns, after commit
        """
        await self.ensure_wallets(user_ids)

        async def _attempt():
            async with self.session_factory() as session:
                async with session.begin():
                    unit = LedgerUnit(session, self.clock())
                    return await fn(unit)

        return await self._run(_attempt)

    async def debit(
        self,
        user_id: str,
        amount: int,
        entry_type: LedgerEntryType,
        description: Optional[str] = None,
        currency: Currency = Currency.COINS,
        metadata: Optional[dict] = None,
        idempotency_key: Optional[str] = None
    ) -> LedgerEntry:
        """Debit a single wallet; raises InsufficientFunds instead of going negative."""
        async def _debit(unit: LedgerUnit):
            return await unit.debit(
                user_id, amount, entry_type, description, currency, metadata, idempotency_key
            )
        return await self.transactionally([user_id], _debit)

    async def credit(
        self,
        user_id: str,
        amount: int,
        entry_type: LedgerEntryType,
        description: Optional[str] = None,
        currency: Currency = Currency.COINS,
        metadata: Optional[dict] = None,
        idempotency_key: Optional[str] = None
    ) -> LedgerEntry:
        """Credit a single wallet."""
        async def _credit(unit: LedgerUnit):
            return await unit.credit(
                user_id, amount, entry_type, description, currency, metadata, idempotency_key
            )
        return await self.transactionally([user_id], _credit)

    async def admin_adjust(
        self,
        user_id: str,
        amount: int,
        actor_id: str,
        reason: str,
        currency: Currency = Currency.COINS
    ) -> LedgerEntry:
        """
        Apply a signed administrative adjustment and audit it in the same transaction.

        Args:
            user_id: Wallet owner
            amount: Signed, non-zero amount
            actor_id: Administrator performing the adjustment
            reason: Reason recorded in the audit log
            currency: Currency to adjust

        Returns:
            The ADMIN_ADJUST ledger entry
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
            raise ValidationError("Adjustment amount must be a non-zero integer")

        async def _adjust(unit: LedgerUnit):
            leg = unit.credit if amount > 0 else unit.debit
            entry = await leg(
                user_id, abs(amount), LedgerEntryType.ADMIN_ADJUST,
                description=reason, currency=currency,
                metadata={"actor_id": actor_id, "reason": reason}
            )
            await audit_log_repo.create_audit_log(
                unit.session,
                actor_id=actor_id,
                action="WALLET_ADJUSTED",
                target_id=user_id,
                reason=reason,
                details={
                    "amount": amount,
                    "currency": currency.value,
                    "balance_before": entry.balance_before,
                    "balance_after": entry.balance_after,
                }
            )
            return entry

        entry = await self.transactionally([user_id], _adjust)
        logger.info(f"Admin {actor_id} adjusted {currency.value} of user {user_id} by {amount}")
        return entry

    # Queries

    async def get_history(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
        entry_type: Optional[str] = None
    ) -> dict:
        """
        Get a page of a user's ledger entries, newest first.

        Returns:
            Dict with ``items`` and ``total``
        """
        wallet = await self.get_wallet(user_id)
        async with self.session_factory() as session:
            entries, total = await ledger_entry_repo.get_entries_for_wallet(
                session, wallet.id, limit=limit, offset=offset, entry_type=entry_type
            )
        return {"items": [entry.to_dict() for entry in entries], "total": total, "limit": limit, "offset": offset}

    async def get_stats(self, user_id: str) -> dict:
        """Coin totals per ledger entry type plus the current balances."""
        wallet = await self.get_wallet(user_id)
        async with self.session_factory() as session:
            by_type = await ledger_entry_repo.sum_amounts_by_type(session, wallet.id)
        return {
            "user_id": user_id,
            "balance": wallet.balance,
            "diamonds": wallet.diamonds,
            "total_spent": -(by_type.get(LedgerEntryType.GIFT_SEND.value, 0) + by_type.get(LedgerEntryType.PURCHASE.value, 0)),
            "total_received": by_type.get(LedgerEntryType.GIFT_RECEIVE.value, 0),
            "total_adjusted": by_type.get(LedgerEntryType.ADMIN_ADJUST.value, 0),
            "total_refunded": by_type.get(LedgerEntryType.REFUND.value, 0),
        }

    async def reconcile(self, user_id: str) -> dict:
        """
        Check that the ledger reconstructs the wallet's balances.

        Returns:
            Dict with balances, ledger sums and a ``consistent`` flag
        """
        async with self.session_factory() as session:
            wallet = await wallet_repo.get_wallet_for_user(session, user_id)
            if wallet is None:
                return {"user_id": user_id, "consistent": True, "balance": 0, "diamonds": 0, "ledger": {}}
            sums = await ledger_entry_repo.sum_amounts_by_currency(session, wallet.id)
        consistent = (
            sums.get(Currency.COINS.value, 0) == wallet.balance
            and sums.get(Currency.DIAMONDS.value, 0) == wallet.diamonds
        )
        if not consistent:
            logger.error(f"Ledger mismatch for user {user_id}: wallet={wallet.balance}/{wallet.diamonds} ledger={sums}")
        return {
            "user_id": user_id,
            "consistent": consistent,
            "balance": wallet.balance,
            "diamonds": wallet.diamonds,
            "ledger": sums,
        }

    # Retry machinery

    def _backoff(self, attempt: int) -> float:
        return self.backoff_base * (2 ** (attempt - 1)) * random.uniform(0.5, 1.5)

    async def _run(self, attempt_fn: Callable[[], Awaitable[T]]) -> T:
        start = asyncio.get_running_loop().time()
        try:
            return await asyncio.wait_for(self._with_retries(attempt_fn), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(f"Ledger unit exceeded {self.timeout_seconds}s and was aborted")
            raise OperationTimeout() from None
        finally:
            LEDGER_UNIT_DURATION.observe(asyncio.get_running_loop().time() - start)

    async def _with_retries(self, attempt_fn: Callable[[], Awaitable[T]]) -> T:
        conflicts = 0
        storage_failures = 0
        while True:
            try:
                return await attempt_fn()
            except ConcurrencyConflict:
                conflicts += 1
                LEDGER_CONFLICT_COUNT.inc()
                if conflicts >= self.max_attempts:
                    logger.warning(f"Giving up after {conflicts} wallet version conflicts")
                    raise
                await asyncio.sleep(self._backoff(conflicts))
            except STORAGE_ERRORS as e:
                storage_failures += 1
                if storage_failures >= self.storage_max_attempts:
                    logger.error(f"Storage unavailable after {storage_failures} attempts: {e}")
                    raise StorageUnavailable() from None
                logger.warning(f"Storage error (attempt {storage_failures}), retrying: {e}")
                await asyncio.sleep(self._backoff(storage_failures))
