"""
Service wiring - one instance of every economy service per process
"""

from typing import NamedTuple, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from economy.core.clock import Clock, utcnow
from economy.services.commission import CommissionRatios
from economy.services.events import EventPublisher
from economy.services.expiry import ExpirySweeper
from economy.services.gift_transfer import GiftTransferEngine
from economy.services.grants import GrantLifecycle
from economy.services.idempotency import IdempotencyGuard
from economy.services.ledger import WalletLedger
from economy.services.scheduler import SweepScheduler


class EconomyServices(NamedTuple):
    ledger: WalletLedger
    guard: IdempotencyGuard
    events: EventPublisher
    gifts: GiftTransferEngine
    grants: GrantLifecycle
    sweeper: ExpirySweeper
    scheduler: SweepScheduler


def build_services(
    session_factory: async_sessionmaker,
    redis_client,
    clock: Clock = utcnow,
    ratios: Optional[CommissionRatios] = None,
    **ledger_options
) -> EconomyServices:
    """
    Build the economy services on top of a session factory and a Redis client.

    Args:
        session_factory: Async session factory
        redis_client: redis.asyncio client (or a compatible test double)
        clock: Source of the current UTC time
        ratios: Gift commission percentages (defaults to settings)
        **ledger_options: Overrides for WalletLedger retry and timeout settings

    Returns:
        EconomyServices
    """
    ledger = WalletLedger(session_factory, clock=clock, **ledger_options)
    guard = IdempotencyGuard(redis_client)
    events = EventPublisher(redis_client, clock=clock)
    gifts = GiftTransferEngine(session_factory, ledger, guard, events, ratios=ratios)
    grants = GrantLifecycle(session_factory, ledger, guard, events, redis_client, clock=clock)
    sweeper = ExpirySweeper(session_factory, grants, redis_client, clock=clock)
    scheduler = SweepScheduler(sweeper)
    return EconomyServices(
        ledger=ledger,
        guard=guard,
        events=events,
        gifts=gifts,
        grants=grants,
        sweeper=sweeper,
        scheduler=scheduler,
    )
