"""
Wallet repository with optimistic (version checked) balance updates
"""

from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from economy.models.wallet import Wallet

# Configure logging
logger = logging.getLogger(__name__)


async def get_wallet_for_user(
    session: AsyncSession,
    user_id: str,
    refresh: bool = False
) -> Optional[Wallet]:
    """
    Get wallet for a specific user.

    Args:
        session: Database session
        user_id: User id
        refresh: Overwrite any copy already loaded in the session

    Returns:
        Wallet instance or None if not found
    """
    query = select(Wallet).where(Wallet.user_id == user_id)
    if refresh:
        query = query.execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def get_wallets_for_users(session: AsyncSession, user_ids: Iterable[str]) -> List[Wallet]:
    """
    Get the wallets that exist for the given users.

    Args:
        session: Database session
        user_ids: User ids

    Returns:
        List of Wallet instances (missing wallets are simply absent)
    """
    result = await session.execute(
        select(Wallet).where(Wallet.user_id.in_(list(user_ids)))
    )
    return list(result.scalars().all())


async def create_wallet_for_user(session: AsyncSession, user_id: str) -> Wallet:
    """
    Add an empty wallet for a user and flush it.

    A concurrent creator losing the unique race gets an IntegrityError
    from the flush; the caller re-reads the winner's row.

    Args:
        session: Database session
        user_id: User id

    Returns:
        Created Wallet instance
    """
    wallet = Wallet(user_id=user_id, balance=0, diamonds=0, version=0)
    session.add(wallet)
    await session.flush()
    return wallet


async def conditional_update(
    session: AsyncSession,
    wallet_id: UUID,
    expected_version: int,
    now: datetime,
    balance: Optional[int] = None,
    diamonds: Optional[int] = None
) -> bool:
    """
    Compare-and-swap a wallet's balances.

    The row is only written if its version still equals ``expected_version``;
    the version is bumped by one on success.

    Args:
        session: Database session
        wallet_id: Wallet UUID
        expected_version: Version observed when the balance was read
        now: Timestamp stored in updated_at
        balance: New coin balance (unchanged if None)
        diamonds: New diamond balance (unchanged if None)

    Returns:
        True if the row was updated, False on a version mismatch
    """
    values = {"version": expected_version + 1, "updated_at": now}
    if balance is not None:
        values["balance"] = balance
    if diamonds is not None:
        values["diamonds"] = diamonds

    result = await session.execute(
        update(Wallet)
        .where(Wallet.id == wallet_id, Wallet.version == expected_version)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info(f"Version conflict on wallet {wallet_id} (expected version {expected_version})")
        return False
    return True
