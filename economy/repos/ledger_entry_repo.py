"""
Ledger entry repository - append-only wallet history
"""

from typing import Dict, List, Optional, Tuple
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc

from economy.models.ledger_entry import LedgerEntry


async def append_entry(
    session: AsyncSession,
    wallet_id: UUID,
    currency: str,
    entry_type: str,
    amount: int,
    balance_before: int,
    balance_after: int,
    description: Optional[str] = None,
    entry_metadata: Optional[dict] = None,
    idempotency_key: Optional[str] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    status: str = "COMPLETED"
) -> LedgerEntry:
    """
    Append a ledger entry. Entries are never updated or deleted.

    Args:
        session: Database session
        wallet_id: Wallet UUID
        currency: COINS or DIAMONDS
        entry_type: Ledger entry type
        amount: Signed amount (never zero)
        balance_before: Balance read by the same compare-and-swap
        balance_after: Balance written by the same compare-and-swap
        description: Human readable description
        entry_metadata: Additional details as JSON
        idempotency_key: Key of the keyed operation (payer leg only)
        reference_type: Type of the related entity
        reference_id: ID of the related entity
        status: Entry status

    Returns:
        Created LedgerEntry instance
    """
    entry = LedgerEntry(
        wallet_id=wallet_id,
        currency=currency,
        type=entry_type,
        status=status,
        amount=amount,
        balance_before=balance_before,
        balance_after=balance_after,
        description=description,
        entry_metadata=entry_metadata,
        idempotency_key=idempotency_key,
        reference_type=reference_type,
        reference_id=reference_id,
    )
    session.add(entry)
    await session.flush()
    return entry


async def get_entry_by_idempotency_key(session: AsyncSession, idempotency_key: str) -> Optional[LedgerEntry]:
    """
    Get the keyed ledger entry for an idempotency key.

    Args:
        session: Database session
        idempotency_key: Scoped idempotency key

    Returns:
        LedgerEntry instance or None if not found
    """
    result = await session.execute(
        select(LedgerEntry).where(LedgerEntry.idempotency_key == idempotency_key)
    )
    return result.scalar_one_or_none()


async def get_entries_for_wallet(
    session: AsyncSession,
    wallet_id: UUID,
    limit: int = 20,
    offset: int = 0,
    entry_type: Optional[str] = None
) -> Tuple[List[LedgerEntry], int]:
    """
    Get a page of ledger entries for a wallet, newest first.

    Args:
        session: Database session
        wallet_id: Wallet UUID
        limit: Maximum number of entries to return
        offset: Number of entries to skip
        entry_type: Filter by entry type

    Returns:
        Tuple of (entries, total matching entries)
    """
    filters = [LedgerEntry.wallet_id == wallet_id]
    if entry_type:
        filters.append(LedgerEntry.type == entry_type)

    result = await session.execute(
        select(LedgerEntry)
        .where(*filters)
        .order_by(desc(LedgerEntry.created_at), desc(LedgerEntry.id))
        .limit(limit)
        .offset(offset)
    )
    total = await session.scalar(select(func.count(LedgerEntry.id)).where(*filters))
    return list(result.scalars().all()), total or 0


async def sum_amounts_by_currency(session: AsyncSession, wallet_id: UUID) -> Dict[str, int]:
    """
    Sum signed ledger amounts per currency for a wallet.

    Args:
        session: Database session
        wallet_id: Wallet UUID

    Returns:
        Dict mapping currency to the sum of its entries
    """
    result = await session.execute(
        select(LedgerEntry.currency, func.coalesce(func.sum(LedgerEntry.amount), 0))
        .where(LedgerEntry.wallet_id == wallet_id)
        .group_by(LedgerEntry.currency)
    )
    return {currency: int(total) for currency, total in result.all()}


async def sum_amounts_by_type(session: AsyncSession, wallet_id: UUID, currency: str = "COINS") -> Dict[str, int]:
    """
    Sum signed ledger amounts per entry type for a wallet.

    Args:
        session: Database session
        wallet_id: Wallet UUID
        currency: Currency to aggregate

    Returns:
        Dict mapping entry type to the sum of its entries
    """
    result = await session.execute(
        select(LedgerEntry.type, func.coalesce(func.sum(LedgerEntry.amount), 0))
        .where(LedgerEntry.wallet_id == wallet_id, LedgerEntry.currency == currency)
        .group_by(LedgerEntry.type)
    )
    return {entry_type: int(total) for entry_type, total in result.all()}
