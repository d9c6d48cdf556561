"""
Gift catalog and gift send repository
"""

from typing import List, Optional, Tuple
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc

from economy.models.gift import Gift, GiftSend


async def get_gift_by_id(session: AsyncSession, gift_id: UUID) -> Optional[Gift]:
    """
    Get a gift from the catalog.

    Args:
        session: Database session
        gift_id: Gift UUID

    Returns:
        Gift instance or None if not found
    """
    result = await session.execute(select(Gift).where(Gift.id == gift_id))
    return result.scalar_one_or_none()


async def create_gift(
    session: AsyncSession,
    name: str,
    price: int,
    gift_type: str = "STANDARD",
    is_active: bool = True,
    sort_order: int = 0
) -> Gift:
    """
    Add a gift to the catalog.

    Args:
        session: Database session
        name: Display name
        price: Unit price in coins
        gift_type: Catalog category
        is_active: Whether the gift can be sent
        sort_order: Position in the catalog

    Returns:
        Created Gift instance
    """
    gift = Gift(name=name, price=price, type=gift_type, is_active=is_active, sort_order=sort_order)
    session.add(gift)
    await session.commit()
    await session.refresh(gift)
    return gift


async def create_gift_send(session: AsyncSession, **fields) -> GiftSend:
    """
    Add a gift send row inside the caller's transaction.

    Args:
        session: Database session
        **fields: GiftSend column values

    Returns:
        Created GiftSend instance
    """
    gift_send = GiftSend(**fields)
    session.add(gift_send)
    await session.flush()
    return gift_send


async def get_gift_send_by_key(session: AsyncSession, idempotency_key: str) -> Optional[GiftSend]:
    """
    Get the gift send recorded for an idempotency key.

    Args:
        session: Database session
        idempotency_key: Client supplied idempotency key, unique across senders

    Returns:
        GiftSend instance or None if not found
    """
    result = await session.execute(
        select(GiftSend).where(GiftSend.idempotency_key == idempotency_key)
    )
    return result.scalar_one_or_none()


async def get_gift_sends_for_user(
    session: AsyncSession,
    user_id: str,
    direction: str = "sent",
    limit: int = 20,
    offset: int = 0
) -> Tuple[List[GiftSend], int]:
    """
    Get a page of gifts sent or received by a user, newest first.

    Args:
        session: Database session
        user_id: User id
        direction: "sent" or "received"
        limit: Maximum number of rows to return
        offset: Number of rows to skip

    Returns:
        Tuple of (gift sends, total matching rows)
    """
    column = GiftSend.sender_id if direction == "sent" else GiftSend.receiver_id
    result = await session.execute(
        select(GiftSend)
        .where(column == user_id)
        .order_by(desc(GiftSend.created_at))
        .limit(limit)
        .offset(offset)
    )
    total = await session.scalar(select(func.count(GiftSend.id)).where(column == user_id))
    return list(result.scalars().all()), total or 0


async def get_leaderboard(session: AsyncSession, by: str = "senders", limit: int = 10) -> List[dict]:
    """
    Rank users by the coin value of gifts sent or received.

    Args:
        session: Database session
        by: "senders" or "receivers"
        limit: Number of users to return

    Returns:
        List of dicts with user_id, total_value and gift_count
    """
    column = GiftSend.sender_id if by == "senders" else GiftSend.receiver_id
    total_value = func.sum(GiftSend.total_price).label("total_value")
    result = await session.execute(
        select(column, total_value, func.count(GiftSend.id))
        .group_by(column)
        .order_by(desc(total_value))
        .limit(limit)
    )
    return [
        {"user_id": user_id, "total_value": int(total), "gift_count": count}
        for user_id, total, count in result.all()
    ]
