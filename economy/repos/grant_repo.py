"""
Grant repository for verification badges and VIP
"""

from datetime import datetime
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete

from economy.models.grant import Grant


async def get_grant(session: AsyncSession, user_id: str, kind: str) -> Optional[Grant]:
    """
    Get a user's grant of one kind.

    Args:
        session: Database session
        user_id: User id
        kind: VERIFICATION or VIP

    Returns:
        Grant instance or None if the user has none
    """
    result = await session.execute(
        select(Grant)
        .where(Grant.user_id == user_id, Grant.kind == kind)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def upsert_active_grant(
    session: AsyncSession,
    user_id: str,
    kind: str,
    grant_type: str,
    price: int,
    expires_at: datetime,
    now: datetime
) -> Grant:
    """
    Create the user's grant of this kind, or overwrite the existing row, as ACTIVE.

    Args:
        session: Database session
        user_id: User id
        kind: VERIFICATION or VIP
        grant_type: Package type
        price: Price paid (0 for administrative grants)
        expires_at: Expiry timestamp
        now: Current timestamp

    Returns:
        The ACTIVE Grant instance
    """
    grant = await get_grant(session, user_id, kind)
    if grant is None:
        grant = Grant(user_id=user_id, kind=kind, created_at=now)
        session.add(grant)
    grant.type = grant_type
    grant.price = price
    grant.status = "ACTIVE"
    grant.expires_at = expires_at
    grant.updated_at = now
    await session.flush()
    return grant


async def delete_grant(session: AsyncSession, user_id: str, kind: str) -> bool:
    """
    Delete a user's grant of one kind.

    Args:
        session: Database session
        user_id: User id
        kind: VERIFICATION or VIP

    Returns:
        True if a row was deleted
    """
    result = await session.execute(
        delete(Grant).where(Grant.user_id == user_id, Grant.kind == kind)
    )
    return result.rowcount > 0


async def get_due_grants(session: AsyncSession, kind: str, now: datetime) -> List[Grant]:
    """
    Get ACTIVE grants of one kind whose expiry has passed.

    Args:
        session: Database session
        kind: VERIFICATION or VIP
        now: Sweep timestamp

    Returns:
        List of Grant instances
    """
    result = await session.execute(
        select(Grant).where(
            Grant.kind == kind,
            Grant.status == "ACTIVE",
            Grant.expires_at < now
        )
    )
    return list(result.scalars().all())


async def mark_expired(session: AsyncSession, grant_ids: List, now: datetime) -> int:
    """
    Flip the given grants from ACTIVE to EXPIRED.

    Rows that are no longer ACTIVE (renewed or already expired) are left alone.

    Args:
        session: Database session
        grant_ids: Grant UUIDs
        now: Sweep timestamp

    Returns:
        Number of rows updated
    """
    if not grant_ids:
        return 0
    result = await session.execute(
        update(Grant)
        .where(Grant.id.in_(grant_ids), Grant.status == "ACTIVE", Grant.expires_at < now)
        .values(status="EXPIRED", updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
