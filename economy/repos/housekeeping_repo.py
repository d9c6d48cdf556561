"""
Housekeeping repository - bulk transitions for rows with a natural expiry
"""

from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func, and_, or_

from economy.models.room import RoomMember
from economy.models.housekeeping import AgentRequest, RefreshToken, Notification, Message


def _expired_tokens(now: datetime, revoked_before: datetime):
    return or_(
        RefreshToken.expires_at < now,
        and_(RefreshToken.revoked_at.is_not(None), RefreshToken.revoked_at < revoked_before)
    )


def _old_notifications(read_before: datetime, unread_before: datetime):
    return or_(
        and_(Notification.is_read.is_(True), Notification.created_at < read_before),
        and_(Notification.is_read.is_(False), Notification.created_at < unread_before)
    )


def _expired_bans(now: datetime):
    return and_(RoomMember.is_banned.is_(True), RoomMember.banned_until < now)


def _expired_mutes(now: datetime):
    return and_(RoomMember.is_muted.is_(True), RoomMember.muted_until < now)


def _expired_agent_requests(now: datetime):
    return and_(AgentRequest.status == "PENDING", AgentRequest.expires_at < now)


def _purgeable_messages(deleted_before: datetime):
    return and_(Message.is_deleted.is_(True), Message.deleted_at < deleted_before)


async def delete_expired_refresh_tokens(session: AsyncSession, now: datetime, revoked_before: datetime) -> int:
    """
    Delete refresh tokens that expired, or were revoked before the retention cutoff.

    Returns:
        Number of rows deleted
    """
    result = await session.execute(delete(RefreshToken).where(_expired_tokens(now, revoked_before)))
    return result.rowcount


async def delete_old_notifications(session: AsyncSession, read_before: datetime, unread_before: datetime) -> int:
    """
    Delete read notifications older than read_before and unread ones older than unread_before.

    Returns:
        Number of rows deleted
    """
    result = await session.execute(delete(Notification).where(_old_notifications(read_before, unread_before)))
    return result.rowcount


async def release_expired_bans(session: AsyncSession, now: datetime) -> int:
    """
    Lift room bans whose end time has passed.

    Returns:
        Number of memberships updated
    """
    result = await session.execute(
        update(RoomMember)
        .where(_expired_bans(now))
        .values(is_banned=False, banned_until=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def release_expired_mutes(session: AsyncSession, now: datetime) -> int:
    """
    Lift room mutes whose end time has passed.

    Returns:
        Number of memberships updated
    """
    result = await session.execute(
        update(RoomMember)
        .where(_expired_mutes(now))
        .values(is_muted=False, muted_until=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def reject_expired_agent_requests(session: AsyncSession, now: datetime, reason: str) -> int:
    """
    Reject PENDING agent requests whose review window has passed.

    Returns:
        Number of requests rejected
    """
    result = await session.execute(
        update(AgentRequest)
        .where(_expired_agent_requests(now))
        .values(status="REJECTED", rejection_reason=reason, reviewed_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def purge_soft_deleted_messages(session: AsyncSession, deleted_before: datetime) -> int:
    """
    Hard-delete messages soft-deleted before the retention cutoff.

    Returns:
        Number of rows deleted
    """
    result = await session.execute(delete(Message).where(_purgeable_messages(deleted_before)))
    return result.rowcount


async def count_due_rows(
    session: AsyncSession,
    now: datetime,
    revoked_before: datetime,
    read_before: datetime,
    unread_before: datetime,
    deleted_before: datetime
) -> dict:
    """
    Count rows the housekeeping transitions would touch, without changing anything.

    Returns:
        Dict mapping sweep task name to the number of due rows
    """
    queries = {
        "expired_tokens": select(func.count(RefreshToken.id)).where(_expired_tokens(now, revoked_before)),
        "old_notifications": select(func.count(Notification.id)).where(_old_notifications(read_before, unread_before)),
        "expired_bans": select(func.count(RoomMember.id)).where(_expired_bans(now)),
        "expired_mutes": select(func.count(RoomMember.id)).where(_expired_mutes(now)),
        "expired_agent_requests": select(func.count(AgentRequest.id)).where(_expired_agent_requests(now)),
        "soft_deleted_messages": select(func.count(Message.id)).where(_purgeable_messages(deleted_before)),
    }
    counts = {}
    for name, query in queries.items():
        counts[name] = await session.scalar(query) or 0
    return counts
