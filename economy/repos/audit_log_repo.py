"""
Audit log repository for administrative action tracking
"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc

from economy.models.audit_log import AuditLog


async def create_audit_log(
    session: AsyncSession,
    actor_id: str,
    action: str,
    target_id: Optional[str] = None,
    reason: Optional[str] = None,
    details: Optional[dict] = None
) -> AuditLog:
    """
    Add an audit log entry inside the caller's transaction.

    Args:
        session: Database session
        actor_id: Administrator who performed the action
        action: Action performed
        target_id: User affected by the action
        reason: Reason given by the administrator
        details: Additional details as JSON

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        target_id=target_id,
        action=action,
        reason=reason,
        details=details
    )
    session.add(audit_log)
    await session.flush()
    return audit_log


async def get_audit_logs(
    session: AsyncSession,
    limit: int = 50,
    offset: int = 0,
    action: Optional[str] = None,
    target_id: Optional[str] = None
) -> List[AuditLog]:
    """
    Get audit logs, newest first.

    Args:
        session: Database session
        limit: Maximum number of logs to return
        offset: Number of logs to skip
        action: Filter by action type
        target_id: Filter by affected user

    Returns:
        List of AuditLog instances
    """
    query = select(AuditLog).order_by(desc(AuditLog.created_at))

    if action:
        query = query.where(AuditLog.action == action)

    if target_id:
        query = query.where(AuditLog.target_id == target_id)

    query = query.limit(limit).offset(offset)
    result = await session.execute(query)
    return list(result.scalars().all())
