"""
Room repository
"""

from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from economy.models.room import Room


async def get_room_owner_id(session: AsyncSession, room_id: UUID) -> Optional[str]:
    """
    Get the owner of a room.

    Args:
        session: Database session
        room_id: Room UUID

    Returns:
        Owner user id, or None if the room is unknown or unowned
    """
    result = await session.execute(select(Room.owner_id).where(Room.id == room_id))
    return result.scalar_one_or_none()
