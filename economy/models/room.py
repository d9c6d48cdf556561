"""
Room and room membership models
"""

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint, Uuid
from economy.core.clock import utcnow
from economy.db.base import Base
import uuid


class Room(Base):
    """Room model - only the owner matters to the economy"""
    __tablename__ = "rooms"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(128), nullable=False)
    owner_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Room(id={self.id}, owner_id={self.owner_id})>"


class RoomMember(Base):
    """Room membership carrying time-bound ban and mute flags"""
    __tablename__ = "room_members"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    room_id = Column(Uuid, ForeignKey("rooms.id"), nullable=False)
    user_id = Column(String(64), nullable=False)
    is_banned = Column(Boolean, nullable=False, default=False)
    banned_until = Column(DateTime(timezone=True), nullable=True)
    is_muted = Column(Boolean, nullable=False, default=False)
    muted_until = Column(DateTime(timezone=True), nullable=True)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint('room_id', 'user_id', name='uq_room_members_room_user'),
    )

    def __repr__(self):
        return f"<RoomMember(room_id={self.room_id}, user_id={self.user_id}, banned={self.is_banned}, muted={self.is_muted})>"
