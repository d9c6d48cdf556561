"""
Time-bound rows owned by neighbouring features and reconciled by the sweeps
"""

from sqlalchemy import Column, String, Text, Boolean, DateTime, Index, Uuid
from economy.core.clock import utcnow
from economy.db.base import Base
import uuid


class AgentRequest(Base):
    """Agent application awaiting review until it expires"""
    __tablename__ = "agent_requests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False)
    status = Column(String(16), nullable=False, default="PENDING")
    expires_at = Column(DateTime(timezone=True), nullable=False)
    rejection_reason = Column(String(255), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('ix_agent_requests_status_expires', 'status', 'expires_at'),
    )


class RefreshToken(Base):
    """Issued refresh token"""
    __tablename__ = "refresh_tokens"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False)
    token_hash = Column(String(128), nullable=False, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Notification(Base):
    """In-app notification"""
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('ix_notifications_read_created', 'is_read', 'created_at'),
    )


class Message(Base):
    """Room chat message, soft-deleted before being purged"""
    __tablename__ = "messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    room_id = Column(Uuid, nullable=False)
    sender_id = Column(String(64), nullable=False)
    content = Column(Text, nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
