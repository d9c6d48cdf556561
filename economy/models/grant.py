"""
Grant model - time-limited privileges (verification badges, VIP)
"""

from sqlalchemy import Column, String, BigInteger, DateTime, UniqueConstraint, Index, Uuid
from economy.core.clock import utcnow, as_utc
from economy.db.base import Base
import uuid


class Grant(Base):
    """Grant model - at most one row per user and kind"""
    __tablename__ = "grants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False)
    kind = Column(String(16), nullable=False)
    type = Column(String(32), nullable=False)
    price = Column(BigInteger, nullable=False, default=0)
    status = Column(String(16), nullable=False, default="ACTIVE")
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint('user_id', 'kind', name='uq_grants_user_kind'),
        Index('ix_grants_status_expires', 'status', 'expires_at'),
    )

    def is_active_at(self, now) -> bool:
        return self.status == "ACTIVE" and as_utc(self.expires_at) > now

    def __repr__(self):
        return f"<Grant(user_id={self.user_id}, kind={self.kind}, type={self.type}, status={self.status})>"
