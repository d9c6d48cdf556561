"""
Audit log model for administrative actions
"""

from sqlalchemy import Column, String, DateTime, Uuid, JSON
from economy.core.clock import utcnow
from economy.db.base import Base
import uuid


class AuditLog(Base):
    """Audit log model - one row per administrative action"""
    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    actor_id = Column(String(64), nullable=False)
    target_id = Column(String(64), nullable=True)
    action = Column(String(128), nullable=False)
    reason = Column(String(255), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, actor_id={self.actor_id}, action={self.action})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "actor_id": self.actor_id,
            "target_id": self.target_id,
            "action": self.action,
            "reason": self.reason,
            "details": self.details,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
