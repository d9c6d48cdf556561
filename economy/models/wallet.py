"""
Wallet model
"""

from sqlalchemy import Column, String, BigInteger, Integer, DateTime, CheckConstraint, Uuid
from economy.core.clock import utcnow
from economy.db.base import Base
import uuid


class Wallet(Base):
    """Wallet model - one per user, created lazily"""
    __tablename__ = "wallets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False, unique=True)
    balance = Column(BigInteger, nullable=False, default=0)
    diamonds = Column(BigInteger, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Constraints
    __table_args__ = (
        CheckConstraint('balance >= 0', name='chk_wallet_balance_nonneg'),
        CheckConstraint('diamonds >= 0', name='chk_wallet_diamonds_nonneg'),
    )

    def __repr__(self):
        return f"<Wallet(id={self.id}, user_id={self.user_id}, balance={self.balance}, diamonds={self.diamonds}, version={self.version})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "user_id": self.user_id,
            "balance": self.balance,
            "diamonds": self.diamonds,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
