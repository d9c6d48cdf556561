"""
Ledger entry model - append-only record of every balance change
"""

from sqlalchemy import Column, String, BigInteger, DateTime, ForeignKey, Index, CheckConstraint, Uuid, JSON
from economy.core.clock import utcnow
from economy.db.base import Base
import uuid


class LedgerEntry(Base):
    """Ledger entry model - one row per wallet leg, never updated"""
    __tablename__ = "ledger_entries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    wallet_id = Column(Uuid, ForeignKey("wallets.id"), nullable=False)
    currency = Column(String(16), nullable=False, default="COINS")
    type = Column(String(32), nullable=False)
    status = Column(String(16), nullable=False, default="COMPLETED")
    amount = Column(BigInteger, nullable=False)
    balance_before = Column(BigInteger, nullable=False)
    balance_after = Column(BigInteger, nullable=False)
    reference_type = Column(String(32), nullable=True)
    reference_id = Column(String(64), nullable=True)
    description = Column(String(255), nullable=True)
    entry_metadata = Column('metadata', JSON, nullable=True)
    idempotency_key = Column(String(128), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint('amount <> 0', name='chk_ledger_amount_nonzero'),
        CheckConstraint('balance_after >= 0', name='chk_ledger_balance_after_nonneg'),
        CheckConstraint('balance_after = balance_before + amount', name='chk_ledger_balance_math'),
        Index('ix_ledger_entries_wallet_created', 'wallet_id', 'created_at'),
    )

    def __repr__(self):
        return f"<LedgerEntry(id={self.id}, wallet_id={self.wallet_id}, type={self.type}, amount={self.amount})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "wallet_id": str(self.wallet_id),
            "currency": self.currency,
            "type": self.type,
            "status": self.status,
            "amount": self.amount,
            "balance_before": self.balance_before,
            "balance_after": self.balance_after,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "description": self.description,
            "metadata": self.entry_metadata,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
