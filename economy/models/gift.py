"""
Gift catalog and gift send models
"""

from sqlalchemy import Column, String, BigInteger, Integer, Boolean, DateTime, ForeignKey, CheckConstraint, Index, UniqueConstraint, Uuid
from economy.core.clock import utcnow
from economy.db.base import Base
import uuid


class Gift(Base):
    """Gift catalog entry"""
    __tablename__ = "gifts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(64), nullable=False)
    type = Column(String(32), nullable=False, default="STANDARD")
    price = Column(BigInteger, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint('price > 0', name='chk_gift_price_positive'),
    )

    def __repr__(self):
        return f"<Gift(id={self.id}, name={self.name}, price={self.price}, active={self.is_active})>"


class GiftSend(Base):
    """Completed gift transfer, keyed by the client's idempotency key"""
    __tablename__ = "gift_sends"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    idempotency_key = Column(String(128), nullable=False)
    gift_id = Column(Uuid, ForeignKey("gifts.id"), nullable=False)
    sender_id = Column(String(64), nullable=False)
    receiver_id = Column(String(64), nullable=False)
    room_id = Column(Uuid, nullable=True)
    room_owner_id = Column(String(64), nullable=True)
    quantity = Column(Integer, nullable=False)
    total_price = Column(BigInteger, nullable=False)
    platform_share = Column(BigInteger, nullable=False)
    receiver_share = Column(BigInteger, nullable=False)
    owner_share = Column(BigInteger, nullable=False, default=0)
    sender_balance_after = Column(BigInteger, nullable=False)
    message = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint('idempotency_key', name='uq_gift_sends_idempotency_key'),
        CheckConstraint('sender_id <> receiver_id', name='chk_gift_send_not_self'),
        CheckConstraint('quantity >= 1', name='chk_gift_send_quantity'),
        CheckConstraint('total_price > 0', name='chk_gift_send_total_positive'),
        CheckConstraint(
            'platform_share + receiver_share + owner_share = total_price',
            name='chk_gift_send_split_exact'
        ),
        Index('ix_gift_sends_sender_created', 'sender_id', 'created_at'),
        Index('ix_gift_sends_receiver_created', 'receiver_id', 'created_at'),
    )

    def __repr__(self):
        return f"<GiftSend(id={self.id}, sender={self.sender_id}, receiver={self.receiver_id}, total={self.total_price})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "gift_id": str(self.gift_id),
            "sender_id": self.sender_id,
            "receiver_id": self.receiver_id,
            "room_id": str(self.room_id) if self.room_id else None,
            "quantity": self.quantity,
            "total_price": self.total_price,
            "receiver_share": self.receiver_share,
            "owner_share": self.owner_share,
            "platform_share": self.platform_share,
            "message": self.message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
