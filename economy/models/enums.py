"""
Database enums
"""

import enum


class Currency(str, enum.Enum):
    """Wallet currency enum"""
    COINS = "COINS"
    DIAMONDS = "DIAMONDS"


class LedgerEntryType(str, enum.Enum):
    """Ledger entry type enum"""
    PURCHASE = "PURCHASE"
    GIFT_SEND = "GIFT_SEND"
    GIFT_RECEIVE = "GIFT_RECEIVE"
    ADMIN_ADJUST = "ADMIN_ADJUST"
    REFUND = "REFUND"


class LedgerEntryStatus(str, enum.Enum):
    """Ledger entry status enum"""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class GrantKind(str, enum.Enum):
    """Time-limited privilege kind"""
    VERIFICATION = "VERIFICATION"
    VIP = "VIP"


class GrantStatus(str, enum.Enum):
    """Grant status enum"""
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"


class AgentRequestStatus(str, enum.Enum):
    """Agent request status enum"""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
