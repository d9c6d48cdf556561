"""
Result models returned by the economy services
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class GiftSendResult(BaseModel):
    """Outcome of a completed gift send, replayed verbatim for duplicate keys"""
    transaction_id: str
    sender_id: str
    receiver_id: str
    gift_id: str
    room_id: Optional[str] = None
    room_owner_id: Optional[str] = None
    quantity: int
    total_price: int
    new_sender_balance: int
    receiver_share: int
    owner_share: int
    platform_share: int
    created_at: datetime


class GrantRecord(BaseModel):
    """Current state of a user's grant of one kind"""
    user_id: str
    kind: str
    type: Optional[str] = None
    status: str = "NONE"
    price: int = 0
    expires_at: Optional[datetime] = None
    is_active: bool = False
    days_remaining: int = 0
    new_balance: Optional[int] = None


class SweepReport(BaseModel):
    """Per-task counts and failures of one sweep run"""
    job: str
    counts: Dict[str, int] = Field(default_factory=dict)
    errors: Dict[str, str] = Field(default_factory=dict)
    started_at: datetime
    finished_at: Optional[datetime] = None
    skipped: bool = False
    skipped_tasks: List[str] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.counts.values())
