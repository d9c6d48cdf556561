# Models Package
from .wallet import Wallet
from .ledger_entry import LedgerEntry
from .gift import Gift, GiftSend
from .room import Room, RoomMember
from .grant import Grant
from .housekeeping import AgentRequest, RefreshToken, Notification, Message
from .audit_log import AuditLog

__all__ = [
    "Wallet",
    "LedgerEntry",
    "Gift",
    "GiftSend",
    "Room",
    "RoomMember",
    "Grant",
    "AgentRequest",
    "RefreshToken",
    "Notification",
    "Message",
    "AuditLog"
]
