"""
Gift commission split
"""

from typing import NamedTuple

from economy.core.config import settings
from economy.core.errors import ValidationError


class CommissionRatios(NamedTuple):
    """Percentages of a gift's price going to each party"""
    platform: int
    receiver: int
    room_owner: int

    @classmethod
    def from_settings(cls) -> "CommissionRatios":
        return cls(settings.gift_platform_pct, settings.gift_receiver_pct, settings.gift_room_owner_pct)


class CommissionSplit(NamedTuple):
    platform: int
    receiver: int
    owner: int


def split_commission(total: int, ratios: CommissionRatios, has_owner: bool = True) -> CommissionSplit:
    """
    Split ``total`` coins between platform, receiver and room owner.

    Receiver and owner shares are rounded down; the platform share is the
    remainder, so the three shares always add up to ``total``. Without a room
    owner the owner's percentage stays with the platform.

    Args:
        total: Total price in coins
        ratios: Percentages, summing to 100
        has_owner: Whether a room owner takes a share

    Returns:
        CommissionSplit(platform, receiver, owner)
    """
    if total < 0:
        raise ValidationError("Total must not be negative")
    if any(pct < 0 for pct in ratios) or sum(ratios) != 100:
        raise ValidationError(f"Commission percentages must be non-negative and sum to 100, got {tuple(ratios)}")

    receiver = total * ratios.receiver // 100
    owner = total * ratios.room_owner // 100 if has_owner else 0
    return CommissionSplit(platform=total - receiver - owner, receiver=receiver, owner=owner)
