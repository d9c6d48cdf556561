"""
Grant package catalog
"""

from typing import Dict, List, NamedTuple, Optional

from economy.core.errors import ValidationError
from economy.models.enums import GrantKind


class GrantPackage(NamedTuple):
    type: str
    kind: GrantKind
    name: str
    price: int
    duration_days: int

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "kind": self.kind.value,
            "name": self.name,
            "price": self.price,
            "duration_days": self.duration_days,
        }


VERIFICATION_PACKAGES = [
    GrantPackage("BLUE", GrantKind.VERIFICATION, "Blue badge", 5000, 30),
    GrantPackage("GOLD", GrantKind.VERIFICATION, "Gold badge", 15000, 30),
    GrantPackage("PURPLE", GrantKind.VERIFICATION, "Royal badge", 25000, 30),
    GrantPackage("DIAMOND", GrantKind.VERIFICATION, "Diamond badge", 50000, 30),
    GrantPackage("VIP", GrantKind.VERIFICATION, "VIP badge", 60000, 30),
    GrantPackage("VERIFIED", GrantKind.VERIFICATION, "Verified badge", 75000, 30),
    GrantPackage("OFFICIAL", GrantKind.VERIFICATION, "Official account", 100000, 30),
    GrantPackage("CELEBRITY", GrantKind.VERIFICATION, "Celebrity badge", 150000, 30),
]

VIP_PACKAGES = [
    GrantPackage("vip_weekly", GrantKind.VIP, "VIP weekly", 100, 7),
    GrantPackage("vip_monthly", GrantKind.VIP, "VIP monthly", 350, 30),
    GrantPackage("vip_quarterly", GrantKind.VIP, "VIP quarterly", 900, 90),
    GrantPackage("vip_yearly", GrantKind.VIP, "VIP yearly", 3000, 365),
]

PACKAGES: Dict[str, GrantPackage] = {p.type: p for p in VERIFICATION_PACKAGES + VIP_PACKAGES}


def get_package(grant_type: str) -> GrantPackage:
    """Look up a package by type, raising ValidationError for unknown types."""
    package = PACKAGES.get(grant_type)
    if package is None:
        raise ValidationError(f"Unknown grant type: {grant_type}")
    return package


def list_packages(kind: Optional[GrantKind] = None) -> List[GrantPackage]:
    return [p for p in PACKAGES.values() if kind is None or p.kind == kind]
