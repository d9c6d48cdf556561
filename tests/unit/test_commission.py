"""
Unit tests for the gift commission split
"""

import pytest

from economy.core.errors import ValidationError
from economy.services.commission import CommissionRatios, split_commission


class TestCommissionSplit:
    """Receiver and owner round down, the platform keeps the remainder"""

    def test_room_gift_example(self):
        split = split_commission(60, CommissionRatios(platform=40, receiver=30, room_owner=30))

        assert split.receiver == 18
        assert split.owner == 18
        assert split.platform == 24

    def test_default_ratios(self):
        split = split_commission(1000, CommissionRatios(platform=20, receiver=70, room_owner=10))

        assert (split.platform, split.receiver, split.owner) == (200, 700, 100)

    def test_rounding_remainder_goes_to_platform(self):
        split = split_commission(7, CommissionRatios(platform=20, receiver=70, room_owner=10))

        # 4.9 -> 4 and 0.7 -> 0
        assert split.receiver == 4
        assert split.owner == 0
        assert split.platform == 3

    def test_shares_always_add_up(self):
        ratio_sets = [
            CommissionRatios(20, 70, 10),
            CommissionRatios(40, 30, 30),
            CommissionRatios(0, 100, 0),
            CommissionRatios(1, 33, 66),
            CommissionRatios(100, 0, 0),
        ]
        for ratios in ratio_sets:
            for total in range(0, 1001):
                for has_owner in (True, False):
                    split = split_commission(total, ratios, has_owner=has_owner)
                    assert split.platform + split.receiver + split.owner == total
                    assert min(split) >= 0

    def test_owner_share_folds_into_platform_without_owner(self):
        split = split_commission(60, CommissionRatios(40, 30, 30), has_owner=False)

        assert split.owner == 0
        assert split.receiver == 18
        assert split.platform == 42

    @pytest.mark.parametrize("ratios", [
        CommissionRatios(50, 50, 10),
        CommissionRatios(-10, 80, 30),
    ])
    def test_invalid_ratios_rejected(self, ratios):
        with pytest.raises(ValidationError):
            split_commission(100, ratios)

    def test_negative_total_rejected(self):
        with pytest.raises(ValidationError):
            split_commission(-1, CommissionRatios(20, 70, 10))
