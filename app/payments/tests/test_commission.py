"""Tests for tier pricing and the platform fee split."""

from decimal import Decimal

import pytest

from payments.services.commission import CommissionCalculator, round_half_up
from payments.state_machines import SubscriptionTier


class TestSplit:
    @pytest.mark.parametrize(
        "amount, rate, fee, vendor",
        [
            (5000, 10, 500, 4500),
            (5000, 0, 0, 5000),
            (5000, 12, 600, 4400),
            (1005, 10, 101, 904),  # 100.5 rounds up
            (1004, 10, 100, 904),
            (0, 10, 0, 0),
            (7000, 100, 7000, 0),
        ],
    )
    def test_split(self, amount, rate, fee, vendor):
        split = CommissionCalculator.split(amount, rate)

        assert split.platform_fee == fee
        assert split.vendor_amount == vendor
        assert split.platform_fee + split.vendor_amount == amount

    def test_accepts_decimal_and_string_rates(self):
        assert CommissionCalculator.split(2500, Decimal("12.5")).platform_fee == 313
        assert CommissionCalculator.split(2500, "12.5").platform_fee == 313

    @pytest.mark.parametrize("amount, rate", [(-1, 10), (100, -1), (100, 101)])
    def test_rejects_out_of_range(self, amount, rate):
        with pytest.raises(ValueError):
            CommissionCalculator.split(amount, rate)


class TestPricingFor:
    def test_tiers(self):
        assert CommissionCalculator.pricing_for(SubscriptionTier.IN_SHOP).monthly_fee == 5000
        assert CommissionCalculator.pricing_for(SubscriptionTier.IN_SHOP).commission_rate == 0
        assert CommissionCalculator.pricing_for(SubscriptionTier.HOME_SERVICE).monthly_fee == 0
        assert CommissionCalculator.pricing_for(SubscriptionTier.HOME_SERVICE).commission_rate == 10
        assert CommissionCalculator.pricing_for(SubscriptionTier.BOTH).commission_rate == 12

    def test_unknown_tier(self):
        with pytest.raises(ValueError):
            CommissionCalculator.pricing_for("platinum")


def test_round_half_up():
    assert round_half_up(Decimal("2.5")) == 3
    assert round_half_up(Decimal("2.49")) == 2
    assert round_half_up(Decimal("-2.5")) == -3
