"""
Commission pricing.

Pure functions mapping a subscription tier to its monthly fee and
commission rate, and splitting a payment amount into the platform fee
and the vendor share.

Usage:
    from payments.services.commission import CommissionCalculator

    split = CommissionCalculator.split(amount=5000, rate=Decimal("10"))
    split.platform_fee  # 500
    split.vendor_amount  # 4500
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from payments.state_machines import SubscriptionTier


@dataclass(frozen=True)
class TierPricing:
    monthly_fee: int
    commission_rate: Decimal


@dataclass(frozen=True)
class FeeSplit:
    """
    Platform/vendor division of one payment.

    platform_fee + vendor_amount always equals amount.
    """

    amount: int
    commission_rate: Decimal
    platform_fee: int
    vendor_amount: int


TIER_PRICING: dict[str, TierPricing] = {
    SubscriptionTier.IN_SHOP: TierPricing(monthly_fee=5000, commission_rate=Decimal("0")),
    SubscriptionTier.HOME_SERVICE: TierPricing(monthly_fee=0, commission_rate=Decimal("10")),
    SubscriptionTier.BOTH: TierPricing(monthly_fee=5000, commission_rate=Decimal("12")),
}


def round_half_up(value: Decimal) -> int:
    """Round to the nearest whole unit, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CommissionCalculator:
    """Stateless tier pricing and fee splitting."""

    @staticmethod
    def pricing_for(tier: str) -> TierPricing:
        """
        Monthly fee and commission rate for a tier.

        Raises:
            ValueError: Unknown tier
        """
        try:
            return TIER_PRICING[tier]
        except KeyError:
            raise ValueError(f"Unknown subscription tier: {tier}")

    @staticmethod
    def split(amount: int, rate: Decimal | int | str) -> FeeSplit:
        """
        Split amount by a commission percentage.

        platform_fee = round_half_up(amount * rate / 100), and the vendor
        receives the remainder.
        """
        rate = Decimal(str(rate))
        if amount < 0:
            raise ValueError("amount must not be negative")
        if rate < 0 or rate > 100:
            raise ValueError("commission rate must be between 0 and 100")

        platform_fee = round_half_up(Decimal(amount) * rate / Decimal(100))
        return FeeSplit(
            amount=amount,
            commission_rate=rate,
            platform_fee=platform_fee,
            vendor_amount=amount - platform_fee,
        )
