"""
Payment services for bookings, subscriptions and withdrawals.

This module provides:
- EscrowLedger: Booking checkout, escrow and settlement
- CommissionCalculator: Tier pricing and platform fee split
- SubscriptionRegistry: Vendor plans and the commission rate they set
- WithdrawalService: Vendor payouts and their wallet side effects

Usage:
    from payments.services import escrow_ledger, subscription_registry

    rate = subscription_registry.get_commission_rate(vendor)
    payment = escrow_ledger.initialize_payment(client, booking.id)

    from payments.services import withdrawal_service

    withdrawal = withdrawal_service.request_withdrawal(
        vendor, 5000, "GTBank", "0123456789", "Ada Vendor", pin="1234"
    )
"""

from payments.services.commission import (
    TIER_PRICING,
    CommissionCalculator,
    FeeSplit,
    TierPricing,
    round_half_up,
)
from payments.services.escrow_ledger import EscrowLedger, escrow_ledger
from payments.services.subscription_service import (
    SubscriptionRegistry,
    subscription_registry,
)
from payments.services.withdrawal_service import (
    BANK_CODES,
    WithdrawalService,
    resolve_bank_code,
    withdrawal_service,
)

__all__ = [
    "BANK_CODES",
    "TIER_PRICING",
    "CommissionCalculator",
    "EscrowLedger",
    "FeeSplit",
    "SubscriptionRegistry",
    "TierPricing",
    "WithdrawalService",
    "escrow_ledger",
    "resolve_bank_code",
    "round_half_up",
    "subscription_registry",
    "withdrawal_service",
]
