"""
Payment domain models.

This module contains all payment-related models:
- Payment: Escrowed checkout for one booking
- Transaction: Append-only wallet log
- Withdrawal: Vendor payout to a bank account
- Subscription: Vendor plan deciding the commission rate
- WebhookEvent: Paystack webhook tracking for idempotent processing
"""

from payments.models.payment import Payment
from payments.models.subscription import Subscription
from payments.models.transaction import ImmutableTransactionError, Transaction
from payments.models.webhook_event import WebhookEvent
from payments.models.withdrawal import Withdrawal

__all__ = [
    "ImmutableTransactionError",
    "Payment",
    "Subscription",
    "Transaction",
    "WebhookEvent",
    "Withdrawal",
]
