"""
State machine enums for payment models.

This module re-exports the state enums used by payment models with django-fsm.
"""

from payments.state_machines.states import (
    SETTLED_ESCROW_STATUSES,
    EscrowStatus,
    PaymentStatus,
    SubscriptionStatus,
    SubscriptionTier,
    TransactionStatus,
    TransactionType,
    WebhookEventStatus,
    WithdrawalStatus,
)

__all__ = [
    "SETTLED_ESCROW_STATUSES",
    "EscrowStatus",
    "PaymentStatus",
    "SubscriptionStatus",
    "SubscriptionTier",
    "TransactionStatus",
    "TransactionType",
    "WebhookEventStatus",
    "WithdrawalStatus",
]
