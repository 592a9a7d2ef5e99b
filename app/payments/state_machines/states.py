"""
State enums for payment models.

This module defines all state enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Payment escrow (EscrowStatus, FSM-managed):
    pending → held                     (charge confirmed by webhook/verify)
    held → released                    (booking completed, or dispute pays vendor)
    held → refunded                    (cancellation, rejection, dispute refund)
    held → split                       (dispute partial refund)

Payment status (PaymentStatus, mirrors escrow for clients):
    pending → escrowed → released / refunded / partially_refunded
    pending → failed

Withdrawal:
    pending → processing → completed
    pending → processing → failed      (wallet re-credited)
    pending → rejected                 (wallet re-credited)

Subscription:
    pending → active → expired / cancelled
"""

from django.db import models


class EscrowStatus(models.TextChoices):
    """
    Escrow lifecycle of a Payment.

    Terminal states: RELEASED, REFUNDED, SPLIT
    Exactly one of release/refund/split may succeed, and only from HELD.

    State Flow:
        PENDING → HELD → RELEASED
        PENDING → HELD → REFUNDED
        PENDING → HELD → SPLIT
    """

    PENDING = "pending", "Pending"
    HELD = "held", "Held"
    RELEASED = "released", "Released"
    REFUNDED = "refunded", "Refunded"
    SPLIT = "split", "Split"


# Escrow states after settlement; a second settlement attempt is a conflict
SETTLED_ESCROW_STATUSES = frozenset(
    {EscrowStatus.RELEASED, EscrowStatus.REFUNDED, EscrowStatus.SPLIT}
)


class PaymentStatus(models.TextChoices):
    """
    Client-facing status of a Payment.

    Updated alongside the escrow transitions; FAILED is only reachable
    while the charge is still PENDING.
    """

    PENDING = "pending", "Pending"
    ESCROWED = "escrowed", "Escrowed"
    FAILED = "failed", "Failed"
    RELEASED = "released", "Released"
    REFUNDED = "refunded", "Refunded"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially Refunded"


class TransactionType(models.TextChoices):
    """Kinds of wallet movement recorded in the Transaction log."""

    DEPOSIT = "deposit", "Deposit"
    WITHDRAWAL = "withdrawal", "Withdrawal"
    BOOKING_PAYMENT = "booking_payment", "Booking Payment"
    REFUND = "refund", "Refund"
    COMMISSION = "commission", "Commission"
    REFERRAL_BONUS = "referral_bonus", "Referral Bonus"
    SUBSCRIPTION_PAYMENT = "subscription_payment", "Subscription Payment"


class TransactionStatus(models.TextChoices):
    """
    Status of a Transaction row.

    Withdrawal debits start PENDING until the transfer settles; every other
    wallet movement is COMPLETED when written.
    """

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class WithdrawalStatus(models.TextChoices):
    """
    States for the Withdrawal lifecycle.

    Terminal states: COMPLETED, FAILED, REJECTED

    State Flow:
        PENDING → PROCESSING → COMPLETED
        PENDING → PROCESSING → FAILED
        PENDING → REJECTED
        COMPLETED → FAILED (transfer reversed)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REJECTED = "rejected", "Rejected"


class SubscriptionTier(models.TextChoices):
    """
    Vendor subscription tiers.

    The tier decides the monthly fee and the commission the platform keeps
    from each booking (see payments.services.commission).
    """

    IN_SHOP = "in_shop", "In Shop"
    HOME_SERVICE = "home_service", "Home Service"
    BOTH = "both", "Both"


class SubscriptionStatus(models.TextChoices):
    """
    States for vendor Subscription.

    State Flow:
        PENDING → ACTIVE (first payment, or immediately for free tiers)
        ACTIVE → EXPIRED / CANCELLED
    """

    PENDING = "pending", "Pending"
    ACTIVE = "active", "Active"
    EXPIRED = "expired", "Expired"
    CANCELLED = "cancelled", "Cancelled"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    Tracks the lifecycle of webhook event processing for idempotency.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


__all__ = [
    "EscrowStatus",
    "SETTLED_ESCROW_STATUSES",
    "PaymentStatus",
    "TransactionType",
    "TransactionStatus",
    "WithdrawalStatus",
    "SubscriptionTier",
    "SubscriptionStatus",
    "WebhookEventStatus",
]
