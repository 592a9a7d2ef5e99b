"""
Subscription model for vendor plans.

A vendor's active subscription decides the commission the platform keeps
from each booking. Paid tiers are renewed monthly from the vendor's wallet.

Usage:
    from payments.models import Subscription

    subscription = Subscription.objects.filter(
        vendor=vendor, status=SubscriptionStatus.ACTIVE
    ).first()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import SubscriptionStatus, SubscriptionTier


class Subscription(UUIDPrimaryKeyMixin, BaseModel):
    """
    A vendor's plan.

    State Flow:
        PENDING -> ACTIVE (first payment, or on creation for free tiers)
        ACTIVE -> ACTIVE (renewal payment)
        PENDING/ACTIVE -> CANCELLED
        ACTIVE -> EXPIRED
        ACTIVE -> PENDING (changed to a paid tier before any payment)

    Fields:
        vendor: Subscribed vendor
        tier: Plan tier
        monthly_fee: Fee debited from the wallet each month
        commission_rate: Percentage kept by the platform per booking
        start_date / end_date: Current paid period
        next_payment_due: Seven days before end_date
        last_payment_*: Most recent renewal
    """

    vendor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="subscriptions",
        help_text="Subscribed vendor",
    )

    tier = models.CharField(
        max_length=20,
        choices=SubscriptionTier.choices,
        help_text="Subscription tier",
    )

    monthly_fee = models.PositiveBigIntegerField(
        help_text="Monthly fee in whole currency units",
    )

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        help_text="Commission percentage for bookings under this plan",
    )

    status = FSMField(
        default=SubscriptionStatus.PENDING,
        choices=SubscriptionStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current subscription state (managed by FSM)",
    )

    # ==========================================================================
    # Billing Period
    # ==========================================================================

    start_date = models.DateTimeField(help_text="Start of the subscription")
    end_date = models.DateTimeField(help_text="End of the current paid period")
    next_payment_due = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the next renewal is due",
    )
    auto_renew = models.BooleanField(
        default=True,
        help_text="Whether the plan renews automatically",
    )

    last_payment_date = models.DateTimeField(null=True, blank=True, help_text="Last renewal time")
    last_payment_amount = models.PositiveBigIntegerField(null=True, blank=True, help_text="Last renewal amount")
    last_payment_reference = models.CharField(max_length=64, blank=True, help_text="Last renewal reference")

    cancelled_at = models.DateTimeField(null=True, blank=True, help_text="When the plan was cancelled")
    cancellation_reason = models.TextField(blank=True, help_text="Why the plan was cancelled")

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        indexes = [
            models.Index(fields=["vendor", "status"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["vendor"],
                condition=models.Q(status__in=[SubscriptionStatus.PENDING, SubscriptionStatus.ACTIVE]),
                name="subscription_one_open_per_vendor",
            ),
        ]

    def __str__(self) -> str:
        return f"Subscription({self.vendor_id}, {self.tier}, {self.status})"

    @property
    def is_free(self) -> bool:
        return self.monthly_fee == 0

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=[SubscriptionStatus.PENDING, SubscriptionStatus.ACTIVE],
        target=SubscriptionStatus.ACTIVE,
    )
    def activate(self):
        """
        Activate or renew the plan.

        Transition: PENDING/ACTIVE -> ACTIVE
        """

    @transition(
        field=status,
        source=[SubscriptionStatus.PENDING, SubscriptionStatus.ACTIVE],
        target=SubscriptionStatus.CANCELLED,
    )
    def cancel(self, reason: str = ""):
        """
        Cancel the plan.

        Transition: PENDING/ACTIVE -> CANCELLED
        """
        self.cancelled_at = timezone.now()
        self.cancellation_reason = reason or ""
        self.auto_renew = False

    @transition(
        field=status,
        source=SubscriptionStatus.ACTIVE,
        target=SubscriptionStatus.EXPIRED,
    )
    def expire(self):
        """
        Expire a plan whose paid period ended.

        Transition: ACTIVE -> EXPIRED
        """

    @transition(
        field=status,
        source=SubscriptionStatus.ACTIVE,
        target=SubscriptionStatus.PENDING,
    )
    def await_payment(self):
        """
        Move a never-paid plan back to PENDING after switching to a paid tier.

        Transition: ACTIVE -> PENDING
        """
