"""
Referral model.

A Referral links a referee (the new user) to the referrer whose code they
applied. It completes when the referee's first booking completes, which
pays both rewards into their wallets.
"""

from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class ReferralStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    EXPIRED = "expired", "Expired"
    CANCELLED = "cancelled", "Cancelled"


def default_referrer_reward() -> int:
    return settings.REFERRER_REWARD


def default_referee_reward() -> int:
    return settings.REFEREE_REWARD


def default_expires_at():
    return timezone.now() + timedelta(days=settings.REFERRAL_EXPIRY_DAYS)


class Referral(UUIDPrimaryKeyMixin, BaseModel):
    """
    One referrer/referee pair.

    Each reward is paid at most once: referrer_paid and referee_paid are
    flipped under a row lock together with the wallet credit, and the paying
    Transaction is linked.

    Fields:
        referrer / referee: Existing user and the user who applied the code
        referral_code: Code that was applied
        status: pending until the first booking completes or the link expires
        referrer_reward / referee_reward: Amounts snapshotted from settings
        expires_at: Pending referrals past this date are expired by a beat task
    """

    referrer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="referrals_made",
        help_text="User whose code was applied",
    )
    referee = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="referral",
        help_text="User who applied the code",
    )
    referral_code = models.CharField(max_length=20, help_text="Code that was applied")

    status = models.CharField(
        max_length=20,
        choices=ReferralStatus.choices,
        default=ReferralStatus.PENDING,
        db_index=True,
    )

    requires_first_booking = models.BooleanField(
        default=True,
        help_text="Rewards wait for the referee's first completed booking",
    )
    first_booking_completed = models.BooleanField(default=False)
    first_booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Booking that completed the referral",
    )

    referrer_reward = models.PositiveBigIntegerField(default=default_referrer_reward)
    referee_reward = models.PositiveBigIntegerField(default=default_referee_reward)

    referrer_paid = models.BooleanField(default=False)
    referrer_paid_at = models.DateTimeField(null=True, blank=True)
    referrer_transaction = models.ForeignKey(
        "payments.Transaction",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    referee_paid = models.BooleanField(default=False)
    referee_paid_at = models.DateTimeField(null=True, blank=True)
    referee_transaction = models.ForeignKey(
        "payments.Transaction",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    completed_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(default=default_expires_at, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "referral"
        verbose_name_plural = "referrals"
        indexes = [
            models.Index(fields=["referrer", "status"]),
        ]

    def __str__(self) -> str:
        return f"Referral({self.referral_code}, {self.status})"
