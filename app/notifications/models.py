"""
Notification models.

Notifications are immutable records: title and body are rendered at
creation time and kept as history even if the templates change.

Models:
    Notification: One notice for one recipient
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class NotificationType(models.TextChoices):
    """Marketplace events that produce a notification."""

    BOOKING_CREATED = "booking_created", "Booking Created"
    BOOKING_ACCEPTED = "booking_accepted", "Booking Accepted"
    BOOKING_REJECTED = "booking_rejected", "Booking Rejected"
    BOOKING_STARTED = "booking_started", "Booking Started"
    BOOKING_MARKED_COMPLETE = "booking_marked_complete", "Booking Marked Complete"
    BOOKING_COMPLETED = "booking_completed", "Booking Completed"
    BOOKING_CANCELLED = "booking_cancelled", "Booking Cancelled"
    PAYMENT_ESCROWED = "payment_escrowed", "Payment Escrowed"
    PAYMENT_RELEASED = "payment_released", "Payment Released"
    PAYMENT_REFUNDED = "payment_refunded", "Payment Refunded"
    DISPUTE_CREATED = "dispute_created", "Dispute Created"
    DISPUTE_MESSAGE = "dispute_message", "Dispute Message"
    DISPUTE_RESOLVED = "dispute_resolved", "Dispute Resolved"
    REFERRAL_REWARD = "referral_reward", "Referral Reward"
    WITHDRAWAL_COMPLETED = "withdrawal_completed", "Withdrawal Completed"
    WITHDRAWAL_FAILED = "withdrawal_failed", "Withdrawal Failed"
    SUBSCRIPTION_ACTIVATED = "subscription_activated", "Subscription Activated"


class Notification(UUIDPrimaryKeyMixin, BaseModel):
    """
    A rendered notice for one user.

    Fields:
        recipient: User receiving the notification
        notification_type: Event key (NotificationType)
        title / body: Fully rendered strings
        data: JSON context (entity ids, amounts)
        idempotency_key: Optional key preventing duplicate notices
        is_read: Whether the recipient has read it
        email_sent_at: When the email copy was sent (None until sent)

    Note:
        - recipient CASCADE: Notifications deleted when user deleted
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User receiving this notification",
    )
    notification_type = models.CharField(
        max_length=40,
        choices=NotificationType.choices,
        help_text="Event that produced this notification",
    )
    title = models.CharField(
        max_length=255,
        help_text="Fully rendered notification title",
    )
    body = models.TextField(
        blank=True,
        default="",
        help_text="Fully rendered notification body",
    )
    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Context data (entity ids, amounts)",
    )
    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Idempotency key to prevent duplicate notifications",
    )
    is_read = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether recipient has read this notification",
    )
    email_sent_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the email copy was delivered",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["idempotency_key"],
                name="notif_idempotency_key_unique",
                condition=models.Q(idempotency_key__isnull=False),
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return f"Notification({self.notification_type}) -> User {self.recipient_id} [{read_status}]"
