"""
Notification dispatch service.

This module provides the single entry point other apps use to tell a user
that something happened to their booking, payment, dispute, referral or
withdrawal.

Design Principles:
    - Services are stateless (use class methods)
    - notify() never raises; failures are logged and returned as
      ServiceResult.failure so a notice can never roll back money movement
    - The email copy is queued with transaction.on_commit, so nothing is
      sent for work that is later rolled back

Usage:
    from notifications.models import NotificationType
    from notifications.services import notification_dispatcher

    notification_dispatcher.notify(
        booking.client,
        NotificationType.BOOKING_ACCEPTED,
        {"booking_id": str(booking.id)},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction

from core.services import BaseService, ServiceResult
from notifications.models import Notification, NotificationType

if TYPE_CHECKING:
    from accounts.models import User


# (title, body) per event; rendered with the notify() data dict
TEMPLATES: dict[str, tuple[str, str]] = {
    NotificationType.BOOKING_CREATED: (
        "New booking request",
        "You have a new booking for {service_name} on {scheduled_date}.",
    ),
    NotificationType.BOOKING_ACCEPTED: (
        "Booking accepted",
        "Your booking for {service_name} has been accepted.",
    ),
    NotificationType.BOOKING_REJECTED: (
        "Booking rejected",
        "Your booking for {service_name} was rejected: {reason}",
    ),
    NotificationType.BOOKING_STARTED: (
        "Service started",
        "Your {service_name} appointment has started.",
    ),
    NotificationType.BOOKING_MARKED_COMPLETE: (
        "Confirm completion",
        "The {marked_by} marked {service_name} as complete. Please confirm.",
    ),
    NotificationType.BOOKING_COMPLETED: (
        "Booking completed",
        "Your booking for {service_name} is complete.",
    ),
    NotificationType.BOOKING_CANCELLED: (
        "Booking cancelled",
        "The booking for {service_name} was cancelled: {reason}",
    ),
    NotificationType.PAYMENT_ESCROWED: (
        "Payment received",
        "Payment of {amount} is held in escrow for your booking.",
    ),
    NotificationType.PAYMENT_RELEASED: (
        "Payment released",
        "{amount} has been credited to your wallet.",
    ),
    NotificationType.PAYMENT_REFUNDED: (
        "Payment refunded",
        "{amount} has been refunded to your wallet.",
    ),
    NotificationType.DISPUTE_CREATED: (
        "Dispute opened",
        "A dispute was opened on your booking: {reason}",
    ),
    NotificationType.DISPUTE_MESSAGE: (
        "New dispute message",
        "There is a new message on your dispute.",
    ),
    NotificationType.DISPUTE_RESOLVED: (
        "Dispute resolved",
        "Your dispute was resolved: {resolution}.",
    ),
    NotificationType.REFERRAL_REWARD: (
        "Referral reward",
        "{amount} referral bonus has been added to your wallet.",
    ),
    NotificationType.WITHDRAWAL_COMPLETED: (
        "Withdrawal completed",
        "Your withdrawal of {amount} has been paid out.",
    ),
    NotificationType.WITHDRAWAL_FAILED: (
        "Withdrawal failed",
        "Your withdrawal of {amount} failed and was returned to your wallet.",
    ),
    NotificationType.SUBSCRIPTION_ACTIVATED: (
        "Subscription active",
        "Your {tier} subscription is active until {end_date}.",
    ),
}


class _BlankMissing(dict):
    """Format mapping that renders unknown placeholders as empty strings."""

    def __missing__(self, key):
        return ""


def render(notification_type: str, data: dict) -> tuple[str, str]:
    """Render the (title, body) pair for an event."""
    title, body = TEMPLATES.get(notification_type, (notification_type.replace("_", " ").capitalize(), ""))
    values = _BlankMissing(data)
    return title.format_map(values), body.format_map(values)


class NotificationDispatcher(BaseService):
    """
    Creates notifications and queues their email copy.

    Methods:
        notify: Persist one notification and queue its email
        mark_as_read: Mark a recipient's notification as read
    """

    @classmethod
    def notify(
        cls,
        recipient: User,
        notification_type: str,
        data: dict | None = None,
        idempotency_key: str | None = None,
    ) -> ServiceResult[Notification]:
        """
        Notify a user of a marketplace event.

        Args:
            recipient: User receiving the notice
            notification_type: NotificationType value
            data: JSON-serializable context used for rendering and stored
            idempotency_key: Optional key; a second notify with the same key
                is reported as DUPLICATE and creates nothing

        Returns:
            ServiceResult with the created Notification, or a failure
        """
        from notifications import tasks

        data = data or {}
        logger = cls.get_logger()

        try:
            title, body = render(notification_type, data)
            # Savepoint so a duplicate key does not poison the caller's transaction
            with transaction.atomic():
                notification = Notification.objects.create(
                    recipient=recipient,
                    notification_type=notification_type,
                    title=title,
                    body=body,
                    data=data,
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            logger.info(
                "Duplicate notification prevented",
                extra={"idempotency_key": idempotency_key},
            )
            return ServiceResult.failure(
                "Notification already sent",
                error_code="DUPLICATE",
            )
        except Exception as e:
            logger.error(
                f"Failed to create notification {notification_type} for user {recipient.pk}: {e}",
                exc_info=True,
            )
            return ServiceResult.from_exception(e, error_code="NOTIFICATION_FAILED")

        notification_id = str(notification.id)
        transaction.on_commit(
            lambda: tasks.send_notification_email.delay(notification_id)
        )

        logger.info(
            f"Created notification {notification.id} of type {notification_type} "
            f"for user {recipient.pk}"
        )
        return ServiceResult.success(notification)

    @classmethod
    def mark_as_read(cls, recipient: User, notification_id) -> ServiceResult[int]:
        """Mark one of the recipient's notifications as read."""
        updated = Notification.objects.filter(
            id=notification_id,
            recipient=recipient,
            is_read=False,
        ).update(is_read=True)
        if not updated and not Notification.objects.filter(
            id=notification_id, recipient=recipient
        ).exists():
            return ServiceResult.failure("Notification not found", error_code="NOT_FOUND")
        return ServiceResult.success(updated)


# Module-level singleton
notification_dispatcher = NotificationDispatcher()
