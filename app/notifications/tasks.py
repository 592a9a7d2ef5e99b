"""
Celery tasks for notification delivery.

Tasks:
    send_notification_email: Email the rendered notice to its recipient

Design:
    - Tasks receive notification_id (UUID string)
    - Idempotent: a notification with email_sent_at set is skipped
    - SMTP errors propagate so Celery retries with backoff

Usage:
    from notifications.tasks import send_notification_email

    # Queued by NotificationDispatcher.notify() on commit
    send_notification_email.delay(notification_id="uuid-string")
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from notifications.models import Notification

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def send_notification_email(self, notification_id: str) -> bool:
    """
    Send the email copy of a notification.

    Args:
        notification_id: UUID string of the Notification

    Returns:
        True if sent or skipped
    """
    notification = (
        Notification.objects.select_related("recipient")
        .filter(id=notification_id)
        .first()
    )
    if notification is None:
        logger.warning(f"Notification {notification_id} not found")
        return True

    if notification.email_sent_at is not None:
        logger.info(f"Notification {notification_id} already emailed, skipping")
        return True

    recipient = notification.recipient
    if not recipient.email:
        logger.info(f"Notification {notification_id} skipped: recipient has no email")
        return True

    send_mail(
        subject=notification.title,
        message=notification.body or notification.title,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient.email],
    )

    Notification.objects.filter(id=notification.id).update(
        email_sent_at=timezone.now()
    )
    logger.info(f"Email sent for notification {notification_id} to {recipient.email}")
    return True
