"""
Celery tasks for payment processing.

This module provides async tasks for:
- Processing Paystack webhook events
- Retrying failed webhook events (celery beat)
- Resetting webhook events stuck in processing
- Expiring lapsed vendor subscriptions (celery beat)
- Sending an approved withdrawal to the bank

Usage:
    from payments.tasks import process_webhook_event

    # Queued by the webhook view once the event row is committed
    process_webhook_event.delay(webhook_event_id)

    from payments.tasks import process_withdrawal_transfer
    process_withdrawal_transfer.delay(str(withdrawal.id), str(admin.id))
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from core.exceptions import BaseApplicationError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


STUCK_PROCESSING_THRESHOLD_MINUTES = 30


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 5},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a stored Paystack webhook event.

    This task:
    1. Locks the WebhookEvent row
    2. Skips it if already processed
    3. Dispatches to the registered handler
    4. Marks it processed or failed

    Unexpected exceptions mark the event failed and are re-raised so
    Celery retries; handler failures are recorded and picked up later by
    retry_failed_webhooks.
    """
    from payments.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    with transaction.atomic():
        webhook_event = WebhookEvent.objects.select_for_update().filter(id=webhook_event_id).first()
        if webhook_event is None:
            logger.error(
                "WebhookEvent not found",
                extra={"webhook_event_id": str(webhook_event_id)},
            )
            return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

        if webhook_event.is_processed:
            logger.info(
                "WebhookEvent already processed, skipping",
                extra={"event_key": webhook_event.event_key},
            )
            return {"status": "already_processed", "webhook_event_id": str(webhook_event_id)}

        webhook_event.mark_processing()
        webhook_event.save()

    logger.info(
        f"Dispatching webhook: {webhook_event.event_type}",
        extra={
            "event_key": webhook_event.event_key,
            "retry_count": webhook_event.retry_count,
        },
    )

    try:
        with transaction.atomic():
            result = dispatch_webhook(webhook_event)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.exception(
            "Webhook processing failed with exception",
            extra={"event_key": webhook_event.event_key, "error": error_msg},
        )
        raise

    if result.success:
        webhook_event.mark_processed()
        webhook_event.save()
        logger.info(
            "Webhook processed successfully",
            extra={"event_key": webhook_event.event_key},
        )
        return {"status": "processed", "webhook_event_id": str(webhook_event_id)}

    error_msg = result.error or "Handler returned failure"
    webhook_event.mark_failed(error_msg)
    webhook_event.save()
    logger.warning(
        f"Webhook handler failed: {error_msg}",
        extra={
            "event_key": webhook_event.event_key,
            "error_code": result.error_code,
        },
    )
    return {"status": "handler_failed", "webhook_event_id": str(webhook_event_id), "error": error_msg}


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Re-queue failed webhook events under WEBHOOK_MAX_RETRIES attempts.

    Scheduled by celery beat every 15 minutes.
    """
    failed_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=settings.WEBHOOK_MAX_RETRIES,
    ).order_by("created_at")[:100]

    queued_count = 0
    for webhook in failed_webhooks:
        process_webhook_event.delay(str(webhook.id))
        queued_count += 1
        logger.info(
            "Queued failed webhook for retry",
            extra={"event_key": webhook.event_key, "retry_count": webhook.retry_count},
        )

    logger.info(f"Queued {queued_count} failed webhooks for retry")
    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Reset webhooks stuck in PROCESSING (worker crashed) to FAILED so they
    are retried.
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)
    stuck_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook in stuck_webhooks:
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save()
        reset_count += 1
        logger.warning("Reset stuck webhook", extra={"event_key": webhook.event_key})

    return {"reset_count": reset_count}


# =============================================================================
# Subscription Tasks
# =============================================================================


@shared_task
def expire_subscriptions() -> dict:
    """Expire paid plans past their end date. Scheduled daily by celery beat."""
    from payments.services import subscription_registry

    return {"expired_count": subscription_registry.expire_lapsed_subscriptions()}


# =============================================================================
# Withdrawal Tasks
# =============================================================================


@shared_task
def process_withdrawal_transfer(withdrawal_id: str, admin_id: str | None = None) -> dict:
    """
    Send an approved withdrawal through Paystack.

    Gateway failures are handled by WithdrawalService (a rejected transfer
    is failed and refunded, an unconfirmed one waits for the webhook), so
    the task does not retry.
    """
    from payments.services import withdrawal_service

    admin = get_user_model().objects.filter(id=admin_id).first() if admin_id else None
    try:
        withdrawal = withdrawal_service.process_withdrawal(UUID(withdrawal_id), admin=admin)
    except BaseApplicationError as e:
        logger.warning(
            "Withdrawal not processed",
            extra={"withdrawal_id": withdrawal_id, "error_code": e.error_code},
        )
        return {"status": "skipped", "withdrawal_id": withdrawal_id, "error_code": e.error_code}

    return {"status": withdrawal.status, "withdrawal_id": withdrawal_id}
