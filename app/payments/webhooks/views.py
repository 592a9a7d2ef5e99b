"""
Webhook endpoint view for Paystack.

The view:
1. Verifies the x-paystack-signature header over the raw body
2. Creates or retrieves the WebhookEvent record (idempotent on event_key)
3. Queues the event for async processing once the row is committed
4. Returns immediately

Usage:
    # In urls.py
    from payments.webhooks.views import paystack_webhook

    urlpatterns = [
        path("webhooks/paystack/", paystack_webhook, name="paystack-webhook"),
    ]
"""

from __future__ import annotations

import json
import logging

from django.db import transaction
from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import PaystackAdapter
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("payments.security")


@csrf_exempt
@require_POST
def paystack_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and queue Paystack webhook events.

    Security:
    - HMAC-SHA512 of the raw body with PAYSTACK_SECRET_KEY, compared in
      constant time; a mismatch is logged on payments.security and nothing
      is written
    - CSRF exemption required for external webhooks

    Idempotency:
    - WebhookEvent.event_key is unique ("{event}:{data.id or reference}")
    - A redelivered event that was already processed returns 200 at once

    Returns:
        HttpResponse with status:
        - 200: Event accepted (new or duplicate)
        - 400: Invalid signature or payload
    """
    payload = request.body
    signature = request.headers.get("x-paystack-signature", "")

    if not PaystackAdapter.verify_webhook_signature(payload, signature):
        security_logger.warning(
            "Webhook signature verification failed",
            extra={
                "remote_addr": request.META.get("REMOTE_ADDR"),
                "has_signature": bool(signature),
            },
        )
        return HttpResponse("Invalid signature", status=400)

    try:
        event_data = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.warning("Webhook body is not valid JSON")
        return HttpResponse("Invalid payload", status=400)

    event_type = event_data.get("event") if isinstance(event_data, dict) else None
    if not event_type:
        logger.warning("Webhook missing event type")
        return HttpResponse("Invalid event", status=400)

    event_key = WebhookEvent.build_event_key(event_data)
    logger.info(
        f"Received Paystack webhook: {event_type}",
        extra={"event_key": event_key, "event_type": event_type},
    )

    with transaction.atomic():
        webhook_event, created = WebhookEvent.objects.get_or_create(
            event_key=event_key,
            defaults={
                "event_type": event_type,
                "payload": event_data,
                "status": WebhookEventStatus.PENDING,
            },
        )

        if not created and webhook_event.status in (
            WebhookEventStatus.PROCESSED,
            WebhookEventStatus.PROCESSING,
        ):
            logger.info(
                "Duplicate webhook delivery ignored",
                extra={"event_key": event_key, "status": webhook_event.status},
            )
            return HttpResponse("Already received", status=200)

        from payments.tasks import process_webhook_event

        webhook_event_id = str(webhook_event.id)
        transaction.on_commit(lambda: process_webhook_event.delay(webhook_event_id))

    return HttpResponse("Accepted", status=200)
