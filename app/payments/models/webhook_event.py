"""
WebhookEvent model for Paystack webhook tracking.

Stores every verified webhook delivery for idempotent processing and as an
audit trail. Paystack events carry no event id of their own, so the unique
event_key is built from the event name and the id (or reference) of the
object it describes.

Usage:
    from payments.models import WebhookEvent

    event, created = WebhookEvent.objects.get_or_create(
        event_key=WebhookEvent.build_event_key(payload),
        defaults={"event_type": payload["event"], "payload": payload},
    )
    if not created:
        return HttpResponse(status=200)  # duplicate delivery
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks Paystack webhook events for idempotent processing.

    Processing Flow:
        1. Webhook arrives, signature verified
        2. get_or_create on event_key
        3. Existing row -> 200, nothing else happens
        4. New row -> process_webhook_event task
        5. Task marks PROCESSING, routes to the handler, then PROCESSED or FAILED
        6. FAILED rows are retried by retry_failed_webhooks

    Fields:
        event_key: "{event}:{data.id or data.reference}", unique
        event_type: Paystack event name (charge.success, transfer.failed, ...)
        payload: Full JSON body
        status: Processing status
        retry_count: Number of processing attempts
    """

    event_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Event name plus object id or reference; unique for idempotency",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Paystack event type (e.g., 'charge.success')",
    )

    payload = models.JSONField(
        help_text="Full webhook payload from Paystack (JSON)",
    )

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When event was successfully processed",
    )

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"]),
            models.Index(fields=["status", "retry_count"]),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.event_key})"

    @staticmethod
    def build_event_key(payload: dict) -> str:
        """Return the idempotency key for a Paystack webhook body."""
        data = payload.get("data") or {}
        object_key = data.get("id") or data.get("reference") or ""
        return f"{payload.get('event', '')}:{object_key}"

    @property
    def data(self) -> dict:
        return self.payload.get("data") or {}

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def is_failed(self) -> bool:
        return self.status == WebhookEventStatus.FAILED

    @property
    def can_retry(self) -> bool:
        """Failed and still under WEBHOOK_MAX_RETRIES attempts."""
        max_retries = getattr(settings, "WEBHOOK_MAX_RETRIES", 5)
        return self.is_failed and self.retry_count < max_retries

    def mark_processing(self) -> None:
        """
        Mark event as being processed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        """Note: Does not save - caller must save after calling."""
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        """Note: Does not save - caller must save after calling."""
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message
