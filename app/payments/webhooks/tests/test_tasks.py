"""
Tests for the webhook Celery tasks.

Tasks are called directly; .delay is patched where a task fans out.
"""

import uuid
from datetime import timedelta
from unittest.mock import patch

from django.utils import timezone
from freezegun import freeze_time

from payments.models import Payment, WebhookEvent
from payments.state_machines import EscrowStatus, WebhookEventStatus
from payments.tasks import (
    cleanup_stuck_webhooks,
    process_webhook_event,
    retry_failed_webhooks,
)
from payments.tests.factories import WebhookEventFactory


def charge_event(reference="PAY-123", **overrides):
    payload = {"event": "charge.success", "data": {"id": 1, "reference": reference, "amount": 500000}}
    return WebhookEventFactory(payload=payload, event_key=f"charge.success:{reference}", **overrides)


class TestProcessWebhookEvent:
    def test_processes_charge(self, pending_payment):
        webhook_event = charge_event()

        result = process_webhook_event(str(webhook_event.id))

        assert result["status"] == "processed"
        webhook_event = WebhookEvent.objects.get(id=webhook_event.id)
        assert webhook_event.status == WebhookEventStatus.PROCESSED
        assert webhook_event.retry_count == 1
        assert webhook_event.processed_at is not None
        assert Payment.objects.get(id=pending_payment.id).escrow_status == EscrowStatus.HELD

    def test_already_processed(self, db):
        webhook_event = charge_event(status=WebhookEventStatus.PROCESSED)

        result = process_webhook_event(str(webhook_event.id))

        assert result["status"] == "already_processed"

    def test_handler_failure_marks_failed(self, db):
        webhook_event = charge_event(reference="PAY-UNKNOWN")

        result = process_webhook_event(str(webhook_event.id))

        assert result["status"] == "handler_failed"
        webhook_event = WebhookEvent.objects.get(id=webhook_event.id)
        assert webhook_event.status == WebhookEventStatus.FAILED
        assert webhook_event.error_message

    def test_missing_event(self, db):
        result = process_webhook_event(str(uuid.uuid4()))

        assert result["status"] == "not_found"


class TestRetryFailedWebhooks:
    def test_requeues_under_retry_limit(self, db, settings):
        settings.WEBHOOK_MAX_RETRIES = 3
        retryable = WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=1)
        WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=3)
        WebhookEventFactory(status=WebhookEventStatus.PROCESSED)

        with patch("payments.tasks.process_webhook_event.delay") as mock_delay:
            result = retry_failed_webhooks()

        assert result == {"queued_count": 1}
        mock_delay.assert_called_once_with(str(retryable.id))


class TestCleanupStuckWebhooks:
    def test_resets_old_processing_events(self, db):
        with freeze_time(timezone.now() - timedelta(hours=1)):
            stuck = WebhookEventFactory(status=WebhookEventStatus.PROCESSING)
        recent = WebhookEventFactory(status=WebhookEventStatus.PROCESSING)

        result = cleanup_stuck_webhooks()

        assert result == {"reset_count": 1}
        assert WebhookEvent.objects.get(id=stuck.id).status == WebhookEventStatus.FAILED
        assert WebhookEvent.objects.get(id=recent.id).status == WebhookEventStatus.PROCESSING
