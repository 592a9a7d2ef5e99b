"""
Webhook event handlers for Paystack events.

Handlers are registered per event type and return a ServiceResult; the
processing task records the outcome on the WebhookEvent. Every handler is
idempotent because the services it calls treat repeats as no-ops.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("refund.processed")
    def handle_refund_processed(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from core.exceptions import BaseApplicationError
from core.services import ServiceResult

from payments.services import escrow_ledger, withdrawal_service

if TYPE_CHECKING:
    from payments.models import WebhookEvent


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps Paystack event names to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Args:
        event_type: The Paystack event name (e.g., "charge.success")
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to its handler.

    Unknown event types succeed without doing anything, so Paystack stops
    redelivering them.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"event_key": webhook_event.event_key},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"event_key": webhook_event.event_key},
    )
    try:
        return handler(webhook_event)
    except BaseApplicationError as e:
        logger.warning(
            f"{webhook_event.event_type} handler raised {e.error_code}",
            extra={"event_key": webhook_event.event_key, "error": e.message},
        )
        return ServiceResult.from_exception(e)


def _reference(webhook_event: WebhookEvent) -> str | None:
    return webhook_event.data.get("reference") or None


# =============================================================================
# Charge Handlers
# =============================================================================


@register_handler("charge.success")
def handle_charge_success(webhook_event: WebhookEvent) -> ServiceResult:
    """Move the charged booking payment into escrow."""
    reference = _reference(webhook_event)
    if not reference:
        return ServiceResult.failure(
            "charge.success without a reference",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    data = webhook_event.data
    authorization = data.get("authorization") or {}
    payment = escrow_ledger.apply_charge_success(
        reference,
        authorization_code=authorization.get("authorization_code") or "",
        amount_minor_units=data.get("amount"),
    )
    return ServiceResult.success(payment)


# =============================================================================
# Transfer Handlers
# =============================================================================


@register_handler("transfer.success")
def handle_transfer_success(webhook_event: WebhookEvent) -> ServiceResult:
    """Mark the withdrawal completed."""
    reference = _reference(webhook_event)
    if not reference:
        return ServiceResult.failure(
            "transfer.success without a reference",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )
    withdrawal = withdrawal_service.complete_transfer(
        reference,
        transfer_code=webhook_event.data.get("transfer_code") or "",
    )
    return ServiceResult.success(withdrawal)


@register_handler("transfer.failed")
def handle_transfer_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """Fail the withdrawal and refund the vendor's wallet."""
    return _fail_transfer(webhook_event, is_reversal=False)


@register_handler("transfer.reversed")
def handle_transfer_reversed(webhook_event: WebhookEvent) -> ServiceResult:
    """Fail the withdrawal, even a completed one, and refund the wallet."""
    return _fail_transfer(webhook_event, is_reversal=True)


def _fail_transfer(webhook_event: WebhookEvent, is_reversal: bool) -> ServiceResult:
    reference = _reference(webhook_event)
    if not reference:
        return ServiceResult.failure(
            f"{webhook_event.event_type} without a reference",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )
    data = webhook_event.data
    reason = data.get("reason") or data.get("gateway_response") or ""
    withdrawal = withdrawal_service.fail_transfer(reference, reason=reason, is_reversal=is_reversal)
    return ServiceResult.success(withdrawal)
