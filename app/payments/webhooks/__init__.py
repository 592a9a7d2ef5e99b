"""
Webhook handling for Paystack events.

Webhooks are verified, stored idempotently, and processed asynchronously
via Celery tasks.
"""

from payments.webhooks.handlers import dispatch_webhook, register_handler
from payments.webhooks.views import paystack_webhook

__all__ = [
    "dispatch_webhook",
    "register_handler",
    "paystack_webhook",
]
