"""
Celery configuration for the marketplace backend.

Background work that must not block a request or must survive a crash runs
here:
- Processing verified Paystack webhook events (charge and transfer outcomes)
- Retrying webhook events that failed processing
- Sending notification emails after the triggering transaction commits
- Executing approved withdrawal transfers
- Expiring stale referrals (periodic, via django-celery-beat)

Redis is both broker and result backend. Tasks are auto-discovered from the
tasks.py module of every installed app.

Usage:
    from payments.tasks import process_webhook_event

    process_webhook_event.delay(str(event.id))

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import logging
import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("marketplace")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()

logger = logging.getLogger(__name__)


@app.task(bind=True, ignore_result=True)
def debug_task(self):
    """Log the task request to verify worker connectivity."""
    logger.info("Celery debug task", extra={"request": repr(self.request)})
