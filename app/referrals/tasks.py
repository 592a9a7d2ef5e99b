"""
Celery tasks for referrals.

Tasks:
    expire_old_referrals: Daily beat task (see CELERY_BEAT_SCHEDULE)
"""

from __future__ import annotations

import logging

from celery import shared_task

from referrals.services import referral_service

logger = logging.getLogger(__name__)


@shared_task
def expire_old_referrals() -> int:
    """Expire pending referrals whose expires_at has passed."""
    count = referral_service.expire_old_referrals()
    logger.info(f"Referral expiry run finished: {count} expired")
    return count
