"""
Tests for ReferralService.

Rewards use the REFERRER_REWARD (1000) and REFEREE_REWARD (500) defaults.
"""

import uuid
from datetime import timedelta

import pytest
from django.utils import timezone
from freezegun import freeze_time

from accounts.models import User
from bookings.models import BookingStatus
from bookings.tests.factories import BookingFactory
from notifications.models import Notification, NotificationType
from payments.ledger import wallet_ledger
from payments.models import Transaction
from payments.state_machines import TransactionType
from referrals.exceptions import (
    ReferralConflictError,
    ReferralNotFoundError,
    ReferralPermissionError,
    ReferralValidationError,
)
from referrals.models import Referral, ReferralStatus
from referrals.services import referral_service
from referrals.tasks import expire_old_referrals
from referrals.tests.factories import ReferralFactory


@pytest.fixture
def referrer(db):
    from accounts.tests.factories import UserFactory

    return UserFactory()


@pytest.fixture
def referral(referrer, client_user):
    return referral_service.apply_referral_code(client_user, referrer.referral_code)


class TestApplyReferralCode:
    """Tests for ReferralService.apply_referral_code()."""

    def test_links_referee(self, referrer, client_user, referral):
        assert referral.status == ReferralStatus.PENDING
        assert referral.referrer_id == referrer.id
        assert referral.referrer_reward == 1000
        assert referral.referee_reward == 500
        assert User.objects.get(id=client_user.id).referred_by_id == referrer.id

    def test_expires_in_thirty_days(self, referrer, client_user):
        with freeze_time("2026-03-01 12:00:00"):
            referral = referral_service.apply_referral_code(client_user, referrer.referral_code)

        assert referral.expires_at.date().isoformat() == "2026-03-31"

    def test_code_is_normalised(self, referrer, client_user):
        referral = referral_service.apply_referral_code(client_user, f"  {referrer.referral_code.lower()} ")

        assert referral.referral_code == referrer.referral_code

    def test_unknown_code(self, client_user):
        with pytest.raises(ReferralNotFoundError):
            referral_service.apply_referral_code(client_user, "NOPE0000")

    def test_own_code(self, client_user):
        with pytest.raises(ReferralValidationError):
            referral_service.apply_referral_code(client_user, client_user.referral_code)

    def test_only_once(self, client_user, other_user, referral):
        with pytest.raises(ReferralConflictError):
            referral_service.apply_referral_code(client_user, other_user.referral_code)


class TestOnBookingCompleted:
    """Tests for ReferralService.on_booking_completed()."""

    def test_pays_both_sides(self, referrer, client_user, referral):
        booking = BookingFactory(client=client_user, status=BookingStatus.COMPLETED)

        completed = referral_service.on_booking_completed(booking)

        assert completed.status == ReferralStatus.COMPLETED
        assert completed.first_booking_id == booking.id
        assert completed.referrer_paid and completed.referee_paid
        assert wallet_ledger.get_balance(referrer.id) == 1000
        assert wallet_ledger.get_balance(client_user.id) == 500
        assert Transaction.objects.filter(type=TransactionType.REFERRAL_BONUS).count() == 2
        assert Notification.objects.filter(notification_type=NotificationType.REFERRAL_REWARD).count() == 2
        assert wallet_ledger.reconcile(referrer.id).is_balanced
        assert wallet_ledger.reconcile(client_user.id).is_balanced

    def test_second_booking_pays_nothing(self, referrer, client_user, referral):
        referral_service.on_booking_completed(BookingFactory(client=client_user))

        assert referral_service.on_booking_completed(BookingFactory(client=client_user)) is None
        assert wallet_ledger.get_balance(referrer.id) == 1000

    def test_client_without_referral(self, client_user):
        assert referral_service.on_booking_completed(BookingFactory(client=client_user)) is None

    def test_expired_referral_pays_nothing(self, referrer, client_user, referral):
        Referral.objects.filter(id=referral.id).update(status=ReferralStatus.EXPIRED)

        assert referral_service.on_booking_completed(BookingFactory(client=client_user)) is None
        assert wallet_ledger.get_balance(referrer.id) == 0

    def test_zero_referee_reward_skipped(self, referrer, client_user, referral):
        Referral.objects.filter(id=referral.id).update(referee_reward=0)

        completed = referral_service.on_booking_completed(BookingFactory(client=client_user))

        assert completed.referrer_paid
        assert not completed.referee_paid
        assert wallet_ledger.get_balance(client_user.id) == 0
        assert wallet_ledger.reconcile(referrer.id).is_balanced


class TestExpireOldReferrals:
    def test_expires_only_overdue_pending(self, db):
        overdue = ReferralFactory()
        fresh = ReferralFactory()
        done = ReferralFactory(status=ReferralStatus.COMPLETED)
        Referral.objects.filter(id__in=[overdue.id, done.id]).update(
            expires_at=timezone.now() - timedelta(days=1)
        )

        assert expire_old_referrals() == 1

        assert Referral.objects.get(id=overdue.id).status == ReferralStatus.EXPIRED
        assert Referral.objects.get(id=fresh.id).status == ReferralStatus.PENDING
        assert Referral.objects.get(id=done.id).status == ReferralStatus.COMPLETED

    def test_thirty_one_days_later(self, referral):
        with freeze_time(timezone.now() + timedelta(days=31)):
            assert referral_service.expire_old_referrals() == 1


class TestReads:
    def test_stats(self, referrer, client_user, other_user, referral):
        referral_service.apply_referral_code(other_user, referrer.referral_code)
        referral_service.on_booking_completed(BookingFactory(client=client_user))

        stats = referral_service.referral_stats(referrer)

        assert stats == {
            "total_referrals": 2,
            "completed_referrals": 1,
            "pending_referrals": 1,
            "total_earnings": 1000,
            "referral_code": referrer.referral_code,
        }

    def test_stats_without_referrals(self, client_user):
        assert referral_service.referral_stats(client_user)["total_earnings"] == 0

    def test_list_filtered(self, referrer, referral):
        assert list(referral_service.list_referrals(referrer)) == [referral]
        assert not referral_service.list_referrals(referrer, status=ReferralStatus.EXPIRED).exists()

    def test_get_referral_for_parties_only(self, referrer, client_user, other_user, referral):
        assert referral_service.get_referral(referral.id, referrer) == referral
        assert referral_service.get_referral(referral.id, client_user) == referral
        with pytest.raises(ReferralPermissionError):
            referral_service.get_referral(referral.id, other_user)
        with pytest.raises(ReferralNotFoundError):
            referral_service.get_referral(uuid.uuid4(), referrer)
