"""
Tests for SubscriptionRegistry.

Plans are paid from the vendor's wallet, so wallets are funded through
wallet_ledger.credit() to keep balances consistent with the log.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from freezegun import freeze_time

from payments.exceptions import (
    PaymentConflictError,
    PaymentNotFoundError,
    PaymentPermissionError,
    PaymentValidationError,
)
from payments.ledger import InsufficientBalance, WalletEntryParams, wallet_ledger
from payments.models import Subscription, Transaction
from payments.services import subscription_registry
from payments.state_machines import SubscriptionStatus, SubscriptionTier, TransactionType
from payments.tasks import expire_subscriptions
from payments.tests.factories import SubscriptionFactory


def fund(user, amount):
    wallet_ledger.credit(
        WalletEntryParams(user_id=user.id, amount=amount, type=TransactionType.DEPOSIT)
    )


def reload(subscription):
    return Subscription.objects.get(id=subscription.id)


# =============================================================================
# Commission Lookup
# =============================================================================


class TestGetCommissionRate:
    def test_default_without_plan(self, vendor_user):
        assert subscription_registry.get_commission_rate(vendor_user) == Decimal("10")

    def test_active_plan_rate(self, vendor_user):
        SubscriptionFactory(vendor=vendor_user, tier=SubscriptionTier.IN_SHOP, commission_rate=Decimal("0"))

        assert subscription_registry.get_commission_rate(vendor_user) == Decimal("0")

    def test_pending_plan_falls_back(self, vendor_user, settings):
        settings.DEFAULT_COMMISSION_RATE = 15
        SubscriptionFactory(vendor=vendor_user, status=SubscriptionStatus.PENDING)

        assert subscription_registry.get_commission_rate(vendor_user) == Decimal("15")


# =============================================================================
# Lifecycle
# =============================================================================


class TestCreateSubscription:
    """Tests for SubscriptionRegistry.create_subscription()."""

    def test_paid_tier_starts_pending(self, vendor_user):
        subscription = subscription_registry.create_subscription(vendor_user, SubscriptionTier.BOTH)

        assert subscription.status == SubscriptionStatus.PENDING
        assert subscription.monthly_fee == 5000
        assert subscription.commission_rate == Decimal("12")
        assert subscription.next_payment_due == subscription.end_date - timedelta(days=7)

    def test_free_tier_is_active(self, vendor_user):
        subscription = subscription_registry.create_subscription(
            vendor_user, SubscriptionTier.HOME_SERVICE
        )

        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.monthly_fee == 0
        assert subscription.last_payment_date is not None

    def test_client_cannot_subscribe(self, client_user):
        with pytest.raises(PaymentPermissionError) as exc_info:
            subscription_registry.create_subscription(client_user, SubscriptionTier.BOTH)

        assert exc_info.value.error_code == "NOT_A_VENDOR"

    def test_unknown_tier(self, vendor_user):
        with pytest.raises(PaymentValidationError):
            subscription_registry.create_subscription(vendor_user, "platinum")

    def test_one_open_plan_per_vendor(self, vendor_user):
        subscription_registry.create_subscription(vendor_user, SubscriptionTier.BOTH)

        with pytest.raises(PaymentConflictError) as exc_info:
            subscription_registry.create_subscription(vendor_user, SubscriptionTier.IN_SHOP)

        assert exc_info.value.error_code == "SUBSCRIPTION_EXISTS"


class TestPaySubscription:
    """Tests for SubscriptionRegistry.pay_subscription()."""

    def test_debits_wallet_and_activates(self, vendor_user):
        fund(vendor_user, 8000)
        subscription = subscription_registry.create_subscription(vendor_user, SubscriptionTier.BOTH)
        end_date = subscription.end_date

        subscription_registry.pay_subscription(subscription.id, reference="SUB-1", vendor=vendor_user)

        subscription = reload(subscription)
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.last_payment_amount == 5000
        assert subscription.last_payment_reference == "SUB-1"
        assert subscription.end_date > end_date
        assert wallet_ledger.get_balance(vendor_user.id) == 3000
        txn = Transaction.objects.get(type=TransactionType.SUBSCRIPTION_PAYMENT)
        assert txn.amount == -5000

    def test_same_reference_debits_once(self, vendor_user):
        fund(vendor_user, 20000)
        subscription = SubscriptionFactory(vendor=vendor_user)

        subscription_registry.pay_subscription(subscription.id, reference="SUB-2")
        subscription_registry.pay_subscription(subscription.id, reference="SUB-2")

        assert wallet_ledger.get_balance(vendor_user.id) == 15000

    def test_insufficient_balance(self, vendor_user):
        fund(vendor_user, 1000)
        subscription = subscription_registry.create_subscription(vendor_user, SubscriptionTier.BOTH)

        with pytest.raises(InsufficientBalance):
            subscription_registry.pay_subscription(subscription.id)

        assert reload(subscription).status == SubscriptionStatus.PENDING
        assert wallet_ledger.get_balance(vendor_user.id) == 1000

    def test_free_plan(self, vendor_user):
        subscription = subscription_registry.create_subscription(
            vendor_user, SubscriptionTier.HOME_SERVICE
        )

        with pytest.raises(PaymentValidationError) as exc_info:
            subscription_registry.pay_subscription(subscription.id)

        assert exc_info.value.error_code == "SUBSCRIPTION_FREE"

    def test_cancelled_plan(self, vendor_user):
        fund(vendor_user, 5000)
        subscription = SubscriptionFactory(vendor=vendor_user, status=SubscriptionStatus.CANCELLED)

        with pytest.raises(PaymentConflictError):
            subscription_registry.pay_subscription(subscription.id)

    def test_other_vendors_plan(self, vendor_user):
        subscription = SubscriptionFactory()

        with pytest.raises(PaymentNotFoundError):
            subscription_registry.pay_subscription(subscription.id, vendor=vendor_user)


class TestChangePlan:
    def test_switch_to_free_tier(self, vendor_user):
        SubscriptionFactory(vendor=vendor_user)

        subscription = subscription_registry.change_plan(vendor_user, SubscriptionTier.HOME_SERVICE)

        assert subscription.tier == SubscriptionTier.HOME_SERVICE
        assert subscription.monthly_fee == 0
        assert subscription.commission_rate == Decimal("10")

    def test_unpaid_free_plan_awaits_payment(self, vendor_user):
        subscription_registry.create_subscription(vendor_user, SubscriptionTier.HOME_SERVICE)

        subscription = subscription_registry.change_plan(vendor_user, SubscriptionTier.BOTH)

        assert subscription.status == SubscriptionStatus.PENDING

    def test_paid_plan_stays_active(self, vendor_user):
        SubscriptionFactory(vendor=vendor_user, last_payment_amount=5000)

        subscription = subscription_registry.change_plan(vendor_user, SubscriptionTier.IN_SHOP)

        assert subscription.status == SubscriptionStatus.ACTIVE

    def test_without_plan(self, vendor_user):
        with pytest.raises(PaymentNotFoundError) as exc_info:
            subscription_registry.change_plan(vendor_user, SubscriptionTier.BOTH)

        assert exc_info.value.error_code == "SUBSCRIPTION_NOT_FOUND"


class TestCancelSubscription:
    def test_cancel(self, vendor_user):
        SubscriptionFactory(vendor=vendor_user)

        subscription = subscription_registry.cancel_subscription(vendor_user, reason="Closing shop")

        assert subscription.status == SubscriptionStatus.CANCELLED
        assert subscription.cancellation_reason == "Closing shop"
        assert subscription.auto_renew is False
        assert subscription_registry.get_commission_rate(vendor_user) == Decimal("10")

    def test_nothing_to_cancel(self, vendor_user):
        with pytest.raises(PaymentNotFoundError):
            subscription_registry.cancel_subscription(vendor_user)


class TestExpireLapsedSubscriptions:
    def test_expires_paid_plans_past_end_date(self, vendor_user):
        lapsed = SubscriptionFactory(vendor=vendor_user)
        current = SubscriptionFactory()
        free = SubscriptionFactory(tier=SubscriptionTier.HOME_SERVICE, monthly_fee=0)
        lapsed_end = lapsed.end_date

        with freeze_time(lapsed_end + timedelta(days=1)):
            Subscription.objects.filter(id=current.id).update(
                end_date=timezone.now() + timedelta(days=10)
            )
            result = expire_subscriptions()

        assert result == {"expired_count": 1}
        assert reload(lapsed).status == SubscriptionStatus.EXPIRED
        assert reload(current).status == SubscriptionStatus.ACTIVE
        assert reload(free).status == SubscriptionStatus.ACTIVE
