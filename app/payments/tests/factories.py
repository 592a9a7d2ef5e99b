"""
Factory Boy factories for payments models.

Provides test data generation for:
- Payment: escrowed (HELD) payments on a booking, 10% commission
- Withdrawal: pending vendor withdrawals
- Subscription: active vendor plans
- WebhookEvent: stored Paystack deliveries

Wallet balances are never set directly in tests that check the ledger;
use wallet_ledger.credit() so the balance matches the transaction log.

Usage:
    from payments.tests.factories import PaymentFactory

    payment = PaymentFactory()  # booking.payment_status == escrowed
    pending = PaymentFactory(pending=True)
"""

from datetime import timedelta
from decimal import Decimal

import factory
from django.utils import timezone

from accounts.tests.factories import VendorFactory
from bookings.models import BookingPaymentStatus
from bookings.tests.factories import BookingFactory
from payments.models import Payment, Subscription, WebhookEvent, Withdrawal
from payments.state_machines import (
    EscrowStatus,
    PaymentStatus,
    SubscriptionStatus,
    SubscriptionTier,
    WebhookEventStatus,
    WithdrawalStatus,
)


class PaymentFactory(factory.django.DjangoModelFactory):
    """
    Payment held in escrow for a booking.

    Traits:
        pending: Checkout started, charge not yet confirmed
    """

    class Meta:
        model = Payment
        skip_postgeneration_save = True

    class Params:
        pending = factory.Trait(
            escrow_status=EscrowStatus.PENDING,
            status=PaymentStatus.PENDING,
            booking__payment_status=BookingPaymentStatus.PENDING,
            paid_at=None,
            escrowed_at=None,
        )

    booking = factory.SubFactory(BookingFactory, payment_status=BookingPaymentStatus.ESCROWED)
    user = factory.LazyAttribute(lambda o: o.booking.client)
    amount = factory.LazyAttribute(lambda o: o.booking.total_amount)
    currency = "NGN"
    commission_rate = Decimal("10")
    platform_fee = factory.LazyAttribute(lambda o: o.amount // 10)
    vendor_amount = factory.LazyAttribute(lambda o: o.amount - o.platform_fee)
    reference = factory.Sequence(lambda n: f"PAY-TEST{n:06d}")
    status = PaymentStatus.ESCROWED
    escrow_status = EscrowStatus.HELD
    paid_at = factory.LazyFunction(timezone.now)
    escrowed_at = factory.LazyFunction(timezone.now)

    @factory.post_generation
    def link_reference(obj, create, extracted, **kwargs):
        if create:
            obj.booking.payment_reference = obj.reference
            obj.booking.save(update_fields=["payment_reference"])


class WithdrawalFactory(factory.django.DjangoModelFactory):
    """Pending withdrawal of 5000 (fee 100) to an Access Bank account."""

    class Meta:
        model = Withdrawal

    user = factory.SubFactory(VendorFactory)
    amount = 5000
    withdrawal_fee = 100
    net_amount = factory.LazyAttribute(lambda o: o.amount - o.withdrawal_fee)
    bank_name = "Access Bank"
    bank_code = "044"
    account_number = "0123456789"
    account_name = factory.LazyAttribute(lambda o: o.user.get_full_name() or "Test Vendor")
    reference = factory.Sequence(lambda n: f"WTH-TEST{n:06d}")
    status = WithdrawalStatus.PENDING


class SubscriptionFactory(factory.django.DjangoModelFactory):
    """Active BOTH-tier plan (5000 monthly, 12% commission)."""

    class Meta:
        model = Subscription

    vendor = factory.SubFactory(VendorFactory)
    tier = SubscriptionTier.BOTH
    monthly_fee = 5000
    commission_rate = Decimal("12")
    status = SubscriptionStatus.ACTIVE
    start_date = factory.LazyFunction(timezone.now)
    end_date = factory.LazyFunction(lambda: timezone.now() + timedelta(days=30))
    next_payment_due = factory.LazyFunction(lambda: timezone.now() + timedelta(days=23))
    auto_renew = True


class WebhookEventFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = WebhookEvent

    event_type = "charge.success"
    event_key = factory.Sequence(lambda n: f"charge.success:{n}")
    payload = factory.LazyFunction(dict)
    status = WebhookEventStatus.PENDING
