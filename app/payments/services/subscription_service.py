"""
Vendor subscription service.

SubscriptionRegistry owns vendor plans: creating them, renewing them from
the wallet, switching tiers and cancelling. It is also the source of the
commission rate EscrowLedger snapshots when a payment is initialized.

Usage:
    from payments.services import subscription_registry

    rate = subscription_registry.get_commission_rate(vendor)  # Decimal("10")
    subscription = subscription_registry.create_subscription(vendor, SubscriptionTier.BOTH)
    subscription_registry.pay_subscription(subscription.id)
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from dateutil.relativedelta import relativedelta
from django.conf import settings
from django.utils import timezone

from core.helpers import generate_reference
from core.services import BaseService

from payments.exceptions import (
    PaymentConflictError,
    PaymentNotFoundError,
    PaymentPermissionError,
    PaymentValidationError,
)
from payments.ledger import WalletEntryParams, wallet_ledger
from payments.models import Subscription
from payments.services.commission import CommissionCalculator
from payments.state_machines import SubscriptionStatus, SubscriptionTier, TransactionType

if TYPE_CHECKING:
    import uuid

    from accounts.models import User

OPEN_STATUSES = (SubscriptionStatus.PENDING, SubscriptionStatus.ACTIVE)

# next_payment_due is this long before the end of the paid period
PAYMENT_DUE_LEAD = timedelta(days=7)


class SubscriptionRegistry(BaseService):
    """Vendor plan lifecycle and commission lookup."""

    @classmethod
    def get_vendor_subscription(cls, vendor: User) -> Subscription | None:
        """The vendor's pending or active plan, if any."""
        return (
            Subscription.objects.filter(vendor=vendor, status__in=OPEN_STATUSES)
            .order_by("-created_at")
            .first()
        )

    @classmethod
    def get_commission_rate(cls, vendor: User) -> Decimal:
        """
        Commission percentage for bookings with this vendor.

        Only an ACTIVE plan counts; anything else falls back to
        DEFAULT_COMMISSION_RATE.
        """
        subscription = cls.get_vendor_subscription(vendor)
        if subscription is None or subscription.status != SubscriptionStatus.ACTIVE:
            return Decimal(str(settings.DEFAULT_COMMISSION_RATE))
        return Decimal(subscription.commission_rate)

    @classmethod
    def create_subscription(cls, vendor: User, tier: str) -> Subscription:
        """
        Start a plan for a vendor.

        Free tiers are active immediately; paid tiers stay PENDING until
        pay_subscription succeeds.

        Raises:
            PaymentPermissionError: User is not a vendor
            PaymentValidationError: Unknown tier
            PaymentConflictError: Vendor already has a pending or active plan
        """
        if not vendor.is_vendor:
            raise PaymentPermissionError(
                "Only vendors can subscribe",
                error_code="NOT_A_VENDOR",
            )
        if tier not in SubscriptionTier.values:
            raise PaymentValidationError(
                f"Unknown subscription tier: {tier}",
                details={"tier": tier},
            )

        pricing = CommissionCalculator.pricing_for(tier)
        now = timezone.now()
        end_date = now + relativedelta(months=1)

        with cls.atomic():
            if Subscription.objects.filter(vendor=vendor, status__in=OPEN_STATUSES).exists():
                raise PaymentConflictError(
                    "Vendor already has an active subscription",
                    error_code="SUBSCRIPTION_EXISTS",
                )

            subscription = Subscription(
                vendor=vendor,
                tier=tier,
                monthly_fee=pricing.monthly_fee,
                commission_rate=pricing.commission_rate,
                start_date=now,
                end_date=end_date,
                next_payment_due=end_date - PAYMENT_DUE_LEAD,
                auto_renew=True,
            )
            if pricing.monthly_fee == 0:
                subscription.activate()
                subscription.last_payment_date = now
            subscription.save()

        cls.get_logger().info(
            "Subscription created",
            extra={
                "subscription_id": str(subscription.id),
                "vendor_id": str(vendor.id),
                "tier": tier,
                "status": subscription.status,
            },
        )
        return subscription

    @classmethod
    def pay_subscription(
        cls,
        subscription_id: uuid.UUID,
        reference: str | None = None,
        vendor: User | None = None,
    ) -> Subscription:
        """
        Pay one month from the vendor's wallet.

        Debits monthly_fee with a subscription_payment Transaction,
        activates the plan and extends end_date by one month.

        Args:
            subscription_id: Plan to pay
            reference: Optional payment reference (SUB-... generated otherwise)
            vendor: When given, the plan must belong to this vendor

        Raises:
            PaymentNotFoundError: Unknown plan
            PaymentValidationError: Free plan
            PaymentConflictError: Cancelled or expired plan
            InsufficientBalance: Wallet cannot cover the fee
        """
        reference = reference or generate_reference("SUB")

        with cls.atomic():
            subscription = cls._get_locked(subscription_id, vendor)

            if subscription.monthly_fee == 0:
                raise PaymentValidationError(
                    "This subscription has no monthly fee",
                    error_code="SUBSCRIPTION_FREE",
                )
            if subscription.status not in OPEN_STATUSES:
                raise PaymentConflictError(
                    f"Cannot pay a {subscription.status} subscription",
                    error_code="SUBSCRIPTION_CLOSED",
                    details={"status": subscription.status},
                )

            wallet_ledger.debit(
                WalletEntryParams(
                    user_id=subscription.vendor_id,
                    amount=subscription.monthly_fee,
                    type=TransactionType.SUBSCRIPTION_PAYMENT,
                    reference=reference,
                    description=f"Subscription payment for {subscription.get_tier_display()}",
                    idempotency_key=f"subscription:{reference}",
                )
            )

            now = timezone.now()
            subscription.activate()
            subscription.last_payment_date = now
            subscription.last_payment_amount = subscription.monthly_fee
            subscription.last_payment_reference = reference
            subscription.end_date = subscription.end_date + relativedelta(months=1)
            subscription.next_payment_due = subscription.end_date - PAYMENT_DUE_LEAD
            subscription.save()

        cls.get_logger().info(
            "Subscription paid",
            extra={
                "subscription_id": str(subscription.id),
                "amount": subscription.monthly_fee,
                "reference": reference,
            },
        )
        return subscription

    @classmethod
    def change_plan(cls, vendor: User, tier: str) -> Subscription:
        """
        Switch the vendor's open plan to another tier.

        A plan that never received a payment goes back to PENDING when
        the new tier has a fee.
        """
        if tier not in SubscriptionTier.values:
            raise PaymentValidationError(
                f"Unknown subscription tier: {tier}",
                details={"tier": tier},
            )
        pricing = CommissionCalculator.pricing_for(tier)

        with cls.atomic():
            subscription = (
                Subscription.objects.select_for_update()
                .filter(vendor=vendor, status__in=OPEN_STATUSES)
                .order_by("-created_at")
                .first()
            )
            if subscription is None:
                raise PaymentNotFoundError(
                    "No active subscription found",
                    error_code="SUBSCRIPTION_NOT_FOUND",
                )

            subscription.tier = tier
            subscription.monthly_fee = pricing.monthly_fee
            subscription.commission_rate = pricing.commission_rate
            if (
                pricing.monthly_fee > 0
                and subscription.status == SubscriptionStatus.ACTIVE
                and not subscription.last_payment_amount
            ):
                subscription.await_payment()
            subscription.save()

        cls.get_logger().info(
            "Subscription plan changed",
            extra={"subscription_id": str(subscription.id), "tier": tier},
        )
        return subscription

    @classmethod
    def cancel_subscription(cls, vendor: User, reason: str = "") -> Subscription:
        """
        Cancel the vendor's open plan.

        Raises:
            PaymentNotFoundError: No pending or active plan
        """
        with cls.atomic():
            subscription = (
                Subscription.objects.select_for_update()
                .filter(vendor=vendor, status__in=OPEN_STATUSES)
                .order_by("-created_at")
                .first()
            )
            if subscription is None:
                raise PaymentNotFoundError(
                    "No active subscription found",
                    error_code="SUBSCRIPTION_NOT_FOUND",
                )
            subscription.cancel(reason=reason)
            subscription.save()

        cls.get_logger().info(
            "Subscription cancelled",
            extra={"subscription_id": str(subscription.id), "vendor_id": str(vendor.id)},
        )
        return subscription

    @classmethod
    def expire_lapsed_subscriptions(cls) -> int:
        """
        Expire active plans whose paid period ended.

        Free plans never lapse. Returns the number of plans expired.
        """
        now = timezone.now()
        expired = 0
        lapsed_ids = Subscription.objects.filter(
            status=SubscriptionStatus.ACTIVE,
            monthly_fee__gt=0,
            end_date__lt=now,
        ).values_list("id", flat=True)

        for subscription_id in lapsed_ids:
            with cls.atomic():
                subscription = Subscription.objects.select_for_update().get(id=subscription_id)
                if subscription.status != SubscriptionStatus.ACTIVE or subscription.end_date >= now:
                    continue
                subscription.expire()
                subscription.save()
                expired += 1

        if expired:
            cls.get_logger().info("Expired lapsed subscriptions", extra={"count": expired})
        return expired

    @classmethod
    def _get_locked(cls, subscription_id: uuid.UUID, vendor: User | None) -> Subscription:
        queryset = Subscription.objects.select_for_update()
        if vendor is not None:
            queryset = queryset.filter(vendor=vendor)
        try:
            return queryset.get(id=subscription_id)
        except Subscription.DoesNotExist:
            raise PaymentNotFoundError(
                "Subscription not found",
                error_code="SUBSCRIPTION_NOT_FOUND",
                details={"subscription_id": str(subscription_id)},
            )


subscription_registry = SubscriptionRegistry()
