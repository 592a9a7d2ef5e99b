"""
Escrow ledger for booking payments.

EscrowLedger takes a booking from checkout to settlement:

    initialize_payment  -> Payment PENDING, Paystack checkout URL
    apply_charge_success -> Payment HELD, booking payment_status escrowed
    release_payment     -> vendor wallet credited with vendor_amount
    refund_payment      -> client wallet credited with the full amount
    split_payment       -> both wallets credited (dispute partial refund)

Exactly one of release/refund/split succeeds per Payment. Each one locks
the booking and the funded Payment row with select_for_update() and goes
through the django-fsm transition whose only source is HELD; the loser of
a race sees a settled payment and gets a Conflict.

Usage:
    from payments.services import escrow_ledger

    payment = escrow_ledger.initialize_payment(client, booking.id)
    # ... webhook or verify_payment() moves it to HELD ...
    escrow_ledger.release_payment(booking.id)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.db.models import Q
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from bookings.models import Booking, BookingPaymentStatus, BookingStatus
from core.helpers import generate_reference
from core.services import BaseService
from notifications.models import NotificationType
from notifications.services import notification_dispatcher

from payments.adapters import PaystackAdapter
from payments.exceptions import (
    InvalidStateTransitionError,
    PaymentConflictError,
    PaymentNotFoundError,
    PaymentPermissionError,
    PaymentValidationError,
)
from payments.ledger import WalletEntryParams, wallet_ledger
from payments.models import Payment
from payments.services.commission import CommissionCalculator
from payments.services.subscription_service import subscription_registry
from payments.state_machines import (
    SETTLED_ESCROW_STATUSES,
    EscrowStatus,
    PaymentStatus,
    TransactionType,
)

if TYPE_CHECKING:
    import uuid

    from django.db.models import QuerySet

    from accounts.models import User

security_logger = logging.getLogger("payments.security")


class EscrowLedger(BaseService):
    """
    Payment records, escrow transitions and the wallet credits they cause.

    Methods:
        initialize_payment: Start a checkout for a pending booking
        verify_payment: Synchronous fallback to the charge.success webhook
        apply_charge_success: Move a confirmed charge into escrow
        release_payment / refund_payment / split_payment: Settle the escrow
        get_payment / list_user_payments: Reads
    """

    # =========================================================================
    # Checkout
    # =========================================================================

    @classmethod
    def initialize_payment(
        cls,
        client: User,
        booking_id: uuid.UUID,
        metadata: dict | None = None,
    ) -> Payment:
        """
        Start a Paystack checkout for a booking.

        The commission rate is snapshotted from the vendor's subscription.
        Paystack is called before anything is written, so a gateway failure
        leaves no record. An earlier unpaid checkout for the same booking
        is superseded: booking.payment_reference points at the new one.

        Raises:
            PaymentNotFoundError: Unknown booking
            PaymentPermissionError: Caller does not own the booking
            PaymentConflictError: Booking is already escrowed
            PaymentValidationError: Booking is no longer pending
            GatewayError: Paystack failure
        """
        booking = cls._get_booking(booking_id)

        if booking.client_id != client.id:
            raise PaymentPermissionError(
                "You can only pay for your own bookings",
                details={"booking_id": str(booking.id)},
            )
        cls._ensure_payable(booking)

        rate = subscription_registry.get_commission_rate(booking.vendor)
        split = CommissionCalculator.split(booking.total_amount, rate)
        reference = generate_reference("PAY")
        payment_metadata = {
            "booking_id": str(booking.id),
            "client_id": str(client.id),
            "vendor_id": str(booking.vendor_id),
            **(metadata or {}),
        }

        gateway = PaystackAdapter.initialize(
            email=client.email,
            amount_minor_units=booking.total_amount * 100,
            reference=reference,
            callback_url=settings.PAYMENT_CALLBACK_URL_TEMPLATE.format(reference=reference),
            metadata=payment_metadata,
        )

        with cls.atomic():
            booking = Booking.objects.select_for_update().get(id=booking.id)
            cls._ensure_payable(booking)

            payment = Payment.objects.create(
                booking=booking,
                user=client,
                amount=booking.total_amount,
                currency=getattr(settings, "PAYSTACK_CURRENCY", "NGN"),
                commission_rate=split.commission_rate,
                platform_fee=split.platform_fee,
                vendor_amount=split.vendor_amount,
                reference=reference,
                authorization_url=gateway.authorization_url,
                access_code=gateway.access_code,
                metadata=payment_metadata,
            )
            booking.payment_reference = reference
            booking.save(update_fields=["payment_reference", "updated_at"])

        cls.get_logger().info(
            "Payment initialized",
            extra={
                "payment_id": str(payment.id),
                "booking_id": str(booking.id),
                "reference": reference,
                "amount": payment.amount,
                "commission_rate": str(split.commission_rate),
            },
        )
        return payment

    @classmethod
    def verify_payment(cls, reference: str, user: User | None = None) -> Payment:
        """
        Ask Paystack for the outcome of a checkout.

        "success" goes through apply_charge_success, so verifying after the
        webhook already arrived changes nothing. Any other status marks a
        still-pending payment as failed. Paystack is asked again for as long
        as the escrow is pending, so a charge completed after an abandoned
        attempt is escrowed the same way the webhook would escrow it.

        Raises:
            PaymentNotFoundError: Unknown reference
            PaymentPermissionError: user is not the payer
            GatewayError: Paystack failure
        """
        payment = cls._get_payment_by_reference(reference)
        if user is not None and payment.user_id != user.id and not user.is_platform_admin:
            raise PaymentPermissionError("You can only verify your own payments")

        # A payment failed by an earlier verify can still be charged later
        if payment.escrow_status != EscrowStatus.PENDING:
            return payment

        result = PaystackAdapter.verify(reference)
        if result.is_successful:
            return cls.apply_charge_success(
                reference,
                authorization_code=result.authorization_code,
                amount_minor_units=result.amount_minor_units,
            )

        with cls.atomic():
            payment = Payment.objects.select_for_update().get(id=payment.id)
            if payment.escrow_status == EscrowStatus.PENDING and payment.status == PaymentStatus.PENDING:
                payment.mark_failed(f"Gateway status: {result.status or 'unknown'}")
                payment.save()

        cls.get_logger().info(
            "Payment verification did not succeed",
            extra={"reference": reference, "gateway_status": result.status},
        )
        return payment

    @classmethod
    def apply_charge_success(
        cls,
        reference: str,
        authorization_code: str = "",
        amount_minor_units: int | None = None,
    ) -> Payment:
        """
        Place a confirmed charge in escrow.

        Idempotent: a payment that already left PENDING is returned as is.
        A charge that arrives for a booking which is already funded, or was
        cancelled before the charge landed, is credited back to the payer's
        wallet instead of being escrowed.

        Raises:
            PaymentNotFoundError: Unknown reference
        """
        logger = cls.get_logger()

        with cls.atomic():
            payment = cls._get_payment_by_reference(reference, lock=True)

            if payment.escrow_status != EscrowStatus.PENDING or payment.status in (
                PaymentStatus.REFUNDED,
                PaymentStatus.ESCROWED,
            ):
                logger.info(
                    "Charge already applied",
                    extra={"reference": reference, "escrow_status": payment.escrow_status},
                )
                return payment

            if amount_minor_units is not None and amount_minor_units != payment.amount * 100:
                security_logger.warning(
                    "Charged amount does not match payment",
                    extra={
                        "reference": reference,
                        "expected_minor_units": payment.amount * 100,
                        "charged_minor_units": amount_minor_units,
                    },
                )
                payment.mark_failed("Charged amount does not match payment amount")
                payment.save()
                return payment

            booking = Booking.objects.select_for_update().get(id=payment.booking_id)
            already_funded = (
                Payment.objects.filter(booking=booking)
                .exclude(id=payment.id)
                .exclude(escrow_status=EscrowStatus.PENDING)
                .exists()
            )

            if already_funded or booking.status == BookingStatus.CANCELLED:
                cls._refund_unescrowed_charge(payment, booking, already_funded)
                return payment

            payment.hold(authorization_code=authorization_code)
            payment.save()
            booking.payment_status = BookingPaymentStatus.ESCROWED
            booking.payment_reference = payment.reference
            booking.save(update_fields=["payment_status", "payment_reference", "updated_at"])

            for party in (booking.client, booking.vendor):
                notification_dispatcher.notify(
                    party,
                    NotificationType.PAYMENT_ESCROWED,
                    data={"booking_id": str(booking.id), "amount": payment.amount},
                    idempotency_key=f"payment_escrowed:{payment.id}:{party.id}",
                )

        logger.info(
            "Payment held in escrow",
            extra={
                "payment_id": str(payment.id),
                "booking_id": str(payment.booking_id),
                "reference": reference,
            },
        )
        return payment

    @classmethod
    def _refund_unescrowed_charge(cls, payment: Payment, booking: Booking, already_funded: bool) -> None:
        """Credit a charge that cannot be escrowed back to the payer."""
        reason = "Duplicate charge" if already_funded else "Booking cancelled before payment"
        now = timezone.now()

        wallet_ledger.credit(
            WalletEntryParams(
                user_id=payment.user_id,
                amount=payment.amount,
                type=TransactionType.REFUND,
                description=f"{reason} refunded",
                booking_id=booking.id,
                payment_id=payment.id,
                idempotency_key=f"unescrowed-refund:{payment.id}",
            )
        )
        payment.status = PaymentStatus.REFUNDED
        payment.paid_at = now
        payment.refunded_at = now
        payment.refund_amount = payment.amount
        payment.refund_reason = reason
        payment.save()

        notification_dispatcher.notify(
            payment.user,
            NotificationType.PAYMENT_REFUNDED,
            data={"booking_id": str(booking.id), "amount": payment.amount},
            idempotency_key=f"payment_refunded:{payment.id}",
        )
        cls.get_logger().warning(
            "Charge refunded to wallet instead of escrowed",
            extra={"reference": payment.reference, "reason": reason},
        )

    # =========================================================================
    # Settlement
    # =========================================================================

    @classmethod
    def release_payment(
        cls,
        booking_id: uuid.UUID,
        override: bool = False,
    ) -> Payment:
        """
        Pay the vendor share out of escrow.

        Args:
            booking_id: Booking whose payment is released
            override: Skip the completed-booking check (dispute resolution)

        Raises:
            PaymentValidationError: Booking not completed, or never paid
            PaymentConflictError: Already released, refunded or split
        """
        with cls.atomic():
            booking = cls._get_booking(booking_id, lock=True)
            if not override and booking.status != BookingStatus.COMPLETED:
                raise PaymentValidationError(
                    "Booking must be completed before payment is released",
                    error_code="BOOKING_NOT_COMPLETED",
                    details={"booking_status": booking.status},
                )

            payment = cls._get_held_payment(booking)
            cls._transition(payment, "release")
            payment.save()

            if payment.vendor_amount > 0:
                wallet_ledger.credit(
                    WalletEntryParams(
                        user_id=booking.vendor_id,
                        amount=payment.vendor_amount,
                        type=TransactionType.BOOKING_PAYMENT,
                        description="Payment released for booking",
                        booking_id=booking.id,
                        payment_id=payment.id,
                        idempotency_key=f"release:{payment.id}",
                        metadata={"platform_fee": payment.platform_fee},
                    )
                )

            booking.payment_status = BookingPaymentStatus.RELEASED
            booking.save(update_fields=["payment_status", "updated_at"])

            notification_dispatcher.notify(
                booking.vendor,
                NotificationType.PAYMENT_RELEASED,
                data={"booking_id": str(booking.id), "amount": payment.vendor_amount},
                idempotency_key=f"payment_released:{payment.id}",
            )

        cls.get_logger().info(
            "Payment released",
            extra={
                "payment_id": str(payment.id),
                "booking_id": str(booking.id),
                "vendor_amount": payment.vendor_amount,
                "platform_fee": payment.platform_fee,
                "override": override,
            },
        )
        return payment

    @classmethod
    def refund_payment(
        cls,
        booking_id: uuid.UUID,
        refunded_by: User | None = None,
        reason: str = "",
    ) -> Payment:
        """
        Return the full escrowed amount to the client's wallet.

        Raises:
            PaymentValidationError: Booking never paid
            PaymentConflictError: Already released, refunded or split
        """
        with cls.atomic():
            booking = cls._get_booking(booking_id, lock=True)
            payment = cls._get_held_payment(booking)
            cls._transition(payment, "refund", refunded_by=refunded_by, reason=reason)
            payment.save()

            wallet_ledger.credit(
                WalletEntryParams(
                    user_id=payment.user_id,
                    amount=payment.amount,
                    type=TransactionType.REFUND,
                    description=reason or "Booking payment refunded",
                    booking_id=booking.id,
                    payment_id=payment.id,
                    idempotency_key=f"refund:{payment.id}",
                )
            )

            booking.payment_status = BookingPaymentStatus.REFUNDED
            booking.save(update_fields=["payment_status", "updated_at"])

            notification_dispatcher.notify(
                payment.user,
                NotificationType.PAYMENT_REFUNDED,
                data={"booking_id": str(booking.id), "amount": payment.amount},
                idempotency_key=f"payment_refunded:{payment.id}",
            )

        cls.get_logger().info(
            "Payment refunded",
            extra={
                "payment_id": str(payment.id),
                "booking_id": str(booking.id),
                "amount": payment.amount,
                "refunded_by": str(refunded_by.id) if refunded_by else None,
            },
        )
        return payment

    @classmethod
    def split_payment(
        cls,
        booking_id: uuid.UUID,
        refund_amount: int,
        vendor_amount: int,
        resolved_by: User | None = None,
        reason: str = "",
    ) -> Payment:
        """
        Divide the escrow between client and vendor.

        refund_amount + vendor_amount must equal the payment amount. Each
        non-zero side gets its own Transaction.

        Raises:
            PaymentValidationError: Negative amounts, wrong total, never paid
            PaymentConflictError: Already released, refunded or split
        """
        if refund_amount is None or vendor_amount is None:
            raise PaymentValidationError(
                "Both refund_amount and vendor_amount are required",
                error_code="SPLIT_AMOUNTS_REQUIRED",
            )
        if refund_amount < 0 or vendor_amount < 0:
            raise PaymentValidationError(
                "Split amounts cannot be negative",
                error_code="SPLIT_AMOUNT_NEGATIVE",
                details={"refund_amount": refund_amount, "vendor_amount": vendor_amount},
            )

        with cls.atomic():
            booking = cls._get_booking(booking_id, lock=True)
            payment = cls._get_held_payment(booking)

            if refund_amount + vendor_amount != payment.amount:
                raise PaymentValidationError(
                    "Split amounts must add up to the payment amount",
                    error_code="SPLIT_AMOUNT_MISMATCH",
                    details={
                        "payment_amount": payment.amount,
                        "refund_amount": refund_amount,
                        "vendor_amount": vendor_amount,
                    },
                )

            cls._transition(
                payment,
                "split",
                refund_amount=refund_amount,
                refunded_by=resolved_by,
                reason=reason,
            )
            payment.save()

            if refund_amount > 0:
                wallet_ledger.credit(
                    WalletEntryParams(
                        user_id=payment.user_id,
                        amount=refund_amount,
                        type=TransactionType.REFUND,
                        description=reason or "Partial refund",
                        booking_id=booking.id,
                        payment_id=payment.id,
                        idempotency_key=f"split-refund:{payment.id}",
                    )
                )
                notification_dispatcher.notify(
                    payment.user,
                    NotificationType.PAYMENT_REFUNDED,
                    data={"booking_id": str(booking.id), "amount": refund_amount},
                    idempotency_key=f"payment_refunded:{payment.id}",
                )
            if vendor_amount > 0:
                wallet_ledger.credit(
                    WalletEntryParams(
                        user_id=booking.vendor_id,
                        amount=vendor_amount,
                        type=TransactionType.BOOKING_PAYMENT,
                        description=reason or "Partial payment released",
                        booking_id=booking.id,
                        payment_id=payment.id,
                        idempotency_key=f"split-release:{payment.id}",
                    )
                )
                notification_dispatcher.notify(
                    booking.vendor,
                    NotificationType.PAYMENT_RELEASED,
                    data={"booking_id": str(booking.id), "amount": vendor_amount},
                    idempotency_key=f"payment_released:{payment.id}",
                )

            booking.payment_status = BookingPaymentStatus.PARTIALLY_REFUNDED
            booking.save(update_fields=["payment_status", "updated_at"])

        cls.get_logger().info(
            "Payment split",
            extra={
                "payment_id": str(payment.id),
                "booking_id": str(booking.id),
                "refund_amount": refund_amount,
                "vendor_amount": vendor_amount,
            },
        )
        return payment

    # =========================================================================
    # Reads
    # =========================================================================

    @classmethod
    def get_payment(cls, payment_id: uuid.UUID, user: User) -> Payment:
        """
        A payment visible to the payer, the booking's vendor or an admin.

        Raises:
            PaymentNotFoundError: Unknown id
            PaymentPermissionError: Caller may not see it
        """
        try:
            payment = Payment.objects.select_related("booking").get(id=payment_id)
        except Payment.DoesNotExist:
            raise PaymentNotFoundError(
                "Payment not found",
                details={"payment_id": str(payment_id)},
            )
        if not (
            user.is_platform_admin
            or payment.user_id == user.id
            or payment.booking.vendor_id == user.id
        ):
            raise PaymentPermissionError("You cannot view this payment")
        return payment

    @classmethod
    def list_user_payments(cls, user: User, status: str | None = None) -> QuerySet[Payment]:
        """Payments the user made or received, newest first."""
        queryset = Payment.objects.filter(Q(user=user) | Q(booking__vendor=user))
        if status:
            queryset = queryset.filter(status=status)
        return queryset.select_related("booking").order_by("-created_at")

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _get_booking(booking_id: uuid.UUID, lock: bool = False) -> Booking:
        queryset = Booking.objects.select_related("client", "vendor")
        if lock:
            queryset = queryset.select_for_update(of=("self",))
        try:
            return queryset.get(id=booking_id)
        except Booking.DoesNotExist:
            raise PaymentNotFoundError(
                "Booking not found",
                error_code="BOOKING_NOT_FOUND",
                details={"booking_id": str(booking_id)},
            )

    @staticmethod
    def _get_payment_by_reference(reference: str, lock: bool = False) -> Payment:
        queryset = Payment.objects.select_related("user")
        if lock:
            queryset = queryset.select_for_update(of=("self",))
        try:
            return queryset.get(reference=reference)
        except Payment.DoesNotExist:
            raise PaymentNotFoundError(
                "Payment not found",
                details={"reference": reference},
            )

    @staticmethod
    def _ensure_payable(booking: Booking) -> None:
        if booking.payment_status != BookingPaymentStatus.PENDING or (
            Payment.objects.filter(booking=booking)
            .exclude(escrow_status=EscrowStatus.PENDING)
            .exists()
        ):
            raise PaymentConflictError(
                "Booking has already been paid",
                error_code="BOOKING_ALREADY_PAID",
                details={"payment_status": booking.payment_status},
            )
        if booking.status != BookingStatus.PENDING:
            raise PaymentValidationError(
                "Only pending bookings can be paid",
                error_code="BOOKING_NOT_PAYABLE",
                details={"booking_status": booking.status},
            )

    @staticmethod
    def _get_held_payment(booking: Booking) -> Payment:
        """
        Lock the booking's funded payment and require it to be HELD.

        Call inside an atomic block.
        """
        payment = (
            Payment.objects.select_for_update()
            .filter(booking=booking)
            .exclude(escrow_status=EscrowStatus.PENDING)
            .first()
        )
        if payment is None:
            raise PaymentValidationError(
                "Booking has not been paid",
                error_code="PAYMENT_NOT_ESCROWED",
                details={"booking_id": str(booking.id)},
            )
        if payment.escrow_status in SETTLED_ESCROW_STATUSES:
            raise PaymentConflictError(
                f"Payment already {payment.escrow_status}",
                error_code="ESCROW_ALREADY_SETTLED",
                details={"escrow_status": payment.escrow_status},
            )
        return payment

    @staticmethod
    def _transition(payment: Payment, name: str, **kwargs) -> None:
        try:
            getattr(payment, name)(**kwargs)
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot {name} payment from '{payment.escrow_status}' state",
                details={"current_state": payment.escrow_status, "transition": name},
            )


escrow_ledger = EscrowLedger()
