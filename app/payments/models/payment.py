"""
Payment model for booking escrow.

A Payment is one checkout attempt for a booking. It snapshots the vendor's
commission rate at initialization, holds the client's money in escrow once
Paystack confirms the charge, and is settled exactly once: released to the
vendor, refunded to the client, or split between them by a dispute.

Usage:
    from payments.models import Payment
    from payments.state_machines import EscrowStatus

    payment = Payment.objects.select_for_update().get(reference=reference)
    payment.hold(authorization_code="AUTH_xxx")  # pending -> held
    payment.save()

    payment.release()  # held -> released
    payment.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import EscrowStatus, PaymentStatus


class Payment(UUIDPrimaryKeyMixin, BaseModel):
    """
    Escrowed payment for one booking.

    Uses django-fsm on escrow_status and an optimistic version counter.
    status mirrors the escrow state in client-facing terms and is written
    by the same transitions.

    State Flow:
        PENDING -> HELD -> RELEASED | REFUNDED | SPLIT

    Fields:
        booking: Booking being paid for
        user: Client who pays
        amount: Booking total in whole currency units
        commission_rate: Vendor's rate when the payment was initialized
        platform_fee / vendor_amount: Always sum to amount
        reference: Globally unique PAY- reference sent to Paystack
        escrow_status: FSM-managed escrow state
        version: Optimistic locking version

    Note:
        A booking may accumulate several PENDING payments (abandoned
        checkouts), but at most one may ever leave PENDING.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="Booking this payment is for",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="Client making the payment",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    amount = models.PositiveBigIntegerField(
        help_text="Payment amount in whole currency units",
    )

    currency = models.CharField(
        max_length=3,
        default="NGN",
        help_text="ISO 4217 currency code",
    )

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        help_text="Commission percentage snapshot taken at initialization",
    )

    platform_fee = models.PositiveBigIntegerField(
        help_text="Platform share (amount x rate / 100, rounded half up)",
    )

    vendor_amount = models.PositiveBigIntegerField(
        help_text="Vendor share (amount - platform_fee)",
    )

    # ==========================================================================
    # Gateway
    # ==========================================================================

    reference = models.CharField(
        max_length=64,
        unique=True,
        help_text="Unique payment reference (PAY-...) shared with Paystack",
    )

    authorization_url = models.URLField(
        max_length=500,
        blank=True,
        help_text="Paystack checkout URL",
    )

    access_code = models.CharField(
        max_length=100,
        blank=True,
        help_text="Paystack access code",
    )

    authorization_code = models.CharField(
        max_length=100,
        blank=True,
        help_text="Paystack authorization code from the successful charge",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True,
        help_text="Client-facing payment status",
    )

    escrow_status = FSMField(
        default=EscrowStatus.PENDING,
        choices=EscrowStatus.choices,
        db_index=True,
        protected=True,
        help_text="Escrow state (managed by FSM)",
    )

    # ==========================================================================
    # Concurrency Control
    # ==========================================================================

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    paid_at = models.DateTimeField(null=True, blank=True, help_text="When the charge succeeded")
    escrowed_at = models.DateTimeField(null=True, blank=True, help_text="When funds entered escrow")
    released_at = models.DateTimeField(null=True, blank=True, help_text="When the vendor was paid")
    refunded_at = models.DateTimeField(null=True, blank=True, help_text="When the client was refunded")
    failed_at = models.DateTimeField(null=True, blank=True, help_text="When the charge failed")

    # ==========================================================================
    # Refund Details
    # ==========================================================================

    refund_amount = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Amount returned to the client (full or split share)",
    )

    refund_reason = models.TextField(
        blank=True,
        help_text="Why the payment was refunded or split",
    )

    refunded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="refunded_payments",
        help_text="User whose action triggered the refund",
    )

    # ==========================================================================
    # Metadata & Error Info
    # ==========================================================================

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Metadata sent to Paystack with the initialization",
    )

    failure_reason = models.TextField(
        blank=True,
        help_text="Gateway status when verification did not succeed",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(fields=["booking", "escrow_status"]),
            models.Index(fields=["user", "created_at"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_amount_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(platform_fee__lte=F("amount"))
                & models.Q(vendor_amount=F("amount") - F("platform_fee")),
                name="payment_fee_split_sums_to_amount",
            ),
            models.UniqueConstraint(
                fields=["booking"],
                condition=~models.Q(escrow_status=EscrowStatus.PENDING),
                name="payment_one_funded_per_booking",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment({self.reference}, {self.escrow_status}, {self.amount} {self.currency})"

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment for optimistic locking.

        On update (not force_insert), atomically increments the version
        field to detect concurrent modifications.
        """
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_held(self) -> bool:
        return self.escrow_status == EscrowStatus.HELD

    @property
    def is_settled(self) -> bool:
        return self.escrow_status in (
            EscrowStatus.RELEASED,
            EscrowStatus.REFUNDED,
            EscrowStatus.SPLIT,
        )

    def mark_failed(self, reason: str) -> None:
        """
        Record a failed charge. Only meaningful while still PENDING.

        Note: Does not save - caller must save after calling.
        """
        self.status = PaymentStatus.FAILED
        self.failed_at = timezone.now()
        self.failure_reason = reason

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=escrow_status,
        source=EscrowStatus.PENDING,
        target=EscrowStatus.HELD,
    )
    def hold(self, authorization_code: str = ""):
        """
        Place the confirmed charge in escrow.

        Transition: PENDING -> HELD
        """
        now = timezone.now()
        self.status = PaymentStatus.ESCROWED
        self.paid_at = now
        self.escrowed_at = now
        self.authorization_code = authorization_code or ""

    @transition(
        field=escrow_status,
        source=EscrowStatus.HELD,
        target=EscrowStatus.RELEASED,
    )
    def release(self):
        """
        Release the vendor share.

        Transition: HELD -> RELEASED
        """
        self.status = PaymentStatus.RELEASED
        self.released_at = timezone.now()

    @transition(
        field=escrow_status,
        source=EscrowStatus.HELD,
        target=EscrowStatus.REFUNDED,
    )
    def refund(self, refunded_by=None, reason: str = ""):
        """
        Return the full amount to the client.

        Transition: HELD -> REFUNDED
        """
        self.status = PaymentStatus.REFUNDED
        self.refunded_at = timezone.now()
        self.refund_amount = self.amount
        self.refund_reason = reason or ""
        self.refunded_by = refunded_by

    @transition(
        field=escrow_status,
        source=EscrowStatus.HELD,
        target=EscrowStatus.SPLIT,
    )
    def split(self, refund_amount: int, refunded_by=None, reason: str = ""):
        """
        Divide the escrow between client and vendor.

        Transition: HELD -> SPLIT
        """
        now = timezone.now()
        self.status = PaymentStatus.PARTIALLY_REFUNDED
        self.refunded_at = now
        self.released_at = now
        self.refund_amount = refund_amount
        self.refund_reason = reason or ""
        self.refunded_by = refunded_by
