"""
Withdrawal model for vendor payouts.

A withdrawal debits the vendor's wallet when requested and is then paid
out by a Paystack transfer. If the transfer fails or an admin rejects the
request, the wallet is re-credited.

Usage:
    from payments.models import Withdrawal

    withdrawal = Withdrawal.objects.select_for_update().get(id=withdrawal_id)
    withdrawal.start_processing(processed_by=admin)
    withdrawal.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import WithdrawalStatus


class Withdrawal(UUIDPrimaryKeyMixin, BaseModel):
    """
    A vendor's request to move wallet funds to a bank account.

    State Flow:
        PENDING -> PROCESSING -> COMPLETED
        PENDING -> PROCESSING -> FAILED
        COMPLETED -> FAILED (transfer reversed)
        PENDING -> REJECTED

    Fields:
        user: Vendor withdrawing
        amount: Amount debited from the wallet
        withdrawal_fee: Flat fee kept by the platform
        net_amount: amount - withdrawal_fee, sent to the bank
        reference: Unique WTH- reference, also the Paystack transfer reference
        recipient_code / transfer_code: Paystack identifiers
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="withdrawals",
        help_text="Vendor requesting the withdrawal",
    )

    amount = models.PositiveBigIntegerField(
        help_text="Amount debited from the wallet",
    )

    withdrawal_fee = models.PositiveBigIntegerField(
        help_text="Flat withdrawal fee",
    )

    net_amount = models.PositiveBigIntegerField(
        help_text="Amount sent to the bank account",
    )

    # ==========================================================================
    # Bank Details
    # ==========================================================================

    bank_name = models.CharField(max_length=100, help_text="Destination bank name")
    bank_code = models.CharField(max_length=20, blank=True, help_text="Paystack bank code")
    account_number = models.CharField(max_length=20, help_text="Destination account number")
    account_name = models.CharField(max_length=120, help_text="Destination account name")

    reference = models.CharField(
        max_length=64,
        unique=True,
        help_text="Unique withdrawal reference (WTH-...)",
    )

    status = FSMField(
        default=WithdrawalStatus.PENDING,
        choices=WithdrawalStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current withdrawal state (managed by FSM)",
    )

    # ==========================================================================
    # Gateway
    # ==========================================================================

    recipient_code = models.CharField(max_length=100, blank=True, help_text="Paystack transfer recipient code")
    transfer_code = models.CharField(max_length=100, blank=True, help_text="Paystack transfer code")

    # ==========================================================================
    # Processing
    # ==========================================================================

    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="processed_withdrawals",
        help_text="Admin who processed or rejected the request",
    )
    processed_at = models.DateTimeField(null=True, blank=True, help_text="When processing started")
    completed_at = models.DateTimeField(null=True, blank=True, help_text="When the transfer succeeded")
    failed_at = models.DateTimeField(null=True, blank=True, help_text="When the transfer failed")
    failure_reason = models.TextField(blank=True, help_text="Why the transfer failed")
    rejected_at = models.DateTimeField(null=True, blank=True, help_text="When an admin rejected it")
    rejection_reason = models.TextField(blank=True, help_text="Why it was rejected")

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Withdrawal"
        verbose_name_plural = "Withdrawals"
        indexes = [
            models.Index(fields=["user", "status"]),
            models.Index(fields=["status", "created_at"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(net_amount=F("amount") - F("withdrawal_fee")),
                name="withdrawal_net_amount_matches",
            ),
        ]

    def __str__(self) -> str:
        return f"Withdrawal({self.reference}, {self.status}, {self.amount})"

    @property
    def is_terminal(self) -> bool:
        return self.status in (
            WithdrawalStatus.COMPLETED,
            WithdrawalStatus.FAILED,
            WithdrawalStatus.REJECTED,
        )

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=WithdrawalStatus.PENDING,
        target=WithdrawalStatus.PROCESSING,
    )
    def start_processing(self, processed_by=None):
        """
        Begin the payout.

        Transition: PENDING -> PROCESSING
        """
        self.processed_by = processed_by
        self.processed_at = timezone.now()

    @transition(
        field=status,
        source=WithdrawalStatus.PROCESSING,
        target=WithdrawalStatus.COMPLETED,
    )
    def complete(self, transfer_code: str = ""):
        """
        Record a successful transfer.

        Transition: PROCESSING -> COMPLETED
        """
        self.completed_at = timezone.now()
        if transfer_code:
            self.transfer_code = transfer_code

    @transition(
        field=status,
        source=WithdrawalStatus.PROCESSING,
        target=WithdrawalStatus.FAILED,
    )
    def fail(self, reason: str):
        """
        Record a failed transfer.

        Transition: PROCESSING -> FAILED
        """
        self.failed_at = timezone.now()
        self.failure_reason = reason

    @transition(
        field=status,
        source=WithdrawalStatus.COMPLETED,
        target=WithdrawalStatus.FAILED,
    )
    def reverse(self, reason: str):
        """
        Record a transfer Paystack reversed after reporting success.

        Transition: COMPLETED -> FAILED
        """
        self.failed_at = timezone.now()
        self.failure_reason = reason

    @transition(
        field=status,
        source=WithdrawalStatus.PENDING,
        target=WithdrawalStatus.REJECTED,
    )
    def reject(self, rejected_by=None, reason: str = ""):
        """
        Reject the request before any transfer.

        Transition: PENDING -> REJECTED
        """
        self.processed_by = rejected_by
        self.rejected_at = timezone.now()
        self.rejection_reason = reason or ""
