"""
Transaction model: the append-only wallet log.

Every change to User.wallet_balance is paired, in the same database
transaction, with exactly one Transaction carrying the same signed delta
and the balance before and after. A user's balance therefore always equals
the sum of their Transaction amounts.

Rows are written only by payments.ledger.WalletLedger and are immutable.

Usage:
    from payments.models import Transaction

    history = Transaction.objects.filter(user=user).order_by("-created_at")
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import TransactionStatus, TransactionType


class ImmutableTransactionError(Exception):
    """Raised when attempting to modify or delete a Transaction."""


class Transaction(UUIDPrimaryKeyMixin, BaseModel):
    """
    One signed wallet movement.

    Fields:
        user: Wallet owner
        amount: Signed delta (credits positive, debits negative)
        balance_before / balance_after: Wallet balance around the movement
        type: What kind of movement this is
        status: Completed, or pending while a withdrawal transfer settles
        reference: Unique TXN-/REF-/WTH-/SUB- reference
        booking / payment / withdrawal: Optional links to the cause
        idempotency_key: Optional key; a repeated write returns the first row

    Note:
        save() on an existing row and delete() raise ImmutableTransactionError.
        Corrections are new rows. The only permitted change is advancing the
        status of a pending withdrawal debit, done with a queryset update.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="transactions",
        help_text="Wallet owner",
    )

    amount = models.BigIntegerField(
        help_text="Signed wallet delta in whole currency units",
    )

    balance_before = models.BigIntegerField(
        help_text="Wallet balance before this movement",
    )

    balance_after = models.BigIntegerField(
        help_text="Wallet balance after this movement",
    )

    type = models.CharField(
        max_length=30,
        choices=TransactionType.choices,
        db_index=True,
        help_text="Kind of wallet movement",
    )

    status = models.CharField(
        max_length=20,
        choices=TransactionStatus.choices,
        default=TransactionStatus.COMPLETED,
        help_text="Movement status",
    )

    reference = models.CharField(
        max_length=64,
        unique=True,
        help_text="Unique transaction reference",
    )

    description = models.CharField(
        max_length=255,
        blank=True,
        help_text="Human-readable description",
    )

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="transactions",
        help_text="Booking that caused this movement",
    )

    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="transactions",
        help_text="Payment that caused this movement",
    )

    withdrawal = models.ForeignKey(
        "payments.Withdrawal",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="transactions",
        help_text="Withdrawal that caused this movement",
    )

    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Key preventing the same movement from being written twice",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Additional context",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Transaction"
        verbose_name_plural = "Transactions"
        indexes = [
            models.Index(fields=["user", "created_at"]),
            models.Index(fields=["user", "type"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["idempotency_key"],
                condition=models.Q(idempotency_key__isnull=False),
                name="transaction_idempotency_key_unique",
            ),
            models.CheckConstraint(
                condition=models.Q(balance_after=F("balance_before") + F("amount")),
                name="transaction_balance_delta_matches",
            ),
        ]

    def __str__(self) -> str:
        return f"Transaction({self.reference}, {self.type}, {self.amount:+d})"

    def save(self, *args, **kwargs):
        """Allow creation only; Transactions are immutable once written."""
        if not self._state.adding:
            raise ImmutableTransactionError(
                "Transactions are immutable. Write a correcting transaction instead."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """Prevent deletion of transactions."""
        raise ImmutableTransactionError("Transactions cannot be deleted.")
