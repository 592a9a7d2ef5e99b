"""
Wallet ledger service.

WalletLedger is the only code allowed to change User.wallet_balance. Each
credit or debit locks the user row, writes exactly one Transaction with the
signed delta and the balance before and after, and updates the balance, all
inside one database transaction. The balance therefore always equals the
sum of the user's Transaction amounts, which reconcile() checks.

Usage:
    from payments.ledger import wallet_ledger, WalletEntryParams

    txn = wallet_ledger.credit(WalletEntryParams(
        user_id=vendor.id,
        amount=4500,
        type=TransactionType.BOOKING_PAYMENT,
        idempotency_key=f"release:{payment.id}",
    ))
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.db.models.functions import Abs, Coalesce

from core.helpers import generate_reference

from payments.models import Transaction, Withdrawal
from payments.state_machines import TransactionStatus, TransactionType, WithdrawalStatus

from .exceptions import InsufficientBalance, LedgerInvariantError, WalletNotFound
from .types import WalletEntryParams, WalletReconciliation, WalletStats

if TYPE_CHECKING:
    from datetime import datetime

    from django.db.models import QuerySet

logger = logging.getLogger(__name__)

# Inbound earnings counted by wallet_stats
RECEIVED_TYPES = (TransactionType.BOOKING_PAYMENT, TransactionType.DEPOSIT)


class WalletLedger:
    """
    Service class for wallet operations.

    Key features:
    - Row lock on the wallet owner for every mutation
    - Idempotency via optional unique keys (safe to retry)
    - Balance validation before debits
    - One Transaction per balance change

    All methods are static - no instance state is maintained.
    """

    @staticmethod
    def credit(params: WalletEntryParams) -> Transaction:
        """
        Add params.amount to the wallet.

        Returns:
            The created Transaction, or the existing one for a repeated
            idempotency_key

        Raises:
            WalletNotFound: If the user doesn't exist
        """
        return WalletLedger._record(params, params.amount)

    @staticmethod
    def debit(params: WalletEntryParams) -> Transaction:
        """
        Remove params.amount from the wallet.

        Raises:
            WalletNotFound: If the user doesn't exist
            InsufficientBalance: If the balance is lower than the amount
        """
        return WalletLedger._record(params, -params.amount)

    @staticmethod
    def _record(params: WalletEntryParams, delta: int) -> Transaction:
        User = get_user_model()

        with transaction.atomic():
            try:
                user = User.objects.select_for_update().get(id=params.user_id)
            except User.DoesNotExist:
                raise WalletNotFound(
                    f"User {params.user_id} not found",
                    details={"user_id": str(params.user_id)},
                )

            # Idempotency is checked under the user lock so a concurrent
            # retry for the same wallet sees the first write.
            if params.idempotency_key:
                existing = Transaction.objects.filter(
                    idempotency_key=params.idempotency_key
                ).first()
                if existing is not None:
                    logger.info(
                        "Wallet entry already recorded",
                        extra={
                            "idempotency_key": params.idempotency_key,
                            "transaction_id": str(existing.id),
                        },
                    )
                    return existing

            balance_before = user.wallet_balance
            balance_after = balance_before + delta
            if balance_after < 0:
                raise InsufficientBalance(
                    user.id,
                    required=params.amount,
                    available=balance_before,
                )

            try:
                with transaction.atomic():
                    txn = Transaction.objects.create(
                        user=user,
                        amount=delta,
                        balance_before=balance_before,
                        balance_after=balance_after,
                        type=params.type,
                        status=params.status,
                        reference=params.reference or generate_reference("TXN"),
                        description=params.description,
                        booking_id=params.booking_id,
                        payment_id=params.payment_id,
                        withdrawal_id=params.withdrawal_id,
                        idempotency_key=params.idempotency_key,
                        metadata=params.metadata or {},
                    )
            except IntegrityError:
                # Another wallet already used this key
                if params.idempotency_key:
                    existing = Transaction.objects.filter(
                        idempotency_key=params.idempotency_key
                    ).first()
                    if existing is not None:
                        return existing
                raise

            User.objects.filter(id=user.id).update(wallet_balance=balance_after)

        logger.info(
            "Wallet %s",
            "credited" if delta > 0 else "debited",
            extra={
                "user_id": str(params.user_id),
                "amount": delta,
                "balance_after": balance_after,
                "transaction_type": params.type,
                "reference": txn.reference,
            },
        )
        return txn

    @staticmethod
    def set_transaction_status(transaction_id: uuid.UUID, status: str) -> int:
        """
        Advance the status of a pending transaction.

        Used for withdrawal debits once the transfer settles. Goes through a
        queryset update because Transaction.save() refuses updates.

        Returns:
            Number of rows changed (0 if it was no longer pending)
        """
        return Transaction.objects.filter(
            id=transaction_id,
            status=TransactionStatus.PENDING,
        ).update(status=status)

    @staticmethod
    def get_balance(user_id: uuid.UUID) -> int:
        User = get_user_model()
        try:
            return User.objects.values_list("wallet_balance", flat=True).get(id=user_id)
        except User.DoesNotExist:
            raise WalletNotFound(
                f"User {user_id} not found",
                details={"user_id": str(user_id)},
            )

    @staticmethod
    def list_transactions(
        user_id: uuid.UUID,
        type: str | None = None,
        status: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> QuerySet[Transaction]:
        """
        Transactions for one wallet, newest first.

        Args:
            user_id: Wallet owner
            type: Optional TransactionType filter
            status: Optional TransactionStatus filter
            start_date / end_date: Optional created_at bounds (inclusive)
        """
        queryset = Transaction.objects.filter(user_id=user_id)
        if type:
            queryset = queryset.filter(type=type)
        if status:
            queryset = queryset.filter(status=status)
        if start_date:
            queryset = queryset.filter(created_at__gte=start_date)
        if end_date:
            queryset = queryset.filter(created_at__lte=end_date)
        return queryset.order_by("-created_at")

    @staticmethod
    def wallet_stats(user_id: uuid.UUID) -> WalletStats:
        """
        Balance plus lifetime earnings, completed withdrawals and
        withdrawals still in flight.
        """
        balance = WalletLedger.get_balance(user_id)
        completed = Transaction.objects.filter(
            user_id=user_id, status=TransactionStatus.COMPLETED
        )

        total_received = completed.filter(type__in=RECEIVED_TYPES).aggregate(
            total=Coalesce(Sum("amount"), 0)
        )["total"]
        total_withdrawn = completed.filter(type=TransactionType.WITHDRAWAL).aggregate(
            total=Coalesce(Sum(Abs("amount")), 0)
        )["total"]
        pending_withdrawals = Withdrawal.objects.filter(
            user_id=user_id,
            status__in=[WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING],
        ).aggregate(total=Coalesce(Sum("amount"), 0))["total"]

        return WalletStats(
            balance=balance,
            total_received=total_received,
            total_withdrawn=total_withdrawn,
            pending_withdrawals=pending_withdrawals,
        )

    @staticmethod
    def reconcile(user_id: uuid.UUID, raise_on_mismatch: bool = False) -> WalletReconciliation:
        """
        Compare the stored balance with the sum of the transaction log.

        Args:
            user_id: Wallet owner
            raise_on_mismatch: Raise LedgerInvariantError instead of returning

        Returns:
            WalletReconciliation with both figures
        """
        balance = WalletLedger.get_balance(user_id)
        ledger_total = Transaction.objects.filter(user_id=user_id).aggregate(
            total=Coalesce(Sum("amount"), 0)
        )["total"]
        result = WalletReconciliation(
            user_id=user_id,
            balance=balance,
            ledger_total=ledger_total,
        )

        if not result.is_balanced:
            logger.error(
                "Wallet balance does not match transaction log",
                extra={
                    "user_id": str(user_id),
                    "balance": balance,
                    "ledger_total": ledger_total,
                },
            )
            if raise_on_mismatch:
                raise LedgerInvariantError(
                    f"Wallet {user_id} is off by {result.difference}",
                    details={
                        "user_id": str(user_id),
                        "balance": balance,
                        "ledger_total": ledger_total,
                    },
                )
        return result


# Singleton instance for convenience
# Usage: from payments.ledger.services import wallet_ledger
wallet_ledger = WalletLedger()
