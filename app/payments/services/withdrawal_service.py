"""
Vendor withdrawals.

The wallet is debited when the request is made (a pending `withdrawal`
Transaction), so the money cannot be spent twice while an admin reviews it.
Every way a withdrawal can end without reaching the bank (rejection, a
transfer Paystack rejected, a failed or reversed transfer) credits the full
amount back with a `refund` Transaction. A transfer call that timed out
stays PROCESSING until the webhook reports the outcome.

Flow:
    request_withdrawal   -> PENDING, wallet debited
    process_withdrawal   -> PROCESSING, Paystack recipient + transfer
    complete_transfer    -> COMPLETED (transfer.success webhook)
    fail_transfer        -> FAILED, wallet re-credited (transfer.failed/reversed)
    reject_withdrawal    -> REJECTED, wallet re-credited
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from django.conf import settings
from django_fsm import TransitionNotAllowed

from core.helpers import generate_reference
from core.services import BaseService
from notifications.models import NotificationType
from notifications.services import notification_dispatcher

from payments.adapters import PaystackAdapter
from payments.exceptions import (
    GatewayError,
    GatewayRequestError,
    InvalidStateTransitionError,
    PaymentNotFoundError,
    PaymentPermissionError,
    PaymentValidationError,
)
from payments.ledger import WalletEntryParams, wallet_ledger
from payments.models import Transaction, Withdrawal
from payments.state_machines import TransactionStatus, TransactionType, WithdrawalStatus

if TYPE_CHECKING:
    import uuid

    from django.db.models import QuerySet

    from accounts.models import User


# Paystack NUBAN bank codes by display name
BANK_CODES: dict[str, str] = {
    "Access Bank": "044",
    "GTBank": "058",
    "First Bank": "011",
    "UBA": "033",
    "Zenith Bank": "057",
    "Fidelity Bank": "070",
    "FCMB": "214",
    "Sterling Bank": "232",
    "Union Bank": "032",
    "Wema Bank": "035",
    "Polaris Bank": "076",
    "Stanbic IBTC": "221",
    "Standard Chartered": "068",
    "Keystone Bank": "082",
    "Unity Bank": "215",
    "Jaiz Bank": "301",
    "Heritage Bank": "030",
    "Ecobank": "050",
    "Kuda Bank": "50211",
    "Opay": "999992",
    "Palmpay": "999991",
}

PIN_PATTERN = re.compile(r"^\d{4,6}$")


def resolve_bank_code(bank_name: str) -> str:
    """
    Look up the Paystack code for a bank name (case-insensitive).

    Raises:
        PaymentValidationError: Unsupported bank
    """
    wanted = (bank_name or "").strip().lower()
    for name, code in BANK_CODES.items():
        if name.lower() == wanted:
            return code
    raise PaymentValidationError(
        "Unsupported bank",
        error_code="UNSUPPORTED_BANK",
        details={"bank_name": bank_name, "supported": sorted(BANK_CODES)},
    )


class WithdrawalService(BaseService):
    """
    Withdrawal requests, payouts and their wallet side effects.

    Methods:
        set_withdrawal_pin: Store a hashed 4-6 digit PIN
        request_withdrawal: Vendor asks for a payout
        process_withdrawal: Admin sends it through Paystack
        reject_withdrawal: Admin declines it
        complete_transfer / fail_transfer: Webhook outcomes (idempotent)
        get_withdrawal / list_withdrawals: Reads
    """

    @classmethod
    def set_withdrawal_pin(cls, user: User, pin: str, current_pin: str | None = None) -> None:
        """
        Set or change the withdrawal PIN.

        Changing an existing PIN requires the current one.

        Raises:
            PaymentValidationError: PIN is not 4-6 digits, or current_pin is wrong
        """
        if not PIN_PATTERN.match(pin or ""):
            raise PaymentValidationError(
                "PIN must be 4 to 6 digits",
                error_code="INVALID_PIN_FORMAT",
            )
        if user.has_withdrawal_pin and not user.check_withdrawal_pin(current_pin or ""):
            raise PaymentValidationError(
                "Current PIN is incorrect",
                error_code="INVALID_PIN",
            )

        user.set_withdrawal_pin(pin)
        user.save(update_fields=["withdrawal_pin", "updated_at"])
        cls.get_logger().info("Withdrawal PIN set", extra={"user_id": str(user.id)})

    @classmethod
    def request_withdrawal(
        cls,
        user: User,
        amount: int,
        bank_name: str,
        account_number: str,
        account_name: str,
        pin: str,
    ) -> Withdrawal:
        """
        Request a payout and debit the wallet.

        Raises:
            PaymentPermissionError: Not a vendor
            PaymentValidationError: PIN missing or wrong, amount below the
                minimum, unsupported bank
            InsufficientBalance: Wallet balance lower than amount
        """
        if not user.is_vendor:
            raise PaymentPermissionError(
                "Only vendors can withdraw funds",
                error_code="NOT_A_VENDOR",
            )
        if not user.has_withdrawal_pin:
            raise PaymentValidationError(
                "Please set up your withdrawal PIN first",
                error_code="PIN_NOT_SET",
            )
        if not user.check_withdrawal_pin(pin):
            raise PaymentValidationError("Invalid withdrawal PIN", error_code="INVALID_PIN")

        minimum = settings.MIN_WITHDRAWAL_AMOUNT
        fee = settings.WITHDRAWAL_FEE
        if amount < minimum or amount <= fee:
            raise PaymentValidationError(
                f"Minimum withdrawal is {minimum}",
                error_code="BELOW_MINIMUM_WITHDRAWAL",
                details={"amount": amount, "minimum": minimum},
            )
        bank_code = resolve_bank_code(bank_name)

        with cls.atomic():
            withdrawal = Withdrawal.objects.create(
                user=user,
                amount=amount,
                withdrawal_fee=fee,
                net_amount=amount - fee,
                bank_name=bank_name,
                bank_code=bank_code,
                account_number=account_number,
                account_name=account_name,
                reference=generate_reference("WTH"),
            )
            # Raises InsufficientBalance and rolls the withdrawal back with it
            wallet_ledger.debit(
                WalletEntryParams(
                    user_id=user.id,
                    amount=amount,
                    type=TransactionType.WITHDRAWAL,
                    description=f"Withdrawal to {bank_name} - {account_number}",
                    withdrawal_id=withdrawal.id,
                    idempotency_key=f"withdrawal:{withdrawal.id}",
                    status=TransactionStatus.PENDING,
                )
            )

        cls.get_logger().info(
            "Withdrawal requested",
            extra={
                "withdrawal_id": str(withdrawal.id),
                "reference": withdrawal.reference,
                "amount": amount,
                "user_id": str(user.id),
            },
        )
        return withdrawal

    @classmethod
    def process_withdrawal(cls, withdrawal_id: uuid.UUID, admin: User | None = None) -> Withdrawal:
        """
        Send a pending withdrawal to the bank.

        The PROCESSING state is committed before Paystack is called, so a
        second call cannot start a second transfer. Failures that prove no
        money moved (recipient creation, or a transfer Paystack rejected)
        mark the withdrawal failed and refund the wallet instead of raising.
        A timeout or outage on the transfer call leaves the withdrawal
        PROCESSING; the transfer.success/transfer.failed webhook settles it.

        Raises:
            PaymentNotFoundError: Unknown withdrawal
            InvalidStateTransitionError: Not pending
        """
        logger = cls.get_logger()

        with cls.atomic():
            withdrawal = cls._get_locked(id=withdrawal_id)
            cls._transition(withdrawal, "start_processing", processed_by=admin)
            withdrawal.save()

        try:
            recipient_code = PaystackAdapter.create_transfer_recipient(
                name=withdrawal.account_name,
                account_number=withdrawal.account_number,
                bank_code=withdrawal.bank_code,
            )
        except GatewayError as e:
            logger.error(
                "Transfer recipient could not be created",
                extra={"reference": withdrawal.reference, "error_code": e.error_code},
                exc_info=True,
            )
            return cls.fail_transfer(withdrawal.reference, reason=e.message)

        with cls.atomic():
            withdrawal = cls._get_locked(id=withdrawal.id)
            withdrawal.recipient_code = recipient_code
            withdrawal.save(update_fields=["recipient_code", "updated_at"])

        try:
            result = PaystackAdapter.transfer(
                recipient_code=recipient_code,
                amount_minor_units=withdrawal.net_amount * 100,
                reference=withdrawal.reference,
                reason="Vendor withdrawal",
            )
        except GatewayRequestError as e:
            logger.error(
                "Withdrawal transfer rejected by gateway",
                extra={"reference": withdrawal.reference, "error_code": e.error_code},
                exc_info=True,
            )
            return cls.fail_transfer(withdrawal.reference, reason=e.message)
        except GatewayError as e:
            # Paystack may have accepted the transfer
            logger.warning(
                "Withdrawal transfer outcome unknown, awaiting webhook",
                extra={"reference": withdrawal.reference, "error_code": e.error_code},
                exc_info=True,
            )
            return withdrawal

        with cls.atomic():
            withdrawal = cls._get_locked(id=withdrawal.id)
            withdrawal.transfer_code = result.transfer_code
            withdrawal.save(update_fields=["transfer_code", "updated_at"])

        logger.info(
            "Withdrawal transfer initiated",
            extra={
                "reference": withdrawal.reference,
                "transfer_code": result.transfer_code,
                "gateway_status": result.status,
            },
        )
        if result.status == "success":
            return cls.complete_transfer(withdrawal.reference, result.transfer_code)
        return withdrawal

    @classmethod
    def reject_withdrawal(cls, withdrawal_id: uuid.UUID, admin: User | None = None, reason: str = "") -> Withdrawal:
        """
        Decline a pending withdrawal and return the money to the wallet.

        Raises:
            PaymentNotFoundError: Unknown withdrawal
            InvalidStateTransitionError: Not pending
        """
        with cls.atomic():
            withdrawal = cls._get_locked(id=withdrawal_id)
            cls._transition(withdrawal, "reject", rejected_by=admin, reason=reason)
            withdrawal.save()
            cls._refund(withdrawal, reason or "Withdrawal rejected")

        cls.get_logger().info(
            "Withdrawal rejected",
            extra={"reference": withdrawal.reference, "reason": reason},
        )
        return withdrawal

    @classmethod
    def complete_transfer(cls, reference: str, transfer_code: str = "") -> Withdrawal:
        """
        Record a successful transfer. Repeats are no-ops.

        Raises:
            PaymentNotFoundError: Unknown reference
        """
        logger = cls.get_logger()

        with cls.atomic():
            withdrawal = cls._get_locked(reference=reference)
            if withdrawal.status != WithdrawalStatus.PROCESSING:
                logger.info(
                    "Transfer success ignored",
                    extra={"reference": reference, "status": withdrawal.status},
                )
                return withdrawal

            withdrawal.complete(transfer_code=transfer_code)
            withdrawal.save()
            debit = cls._debit_transaction(withdrawal)
            if debit is not None:
                wallet_ledger.set_transaction_status(debit.id, TransactionStatus.COMPLETED)

            notification_dispatcher.notify(
                withdrawal.user,
                NotificationType.WITHDRAWAL_COMPLETED,
                data={"amount": withdrawal.net_amount, "reference": reference},
                idempotency_key=f"withdrawal_completed:{withdrawal.id}",
            )

        logger.info("Withdrawal completed", extra={"reference": reference})
        return withdrawal

    @classmethod
    def fail_transfer(cls, reference: str, reason: str = "", is_reversal: bool = False) -> Withdrawal:
        """
        Record a failed transfer and refund the wallet. Repeats are no-ops.

        Args:
            reference: Withdrawal reference
            reason: Gateway message
            is_reversal: The transfer was reversed; a completed withdrawal is
                failed and refunded too

        Raises:
            PaymentNotFoundError: Unknown reference
        """
        logger = cls.get_logger()
        reason = reason or ("Transfer reversed" if is_reversal else "Transfer failed")

        with cls.atomic():
            withdrawal = cls._get_locked(reference=reference)
            if withdrawal.status == WithdrawalStatus.PROCESSING:
                withdrawal.fail(reason)
            elif is_reversal and withdrawal.status == WithdrawalStatus.COMPLETED:
                withdrawal.reverse(reason)
            else:
                logger.info(
                    "Transfer failure ignored",
                    extra={"reference": reference, "status": withdrawal.status},
                )
                return withdrawal

            withdrawal.save()
            cls._refund(withdrawal, reason)

        logger.warning(
            "Withdrawal failed and refunded",
            extra={"reference": reference, "reason": reason},
        )
        return withdrawal

    @classmethod
    def get_withdrawal(cls, withdrawal_id: uuid.UUID, user: User) -> Withdrawal:
        """
        Raises:
            PaymentNotFoundError: Unknown withdrawal, or not visible to user
        """
        queryset = Withdrawal.objects.all() if user.is_platform_admin else Withdrawal.objects.filter(user=user)
        withdrawal = queryset.filter(id=withdrawal_id).first()
        if withdrawal is None:
            raise PaymentNotFoundError(
                "Withdrawal not found",
                error_code="WITHDRAWAL_NOT_FOUND",
                details={"withdrawal_id": str(withdrawal_id)},
            )
        return withdrawal

    @classmethod
    def list_withdrawals(cls, user: User, status: str | None = None, all_users: bool = False) -> QuerySet[Withdrawal]:
        """The user's withdrawals, or everyone's for an admin with all_users."""
        queryset = Withdrawal.objects.select_related("user")
        if not (all_users and user.is_platform_admin):
            queryset = queryset.filter(user=user)
        if status:
            queryset = queryset.filter(status=status)
        return queryset.order_by("-created_at")

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _get_locked(**lookup) -> Withdrawal:
        try:
            return Withdrawal.objects.select_for_update(of=("self",)).select_related("user").get(**lookup)
        except Withdrawal.DoesNotExist:
            raise PaymentNotFoundError(
                "Withdrawal not found",
                error_code="WITHDRAWAL_NOT_FOUND",
                details={key: str(value) for key, value in lookup.items()},
            )

    @staticmethod
    def _transition(withdrawal: Withdrawal, name: str, **kwargs) -> None:
        try:
            getattr(withdrawal, name)(**kwargs)
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot {name.replace('_', ' ')} a {withdrawal.status} withdrawal",
                details={"current_state": withdrawal.status, "transition": name},
            )

    @staticmethod
    def _debit_transaction(withdrawal: Withdrawal) -> Transaction | None:
        return Transaction.objects.filter(
            withdrawal=withdrawal,
            type=TransactionType.WITHDRAWAL,
        ).first()

    @classmethod
    def _refund(cls, withdrawal: Withdrawal, reason: str) -> None:
        """Credit the full amount back and close the pending debit."""
        debit = cls._debit_transaction(withdrawal)
        if debit is not None:
            wallet_ledger.set_transaction_status(debit.id, TransactionStatus.FAILED)

        wallet_ledger.credit(
            WalletEntryParams(
                user_id=withdrawal.user_id,
                amount=withdrawal.amount,
                type=TransactionType.REFUND,
                description=f"Withdrawal {withdrawal.reference} returned: {reason}",
                withdrawal_id=withdrawal.id,
                idempotency_key=f"withdrawal-refund:{withdrawal.id}",
            )
        )
        notification_dispatcher.notify(
            withdrawal.user,
            NotificationType.WITHDRAWAL_FAILED,
            data={"amount": withdrawal.amount, "reference": withdrawal.reference},
            idempotency_key=f"withdrawal_failed:{withdrawal.id}",
        )


withdrawal_service = WithdrawalService()
