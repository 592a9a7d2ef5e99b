"""
Tests for WithdrawalService.

The wallet is debited at request time; every path that does not reach
the bank must credit the full amount back exactly once.
"""

from unittest.mock import patch

import pytest

from accounts.models import User
from notifications.models import Notification, NotificationType
from payments.adapters import TransferResult
from payments.exceptions import (
    GatewayRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
    InvalidStateTransitionError,
    PaymentNotFoundError,
    PaymentPermissionError,
    PaymentValidationError,
)
from payments.ledger import InsufficientBalance, WalletEntryParams, wallet_ledger
from payments.models import Transaction, Withdrawal
from payments.services import withdrawal_service
from payments.services.withdrawal_service import resolve_bank_code
from payments.state_machines import TransactionStatus, TransactionType, WithdrawalStatus
from payments.tasks import process_withdrawal_transfer

ADAPTER = "payments.services.withdrawal_service.PaystackAdapter"


@pytest.fixture
def funded_vendor(vendor_user):
    """Vendor with 10000 in the wallet and PIN 1234."""
    wallet_ledger.credit(
        WalletEntryParams(user_id=vendor_user.id, amount=10000, type=TransactionType.DEPOSIT)
    )
    vendor_user.set_withdrawal_pin("1234")
    vendor_user.save(update_fields=["withdrawal_pin"])
    return User.objects.get(id=vendor_user.id)


@pytest.fixture
def pending_withdrawal(funded_vendor):
    return withdrawal_service.request_withdrawal(
        funded_vendor,
        amount=5000,
        bank_name="Access Bank",
        account_number="0123456789",
        account_name="Ada Vendor",
        pin="1234",
    )


@pytest.fixture
def mock_adapter():
    with patch(ADAPTER) as adapter:
        adapter.create_transfer_recipient.return_value = "RCP_test"
        adapter.transfer.side_effect = lambda **kwargs: TransferResult(
            transfer_code="TRF_test",
            status="pending",
            reference=kwargs["reference"],
        )
        yield adapter


def reload(withdrawal):
    return Withdrawal.objects.get(id=withdrawal.id)


def balance(user):
    return wallet_ledger.get_balance(user.id)


# =============================================================================
# PIN
# =============================================================================


class TestSetWithdrawalPin:
    def test_first_pin(self, vendor_user):
        withdrawal_service.set_withdrawal_pin(vendor_user, "4321")

        user = User.objects.get(id=vendor_user.id)
        assert user.has_withdrawal_pin
        assert user.check_withdrawal_pin("4321")
        assert user.withdrawal_pin != "4321"

    @pytest.mark.parametrize("pin", ["12", "1234567", "12a4", ""])
    def test_format(self, vendor_user, pin):
        with pytest.raises(PaymentValidationError) as exc_info:
            withdrawal_service.set_withdrawal_pin(vendor_user, pin)

        assert exc_info.value.error_code == "INVALID_PIN_FORMAT"

    def test_change_requires_current_pin(self, funded_vendor):
        with pytest.raises(PaymentValidationError) as exc_info:
            withdrawal_service.set_withdrawal_pin(funded_vendor, "999999", current_pin="0000")

        assert exc_info.value.error_code == "INVALID_PIN"

        withdrawal_service.set_withdrawal_pin(funded_vendor, "999999", current_pin="1234")
        assert User.objects.get(id=funded_vendor.id).check_withdrawal_pin("999999")


# =============================================================================
# Requests
# =============================================================================


class TestRequestWithdrawal:
    """Tests for WithdrawalService.request_withdrawal()."""

    def test_debits_wallet_immediately(self, funded_vendor, pending_withdrawal):
        assert pending_withdrawal.status == WithdrawalStatus.PENDING
        assert pending_withdrawal.withdrawal_fee == 100
        assert pending_withdrawal.net_amount == 4900
        assert pending_withdrawal.bank_code == "044"
        assert pending_withdrawal.reference.startswith("WTH-")
        assert balance(funded_vendor) == 5000

        debit = Transaction.objects.get(withdrawal=pending_withdrawal)
        assert debit.type == TransactionType.WITHDRAWAL
        assert debit.status == TransactionStatus.PENDING
        assert debit.amount == -5000

    def test_insufficient_balance_rolls_back(self, funded_vendor):
        with pytest.raises(InsufficientBalance):
            withdrawal_service.request_withdrawal(
                funded_vendor, 20000, "GTBank", "0123456789", "Ada", "1234"
            )

        assert not Withdrawal.objects.exists()
        assert balance(funded_vendor) == 10000

    def test_below_minimum(self, funded_vendor):
        with pytest.raises(PaymentValidationError) as exc_info:
            withdrawal_service.request_withdrawal(
                funded_vendor, 999, "GTBank", "0123456789", "Ada", "1234"
            )

        assert exc_info.value.error_code == "BELOW_MINIMUM_WITHDRAWAL"

    def test_wrong_pin(self, funded_vendor):
        with pytest.raises(PaymentValidationError) as exc_info:
            withdrawal_service.request_withdrawal(
                funded_vendor, 5000, "GTBank", "0123456789", "Ada", "0000"
            )

        assert exc_info.value.error_code == "INVALID_PIN"
        assert balance(funded_vendor) == 10000

    def test_pin_not_set(self, vendor_user):
        with pytest.raises(PaymentValidationError) as exc_info:
            withdrawal_service.request_withdrawal(
                vendor_user, 5000, "GTBank", "0123456789", "Ada", "1234"
            )

        assert exc_info.value.error_code == "PIN_NOT_SET"

    def test_unsupported_bank(self, funded_vendor):
        with pytest.raises(PaymentValidationError) as exc_info:
            withdrawal_service.request_withdrawal(
                funded_vendor, 5000, "Bank of Nowhere", "0123456789", "Ada", "1234"
            )

        assert exc_info.value.error_code == "UNSUPPORTED_BANK"

    def test_client_cannot_withdraw(self, client_user):
        with pytest.raises(PaymentPermissionError):
            withdrawal_service.request_withdrawal(
                client_user, 5000, "GTBank", "0123456789", "Ada", "1234"
            )


def test_resolve_bank_code_is_case_insensitive():
    assert resolve_bank_code("  zenith bank ") == "057"
    assert resolve_bank_code("Kuda Bank") == "50211"


# =============================================================================
# Admin Actions
# =============================================================================


class TestProcessWithdrawal:
    """Tests for WithdrawalService.process_withdrawal()."""

    def test_starts_transfer(self, admin_user, pending_withdrawal, mock_adapter):
        withdrawal = withdrawal_service.process_withdrawal(pending_withdrawal.id, admin=admin_user)

        withdrawal = reload(withdrawal)
        assert withdrawal.status == WithdrawalStatus.PROCESSING
        assert withdrawal.recipient_code == "RCP_test"
        assert withdrawal.transfer_code == "TRF_test"
        assert withdrawal.processed_by_id == admin_user.id
        assert mock_adapter.transfer.call_args.kwargs["amount_minor_units"] == 490000

    def test_immediate_success_completes(self, funded_vendor, pending_withdrawal, mock_adapter):
        mock_adapter.transfer.side_effect = None
        mock_adapter.transfer.return_value = TransferResult(
            transfer_code="TRF_now",
            status="success",
            reference=pending_withdrawal.reference,
        )

        withdrawal_service.process_withdrawal(pending_withdrawal.id)

        assert reload(pending_withdrawal).status == WithdrawalStatus.COMPLETED
        assert balance(funded_vendor) == 5000

    def test_recipient_failure_refunds(self, funded_vendor, pending_withdrawal, mock_adapter):
        mock_adapter.create_transfer_recipient.side_effect = GatewayUnavailableError("down")

        withdrawal = withdrawal_service.process_withdrawal(pending_withdrawal.id)

        assert reload(withdrawal).status == WithdrawalStatus.FAILED
        assert balance(funded_vendor) == 10000
        debit = Transaction.objects.get(withdrawal=withdrawal, type=TransactionType.WITHDRAWAL)
        assert debit.status == TransactionStatus.FAILED
        mock_adapter.transfer.assert_not_called()

    def test_rejected_transfer_refunds(self, funded_vendor, pending_withdrawal, mock_adapter):
        mock_adapter.transfer.side_effect = GatewayRequestError("Insufficient balance", status_code=400)

        withdrawal = withdrawal_service.process_withdrawal(pending_withdrawal.id)

        assert reload(withdrawal).status == WithdrawalStatus.FAILED
        assert balance(funded_vendor) == 10000

    @pytest.mark.parametrize(
        "error",
        [GatewayTimeoutError("Paystack request timed out"), GatewayUnavailableError("Paystack service error")],
    )
    def test_unconfirmed_transfer_stays_processing(self, funded_vendor, pending_withdrawal, mock_adapter, error):
        mock_adapter.transfer.side_effect = error

        withdrawal = withdrawal_service.process_withdrawal(pending_withdrawal.id)

        withdrawal = reload(withdrawal)
        assert withdrawal.status == WithdrawalStatus.PROCESSING
        assert withdrawal.recipient_code == "RCP_test"
        assert balance(funded_vendor) == 5000
        assert not Transaction.objects.filter(withdrawal=withdrawal, type=TransactionType.REFUND).exists()

    def test_late_success_after_timeout_pays_once(self, funded_vendor, pending_withdrawal, mock_adapter):
        mock_adapter.transfer.side_effect = GatewayTimeoutError("Paystack request timed out")
        withdrawal_service.process_withdrawal(pending_withdrawal.id)

        withdrawal_service.complete_transfer(pending_withdrawal.reference, "TRF_late")

        withdrawal = reload(pending_withdrawal)
        assert withdrawal.status == WithdrawalStatus.COMPLETED
        assert balance(funded_vendor) == 5000
        assert wallet_ledger.reconcile(funded_vendor.id).is_balanced

    def test_late_failure_after_timeout_refunds(self, funded_vendor, pending_withdrawal, mock_adapter):
        mock_adapter.transfer.side_effect = GatewayTimeoutError("Paystack request timed out")
        withdrawal_service.process_withdrawal(pending_withdrawal.id)

        withdrawal_service.fail_transfer(pending_withdrawal.reference, reason="Could not credit account")

        assert reload(pending_withdrawal).status == WithdrawalStatus.FAILED
        assert balance(funded_vendor) == 10000

    def test_only_pending(self, pending_withdrawal, mock_adapter):
        withdrawal_service.process_withdrawal(pending_withdrawal.id)

        with pytest.raises(InvalidStateTransitionError):
            withdrawal_service.process_withdrawal(pending_withdrawal.id)

        assert mock_adapter.transfer.call_count == 1


class TestRejectWithdrawal:
    def test_reject_refunds(self, funded_vendor, admin_user, pending_withdrawal):
        withdrawal_service.reject_withdrawal(pending_withdrawal.id, admin=admin_user, reason="Bad account")

        withdrawal = reload(pending_withdrawal)
        assert withdrawal.status == WithdrawalStatus.REJECTED
        assert withdrawal.rejection_reason == "Bad account"
        assert balance(funded_vendor) == 10000
        assert Notification.objects.filter(
            recipient=funded_vendor,
            notification_type=NotificationType.WITHDRAWAL_FAILED,
        ).exists()

    def test_cannot_reject_twice(self, funded_vendor, pending_withdrawal):
        withdrawal_service.reject_withdrawal(pending_withdrawal.id)

        with pytest.raises(InvalidStateTransitionError):
            withdrawal_service.reject_withdrawal(pending_withdrawal.id)

        assert balance(funded_vendor) == 10000


# =============================================================================
# Transfer Outcomes
# =============================================================================


class TestTransferOutcomes:
    """Tests for complete_transfer() and fail_transfer()."""

    @pytest.fixture
    def processing(self, pending_withdrawal, mock_adapter):
        return withdrawal_service.process_withdrawal(pending_withdrawal.id)

    def test_success_marks_debit_completed(self, funded_vendor, processing):
        withdrawal_service.complete_transfer(processing.reference, "TRF_test")
        withdrawal_service.complete_transfer(processing.reference, "TRF_test")

        withdrawal = reload(processing)
        assert withdrawal.status == WithdrawalStatus.COMPLETED
        assert withdrawal.completed_at is not None
        debit = Transaction.objects.get(withdrawal=withdrawal, type=TransactionType.WITHDRAWAL)
        assert debit.status == TransactionStatus.COMPLETED
        assert balance(funded_vendor) == 5000

    def test_failure_refunds_once(self, funded_vendor, processing):
        withdrawal_service.fail_transfer(processing.reference, reason="Account closed")
        withdrawal_service.fail_transfer(processing.reference, reason="Account closed")

        assert reload(processing).status == WithdrawalStatus.FAILED
        assert balance(funded_vendor) == 10000
        assert Transaction.objects.filter(
            withdrawal=processing, type=TransactionType.REFUND
        ).count() == 1

    def test_reversal_after_completion_refunds(self, funded_vendor, processing):
        withdrawal_service.complete_transfer(processing.reference)

        withdrawal_service.fail_transfer(processing.reference, is_reversal=True)

        withdrawal = reload(processing)
        assert withdrawal.status == WithdrawalStatus.FAILED
        assert withdrawal.failure_reason == "Transfer reversed"
        assert balance(funded_vendor) == 10000

    def test_failure_after_completion_ignored(self, funded_vendor, processing):
        withdrawal_service.complete_transfer(processing.reference)

        withdrawal_service.fail_transfer(processing.reference)

        assert reload(processing).status == WithdrawalStatus.COMPLETED
        assert balance(funded_vendor) == 5000

    def test_unknown_reference(self, db):
        with pytest.raises(PaymentNotFoundError):
            withdrawal_service.complete_transfer("WTH-MISSING")


# =============================================================================
# Reads
# =============================================================================


class TestReads:
    def test_owner_and_admin_only(self, funded_vendor, admin_user, other_user, pending_withdrawal):
        assert withdrawal_service.get_withdrawal(pending_withdrawal.id, funded_vendor) == pending_withdrawal
        assert withdrawal_service.get_withdrawal(pending_withdrawal.id, admin_user) == pending_withdrawal
        with pytest.raises(PaymentNotFoundError):
            withdrawal_service.get_withdrawal(pending_withdrawal.id, other_user)

    def test_all_users_requires_admin(self, funded_vendor, admin_user, other_user, pending_withdrawal):
        assert withdrawal_service.list_withdrawals(admin_user, all_users=True).count() == 1
        assert withdrawal_service.list_withdrawals(other_user, all_users=True).count() == 0
        assert withdrawal_service.list_withdrawals(
            funded_vendor, status=WithdrawalStatus.COMPLETED
        ).count() == 0


class TestProcessWithdrawalTransferTask:
    def test_runs_transfer(self, admin_user, pending_withdrawal, mock_adapter):
        result = process_withdrawal_transfer(str(pending_withdrawal.id), str(admin_user.id))

        assert result["status"] == WithdrawalStatus.PROCESSING
        assert reload(pending_withdrawal).processed_by_id == admin_user.id

    def test_skips_non_pending(self, pending_withdrawal, mock_adapter):
        withdrawal_service.reject_withdrawal(pending_withdrawal.id)

        result = process_withdrawal_transfer(str(pending_withdrawal.id))

        assert result["status"] == "skipped"
        mock_adapter.transfer.assert_not_called()
