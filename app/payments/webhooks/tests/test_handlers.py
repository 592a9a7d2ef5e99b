"""
Tests for Paystack webhook handlers.

Handlers are exercised through dispatch_webhook with stored
WebhookEvent rows, the same way the processing task calls them.
"""

import pytest

from accounts.models import User
from payments.ledger import WalletEntryParams, wallet_ledger
from payments.models import Payment, Withdrawal
from payments.state_machines import EscrowStatus, TransactionType, WithdrawalStatus
from payments.tests.factories import WebhookEventFactory, WithdrawalFactory
from payments.webhooks.handlers import WEBHOOK_HANDLERS, dispatch_webhook


def event(event_type, **data):
    return WebhookEventFactory(
        event_type=event_type,
        event_key=f"{event_type}:{data.get('reference', '')}",
        payload={"event": event_type, "data": data},
    )


@pytest.fixture
def processing_withdrawal(vendor_user):
    """Withdrawal of 5000 sent to Paystack, wallet already debited."""
    wallet_ledger.credit(
        WalletEntryParams(user_id=vendor_user.id, amount=5000, type=TransactionType.DEPOSIT)
    )
    withdrawal = WithdrawalFactory(user=vendor_user, status=WithdrawalStatus.PROCESSING)
    wallet_ledger.debit(
        WalletEntryParams(
            user_id=vendor_user.id,
            amount=5000,
            type=TransactionType.WITHDRAWAL,
            withdrawal_id=withdrawal.id,
        )
    )
    return withdrawal


class TestRegistry:
    def test_handled_events(self):
        assert set(WEBHOOK_HANDLERS) >= {
            "charge.success",
            "transfer.success",
            "transfer.failed",
            "transfer.reversed",
        }

    def test_unknown_event_succeeds(self, db):
        result = dispatch_webhook(event("subscription.create", reference="SUB-1"))

        assert result.success


class TestChargeSuccess:
    def test_escrows_payment(self, pending_payment):
        result = dispatch_webhook(
            event(
                "charge.success",
                reference="PAY-123",
                amount=500000,
                authorization={"authorization_code": "AUTH_1"},
            )
        )

        assert result.success
        payment = Payment.objects.get(id=pending_payment.id)
        assert payment.escrow_status == EscrowStatus.HELD
        assert payment.authorization_code == "AUTH_1"

    def test_missing_reference(self, db):
        result = dispatch_webhook(event("charge.success", amount=500000))

        assert not result.success
        assert result.error_code == "INVALID_WEBHOOK_PAYLOAD"

    def test_unknown_reference_is_failure(self, db):
        result = dispatch_webhook(event("charge.success", reference="PAY-NOPE"))

        assert not result.success
        assert result.error_code == "PAYMENT_NOT_FOUND"


class TestTransferEvents:
    def test_success_completes(self, processing_withdrawal):
        result = dispatch_webhook(
            event(
                "transfer.success",
                reference=processing_withdrawal.reference,
                transfer_code="TRF_9",
            )
        )

        assert result.success
        withdrawal = Withdrawal.objects.get(id=processing_withdrawal.id)
        assert withdrawal.status == WithdrawalStatus.COMPLETED
        assert withdrawal.transfer_code == "TRF_9"

    def test_failed_refunds(self, vendor_user, processing_withdrawal):
        dispatch_webhook(
            event(
                "transfer.failed",
                reference=processing_withdrawal.reference,
                reason="Could not credit account",
            )
        )

        withdrawal = Withdrawal.objects.get(id=processing_withdrawal.id)
        assert withdrawal.status == WithdrawalStatus.FAILED
        assert withdrawal.failure_reason == "Could not credit account"
        assert User.objects.get(id=vendor_user.id).wallet_balance == 5000

    def test_reversed_after_success_refunds(self, vendor_user, processing_withdrawal):
        reference = processing_withdrawal.reference
        dispatch_webhook(event("transfer.success", reference=reference))

        dispatch_webhook(event("transfer.reversed", reference=reference))

        assert Withdrawal.objects.get(id=processing_withdrawal.id).status == WithdrawalStatus.FAILED
        assert User.objects.get(id=vendor_user.id).wallet_balance == 5000
