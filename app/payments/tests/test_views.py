"""
Tests for payments, wallet and subscription API views.

Services are covered in their own modules; these tests check routing,
permissions, status codes and response shapes.
"""

from unittest.mock import patch

import pytest
from django.urls import reverse
from rest_framework import status

from accounts.models import User
from payments.exceptions import GatewayUnavailableError
from payments.ledger import WalletEntryParams, wallet_ledger
from payments.models import Withdrawal
from payments.state_machines import (
    EscrowStatus,
    SubscriptionStatus,
    TransactionType,
    WithdrawalStatus,
)
from payments.tests.factories import SubscriptionFactory, WithdrawalFactory


def fund(user, amount):
    wallet_ledger.credit(
        WalletEntryParams(user_id=user.id, amount=amount, type=TransactionType.DEPOSIT)
    )


@pytest.fixture
def vendor_with_pin(vendor_user):
    vendor_user.set_withdrawal_pin("1234")
    vendor_user.save(update_fields=["withdrawal_pin"])
    fund(vendor_user, 10000)
    return User.objects.get(id=vendor_user.id)


# =============================================================================
# Booking Payments
# =============================================================================


@pytest.mark.django_db
class TestInitializePaymentView:
    url = reverse("payments:initialize")

    def test_initialize(self, auth_client, client_user, pending_booking, mock_paystack):
        response = auth_client(client_user).post(
            self.url, {"booking_id": str(pending_booking.id)}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["escrow_status"] == EscrowStatus.PENDING
        assert response.data["authorization_url"].startswith("https://checkout.paystack.com/")
        assert response.data["platform_fee"] == 500

    def test_someone_elses_booking(self, auth_client, other_user, pending_booking, mock_paystack):
        response = auth_client(other_user).post(
            self.url, {"booking_id": str(pending_booking.id)}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_already_paid(self, auth_client, client_user, held_payment, mock_paystack):
        response = auth_client(client_user).post(
            self.url, {"booking_id": str(held_payment.booking_id)}, format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "BOOKING_ALREADY_PAID"

    def test_gateway_down(self, auth_client, client_user, pending_booking, mock_paystack):
        mock_paystack.initialize.side_effect = GatewayUnavailableError("down")

        response = auth_client(client_user).post(
            self.url, {"booking_id": str(pending_booking.id)}, format="json"
        )

        assert response.status_code == status.HTTP_502_BAD_GATEWAY

    def test_requires_auth(self, api_client):
        assert api_client.post(self.url, {}, format="json").status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestPaymentReadViews:
    def test_verify(self, auth_client, client_user, held_payment, mock_paystack):
        url = reverse("payments:verify", args=[held_payment.reference])

        response = auth_client(client_user).get(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["escrow_status"] == EscrowStatus.HELD

    def test_verify_unknown(self, auth_client, client_user, mock_paystack):
        response = auth_client(client_user).get(reverse("payments:verify", args=["PAY-NONE"]))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_list(self, auth_client, vendor_user, held_payment):
        response = auth_client(vendor_user).get(reverse("payments:payment_list"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["count"] == 1
        assert response.data["results"][0]["reference"] == held_payment.reference

    def test_detail_hidden_from_strangers(self, auth_client, other_user, held_payment):
        url = reverse("payments:payment_detail", args=[held_payment.id])

        response = auth_client(other_user).get(url)

        assert response.status_code == status.HTTP_403_FORBIDDEN


# =============================================================================
# Wallet
# =============================================================================


@pytest.mark.django_db
class TestWalletViews:
    def test_wallet(self, auth_client, vendor_with_pin):
        response = auth_client(vendor_with_pin).get(reverse("payments:wallet"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["balance"] == 10000
        assert response.data["pending_withdrawals"] == 0

    def test_transactions_filtered_by_type(self, auth_client, vendor_with_pin):
        url = reverse("payments:transactions")

        deposits = auth_client(vendor_with_pin).get(url, {"type": TransactionType.DEPOSIT})
        refunds = auth_client(vendor_with_pin).get(url, {"type": TransactionType.REFUND})

        assert deposits.data["count"] == 1
        assert deposits.data["results"][0]["balance_after"] == 10000
        assert refunds.data["count"] == 0

    def test_set_pin(self, auth_client, vendor_user):
        response = auth_client(vendor_user).post(
            reverse("payments:withdrawal_pin"), {"pin": "5678"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert User.objects.get(id=vendor_user.id).check_withdrawal_pin("5678")

    def test_change_pin_with_wrong_current(self, auth_client, vendor_with_pin):
        response = auth_client(vendor_with_pin).post(
            reverse("payments:withdrawal_pin"),
            {"pin": "5678", "current_pin": "0000"},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_PIN"


# =============================================================================
# Withdrawals
# =============================================================================


@pytest.mark.django_db
class TestWithdrawalViews:
    url = reverse("payments:withdrawals")

    def payload(self, **overrides):
        data = {
            "amount": 5000,
            "bank_name": "GTBank",
            "account_number": "0123456789",
            "account_name": "Ada Vendor",
            "pin": "1234",
        }
        data.update(overrides)
        return data

    def test_request(self, auth_client, vendor_with_pin):
        response = auth_client(vendor_with_pin).post(self.url, self.payload(), format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["status"] == WithdrawalStatus.PENDING
        assert response.data["net_amount"] == 4900
        assert wallet_ledger.get_balance(vendor_with_pin.id) == 5000

    def test_account_number_must_be_ten_digits(self, auth_client, vendor_with_pin):
        response = auth_client(vendor_with_pin).post(
            self.url, self.payload(account_number="12345"), format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_insufficient_balance(self, auth_client, vendor_with_pin):
        response = auth_client(vendor_with_pin).post(
            self.url, self.payload(amount=50000), format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert not Withdrawal.objects.exists()

    def test_list_all_for_admin(self, auth_client, admin_user):
        WithdrawalFactory.create_batch(2)

        response = auth_client(admin_user).get(self.url, {"all": "true"})

        assert response.data["count"] == 2

    def test_detail_hidden_from_others(self, auth_client, other_user):
        withdrawal = WithdrawalFactory()

        response = auth_client(other_user).get(reverse("payments:withdrawal_detail", args=[withdrawal.id]))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_process_queues_transfer(self, auth_client, admin_user, django_capture_on_commit_callbacks):
        withdrawal = WithdrawalFactory()
        url = reverse("payments:withdrawal_process", args=[withdrawal.id])

        with patch("payments.tasks.process_withdrawal_transfer.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=True):
                response = auth_client(admin_user).post(url)

        assert response.status_code == status.HTTP_202_ACCEPTED
        mock_delay.assert_called_once_with(str(withdrawal.id), str(admin_user.id))

    def test_process_non_pending(self, auth_client, admin_user):
        withdrawal = WithdrawalFactory(status=WithdrawalStatus.REJECTED)
        url = reverse("payments:withdrawal_process", args=[withdrawal.id])

        response = auth_client(admin_user).post(url)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "INVALID_WITHDRAWAL_STATUS"

    def test_process_requires_admin(self, auth_client, vendor_user):
        withdrawal = WithdrawalFactory(user=vendor_user)
        url = reverse("payments:withdrawal_process", args=[withdrawal.id])

        response = auth_client(vendor_user).post(url)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_reject(self, auth_client, admin_user, vendor_with_pin):
        created = auth_client(vendor_with_pin).post(self.url, self.payload(), format="json")
        url = reverse("payments:withdrawal_reject", args=[created.data["id"]])

        response = auth_client(admin_user).post(url, {"reason": "Name mismatch"}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == WithdrawalStatus.REJECTED
        assert wallet_ledger.get_balance(vendor_with_pin.id) == 10000


# =============================================================================
# Subscriptions
# =============================================================================


@pytest.mark.django_db
class TestSubscriptionViews:
    url = reverse("payments:subscription")

    def test_none_yet(self, auth_client, vendor_user):
        response = auth_client(vendor_user).get(self.url)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "SUBSCRIPTION_NOT_FOUND"

    def test_create_and_pay(self, auth_client, vendor_user):
        fund(vendor_user, 6000)
        client = auth_client(vendor_user)

        created = client.post(self.url, {"tier": "both"}, format="json")
        paid = client.post(reverse("payments:subscription_pay"))

        assert created.status_code == status.HTTP_201_CREATED
        assert created.data["status"] == SubscriptionStatus.PENDING
        assert paid.status_code == status.HTTP_200_OK
        assert paid.data["status"] == SubscriptionStatus.ACTIVE
        assert wallet_ledger.get_balance(vendor_user.id) == 1000

    def test_change_plan(self, auth_client, vendor_user):
        SubscriptionFactory(vendor=vendor_user)

        response = auth_client(vendor_user).post(
            reverse("payments:subscription_change_plan"), {"tier": "in_shop"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["tier"] == "in_shop"

    def test_cancel(self, auth_client, vendor_user):
        SubscriptionFactory(vendor=vendor_user)

        response = auth_client(vendor_user).post(
            reverse("payments:subscription_cancel"), {"reason": "Too expensive"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == SubscriptionStatus.CANCELLED

    def test_clients_cannot_subscribe(self, auth_client, client_user):
        response = auth_client(client_user).post(self.url, {"tier": "both"}, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN

