"""
DRF serializers for payments app.

This module provides serializers for:
- Booking payments (checkout, verification)
- Wallet balance, stats and transaction history
- Withdrawals and the withdrawal PIN
- Vendor subscriptions

Related files:
    - views.py: Payment API views
    - services/: EscrowLedger, WithdrawalService, SubscriptionRegistry
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import Payment, Subscription, Transaction, Withdrawal
from payments.state_machines import (
    SubscriptionTier,
    TransactionStatus,
    TransactionType,
    WithdrawalStatus,
)


# =============================================================================
# Booking Payments
# =============================================================================


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            "id",
            "booking",
            "user",
            "amount",
            "currency",
            "commission_rate",
            "platform_fee",
            "vendor_amount",
            "reference",
            "authorization_url",
            "access_code",
            "status",
            "escrow_status",
            "paid_at",
            "escrowed_at",
            "released_at",
            "refunded_at",
            "refund_amount",
            "refund_reason",
            "created_at",
        ]
        read_only_fields = fields


class InitializePaymentSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField()
    metadata = serializers.DictField(required=False, default=dict)


# =============================================================================
# Wallet
# =============================================================================


class TransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Transaction
        fields = [
            "id",
            "amount",
            "balance_before",
            "balance_after",
            "type",
            "status",
            "reference",
            "description",
            "booking",
            "payment",
            "withdrawal",
            "created_at",
        ]
        read_only_fields = fields


class TransactionQuerySerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=TransactionType.choices, required=False)
    status = serializers.ChoiceField(choices=TransactionStatus.choices, required=False)
    start_date = serializers.DateTimeField(required=False)
    end_date = serializers.DateTimeField(required=False)


class WalletSerializer(serializers.Serializer):
    balance = serializers.IntegerField()
    total_received = serializers.IntegerField()
    total_withdrawn = serializers.IntegerField()
    pending_withdrawals = serializers.IntegerField()


class WithdrawalPinSerializer(serializers.Serializer):
    pin = serializers.CharField(min_length=4, max_length=6, write_only=True)
    current_pin = serializers.CharField(required=False, allow_blank=True, write_only=True)


# =============================================================================
# Withdrawals
# =============================================================================


class WithdrawalSerializer(serializers.ModelSerializer):
    class Meta:
        model = Withdrawal
        fields = [
            "id",
            "amount",
            "withdrawal_fee",
            "net_amount",
            "bank_name",
            "account_number",
            "account_name",
            "reference",
            "status",
            "processed_at",
            "completed_at",
            "failed_at",
            "failure_reason",
            "rejected_at",
            "rejection_reason",
            "created_at",
        ]
        read_only_fields = fields


class WithdrawalRequestSerializer(serializers.Serializer):
    amount = serializers.IntegerField(min_value=1)
    bank_name = serializers.CharField(max_length=100)
    account_number = serializers.RegexField(r"^\d{10}$")
    account_name = serializers.CharField(max_length=120)
    pin = serializers.CharField(write_only=True)


class WithdrawalRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class WithdrawalQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=WithdrawalStatus.choices, required=False)
    all = serializers.BooleanField(required=False, default=False)


# =============================================================================
# Subscriptions
# =============================================================================


class SubscriptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Subscription
        fields = [
            "id",
            "tier",
            "monthly_fee",
            "commission_rate",
            "status",
            "start_date",
            "end_date",
            "next_payment_due",
            "auto_renew",
            "last_payment_date",
            "last_payment_amount",
            "last_payment_reference",
            "cancelled_at",
            "cancellation_reason",
            "created_at",
        ]
        read_only_fields = fields


class SubscriptionTierSerializer(serializers.Serializer):
    tier = serializers.ChoiceField(choices=SubscriptionTier.choices)


class SubscriptionCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")
