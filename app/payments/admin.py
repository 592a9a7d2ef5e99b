"""
Payment admin configuration.

This file imports the transaction log admin from the ledger submodule
and registers the payment domain models with the Django admin.
"""

from django.contrib import admin

from payments.ledger.admin import TransactionAdmin
from payments.models import Payment, Subscription, WebhookEvent, Withdrawal

__all__ = [
    "TransactionAdmin",
    "PaymentAdmin",
    "WithdrawalAdmin",
    "SubscriptionAdmin",
    "WebhookEventAdmin",
]


# =============================================================================
# Payment Admin
# =============================================================================


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payment.

    escrow_status is FSM-protected, so every state field is read-only here;
    settlement happens through EscrowLedger.
    """

    list_display = [
        "reference",
        "booking",
        "user",
        "amount",
        "platform_fee",
        "vendor_amount",
        "status",
        "escrow_status",
        "created_at",
    ]
    list_filter = ["status", "escrow_status", "currency", "created_at"]
    search_fields = ["reference", "user__email", "booking__id"]
    readonly_fields = [
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
        "authorization_code",
        "status",
        "escrow_status",
        "version",
        "paid_at",
        "escrowed_at",
        "released_at",
        "refunded_at",
        "failed_at",
        "refund_amount",
        "refund_reason",
        "refunded_by",
        "metadata",
        "failure_reason",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "reference", "booking", "user", "status", "escrow_status", "version"),
            },
        ),
        (
            "Amounts",
            {
                "fields": ("amount", "currency", "commission_rate", "platform_fee", "vendor_amount"),
            },
        ),
        (
            "Gateway",
            {
                "fields": ("authorization_url", "access_code", "authorization_code"),
                "classes": ("collapse",),
            },
        ),
        (
            "Refund",
            {
                "fields": ("refund_amount", "refund_reason", "refunded_by"),
            },
        ),
        (
            "Timestamps",
            {
                "fields": (
                    "paid_at",
                    "escrowed_at",
                    "released_at",
                    "refunded_at",
                    "failed_at",
                    "created_at",
                    "updated_at",
                ),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("failure_reason", "metadata"),
                "classes": ("collapse",),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Payments are financial records."""
        return False


# =============================================================================
# Withdrawal Admin
# =============================================================================


@admin.register(Withdrawal)
class WithdrawalAdmin(admin.ModelAdmin):
    """Withdrawals are processed through the API; the admin is for lookup."""

    list_display = [
        "reference",
        "user",
        "amount",
        "net_amount",
        "bank_name",
        "status",
        "processed_by",
        "created_at",
    ]
    list_filter = ["status", "created_at"]
    search_fields = ["reference", "user__email", "account_number", "transfer_code"]
    readonly_fields = [
        "id",
        "user",
        "amount",
        "withdrawal_fee",
        "net_amount",
        "reference",
        "status",
        "recipient_code",
        "transfer_code",
        "processed_by",
        "processed_at",
        "completed_at",
        "failed_at",
        "failure_reason",
        "rejected_at",
        "rejection_reason",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = ["vendor", "tier", "monthly_fee", "commission_rate", "status", "end_date"]
    list_filter = ["tier", "status"]
    search_fields = ["vendor__email", "last_payment_reference"]
    readonly_fields = ["id", "status", "created_at", "updated_at"]
    ordering = ["-created_at"]


# =============================================================================
# Webhook Admin
# =============================================================================


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing status.
    Webhook events are immutable once received.
    """

    list_display = [
        "id",
        "event_key",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "event_key", "event_type"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "event_key",
        "event_type",
        "payload",
        "processed_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "event_key", "event_type", "status"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "retry_count"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        return False
