"""
Django admin configuration for the wallet transaction log.

Transactions are immutable: no add, change or delete through the admin.
Corrections are made by WalletLedger writing new rows.
"""

from django.contrib import admin

from payments.models import Transaction


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    """
    Read-only view of wallet movements.

    Shows the signed amount with the balance before and after so a wallet
    can be audited row by row.
    """

    list_display = [
        "reference",
        "user",
        "type",
        "amount",
        "balance_before",
        "balance_after",
        "status",
        "created_at",
    ]
    list_filter = ["type", "status", "created_at"]
    search_fields = ["reference", "idempotency_key", "user__email", "description"]
    readonly_fields = [
        "id",
        "user",
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
        "idempotency_key",
        "metadata",
        "created_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            "Movement",
            {
                "fields": ("id", "user", "type", "status", "amount", "created_at"),
            },
        ),
        (
            "Balance",
            {
                "fields": ("balance_before", "balance_after"),
            },
        ),
        (
            "Reference",
            {
                "fields": ("reference", "idempotency_key", "booking", "payment", "withdrawal"),
            },
        ),
        (
            "Additional Info",
            {
                "fields": ("description", "metadata"),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        """Entries are created only through WalletLedger."""
        return False
