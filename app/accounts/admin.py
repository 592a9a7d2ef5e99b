"""
Django admin configuration for accounts models.

wallet_balance is read-only here; balances change only through the
wallet ledger so every change has a matching Transaction.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from accounts.models import User, VendorProfile


class VendorProfileInline(admin.StackedInline):
    model = VendorProfile
    can_delete = False
    extra = 0
    readonly_fields = ("completed_bookings",)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin configuration for the email-based User model."""

    list_display = (
        "email",
        "role",
        "wallet_balance",
        "referral_code",
        "is_active",
        "date_joined",
    )
    list_filter = ("role", "is_active", "is_staff", "date_joined")
    search_fields = ("email", "first_name", "last_name", "referral_code")
    ordering = ("-date_joined",)
    readonly_fields = (
        "wallet_balance",
        "referral_code",
        "withdrawal_pin",
        "date_joined",
        "last_login",
    )
    inlines = [VendorProfileInline]

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Personal", {"fields": ("first_name", "last_name", "phone")}),
        ("Marketplace", {"fields": ("role", "wallet_balance", "withdrawal_pin")}),
        ("Referral", {"fields": ("referral_code", "referred_by")}),
        ("Status", {"fields": ("is_active", "is_staff", "is_superuser")}),
        ("Permissions", {"fields": ("groups", "user_permissions")}),
        ("Important dates", {"fields": ("date_joined", "last_login")}),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "role", "password1", "password2"),
            },
        ),
    )


@admin.register(VendorProfile)
class VendorProfileAdmin(admin.ModelAdmin):
    list_display = ("business_name", "user", "vendor_type", "is_verified", "completed_bookings")
    list_filter = ("vendor_type", "is_verified")
    search_fields = ("business_name", "user__email")
    readonly_fields = ("completed_bookings",)
