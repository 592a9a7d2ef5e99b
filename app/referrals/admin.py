"""Django admin configuration for referrals."""

from django.contrib import admin

from referrals.models import Referral


@admin.register(Referral)
class ReferralAdmin(admin.ModelAdmin):
    list_display = (
        "referral_code",
        "referrer",
        "referee",
        "status",
        "referrer_paid",
        "referee_paid",
        "expires_at",
        "created_at",
    )
    list_filter = ("status", "referrer_paid", "referee_paid")
    search_fields = ("referral_code", "referrer__email", "referee__email")
    raw_id_fields = ("referrer", "referee", "first_booking", "referrer_transaction", "referee_transaction")
    readonly_fields = (
        "referrer_paid",
        "referrer_paid_at",
        "referrer_transaction",
        "referee_paid",
        "referee_paid_at",
        "referee_transaction",
        "completed_at",
    )
