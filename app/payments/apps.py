"""
Payments app configuration.

This app provides the money side of the marketplace:
- Wallet ledger (User.wallet_balance plus its Transaction log)
- Booking escrow through Paystack
- Vendor subscriptions and commission rates
- Withdrawals and Paystack webhook processing
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
