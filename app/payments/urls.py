"""
URL configuration for the payments app.

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments import views
from payments.webhooks.views import paystack_webhook

app_name = "payments"

urlpatterns = [
    # Booking payments
    path("", views.PaymentListView.as_view(), name="payment_list"),
    path("initialize/", views.InitializePaymentView.as_view(), name="initialize"),
    path("verify/<str:reference>/", views.VerifyPaymentView.as_view(), name="verify"),
    path("<uuid:payment_id>/", views.PaymentDetailView.as_view(), name="payment_detail"),
    # Wallet
    path("wallet/", views.WalletView.as_view(), name="wallet"),
    path("wallet/transactions/", views.TransactionListView.as_view(), name="transactions"),
    path("wallet/pin/", views.WithdrawalPinView.as_view(), name="withdrawal_pin"),
    # Withdrawals
    path("withdrawals/", views.WithdrawalListCreateView.as_view(), name="withdrawals"),
    path("withdrawals/<uuid:withdrawal_id>/", views.WithdrawalDetailView.as_view(), name="withdrawal_detail"),
    path(
        "withdrawals/<uuid:withdrawal_id>/process/",
        views.WithdrawalProcessView.as_view(),
        name="withdrawal_process",
    ),
    path(
        "withdrawals/<uuid:withdrawal_id>/reject/",
        views.WithdrawalRejectView.as_view(),
        name="withdrawal_reject",
    ),
    # Subscriptions
    path("subscription/", views.SubscriptionView.as_view(), name="subscription"),
    path("subscription/pay/", views.SubscriptionPayView.as_view(), name="subscription_pay"),
    path("subscription/change-plan/", views.SubscriptionChangePlanView.as_view(), name="subscription_change_plan"),
    path("subscription/cancel/", views.SubscriptionCancelView.as_view(), name="subscription_cancel"),
    # Webhook endpoints
    path("webhooks/paystack/", paystack_webhook, name="paystack_webhook"),
]
