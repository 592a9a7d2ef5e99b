"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /api/schema/                   - OpenAPI schema (YAML)
    /api/docs/                     - Swagger UI
    /api/v1/auth/                  - JWT token endpoints (simplejwt)
    /api/v1/bookings/              - Booking lifecycle
    /api/v1/payments/              - Checkout, wallet, withdrawals, subscriptions
        webhooks/paystack/         - Paystack webhook endpoint (POST)
    /api/v1/disputes/              - Disputes and their resolution
    /api/v1/referrals/             - Referral codes and rewards

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Authentication (simplejwt)
    path("auth/", include("accounts.urls")),
    # Bookings
    path("bookings/", include("bookings.urls")),
    # Payments
    path("payments/", include("payments.urls")),
    # Disputes
    path("disputes/", include("disputes.urls")),
    # Referrals
    path("referrals/", include("referrals.urls")),
]

urlpatterns = [
    # Documentation
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Marketplace Admin"
admin.site.site_title = "Marketplace Admin Portal"
admin.site.index_title = "Bookings, escrow and payouts"
