"""
Root pytest configuration for the marketplace project.

This module configures pytest-django and provides project-wide fixtures
(users in each marketplace role and authenticated API clients).
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import pytest
from rest_framework.test import APIClient

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_configure():
    """Adjust Django settings for the test run."""
    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # Fast hasher for passwords and withdrawal PINs
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    # Local memory cache so tests never reach Redis
    settings.CACHES = {
        "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}
    }

    settings.PAYSTACK_SECRET_KEY = "sk_test_marketplace"


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full booking-to-settlement journeys)
    - test_views.py, test_services.py, test_tasks.py, etc. → integration
    - test_models.py, test_pricing.py, test_adapters.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_webhooks.py",
        "test_handlers.py",
        "test_escrow_ledger.py",
        "test_withdrawal_service.py",
        "test_subscription_service.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_managers.py",
        "test_helpers.py",
        "test_pricing.py",
        "test_commission.py",
        "test_adapters.py",
        "test_exceptions.py",
        "test_state_transitions.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def client_user(db):
    """A client with an empty wallet."""
    from accounts.tests.factories import UserFactory

    return UserFactory()


@pytest.fixture
def vendor_user(db):
    """A verified in-shop vendor."""
    from accounts.tests.factories import VendorFactory

    return VendorFactory()


@pytest.fixture
def admin_user(db):
    """A platform administrator."""
    from accounts.tests.factories import AdminUserFactory

    return AdminUserFactory()


@pytest.fixture
def other_user(db):
    """A client who is not a party to anything."""
    from accounts.tests.factories import UserFactory

    return UserFactory()


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture
def auth_client():
    """
    Factory fixture returning an APIClient authenticated as the given user.

    Usage:
        def test_accept(auth_client, vendor_user):
            response = auth_client(vendor_user).post(url)
    """

    def _make(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    return _make
