"""
Test configuration and fixtures for accounts tests.

Shared user fixtures (client_user, vendor_user, admin_user) live in the
project-level conftest; this module adds account-specific ones.
"""

import pytest

from accounts.tests.factories import VendorFactory


# =============================================================================
# Vendor Fixtures
# =============================================================================


@pytest.fixture
def unverified_vendor(db):
    """Vendor whose profile has not been verified."""
    return VendorFactory(vendor_profile__is_verified=False)


@pytest.fixture
def home_service_vendor(db):
    """Verified vendor that travels to clients."""
    return VendorFactory(vendor_profile__vendor_type="home_service")
