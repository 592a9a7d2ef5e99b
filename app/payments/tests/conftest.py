"""
Test configuration and fixtures for payments tests.

Bookings belong to the project-level client_user and vendor_user so
ownership checks line up; Paystack is always mocked.
"""

from unittest.mock import patch

import pytest

from bookings.models import BookingPaymentStatus, BookingStatus
from bookings.tests.factories import BookingFactory, ServiceFactory
from payments.adapters import InitializeResult
from payments.tests.factories import PaymentFactory


# =============================================================================
# Booking Fixtures
# =============================================================================


@pytest.fixture
def service(vendor_user):
    return ServiceFactory(vendor=vendor_user, base_price=5000)


@pytest.fixture
def pending_booking(client_user, service):
    """Pending, unpaid 5000 booking."""
    return BookingFactory(client=client_user, service=service)


@pytest.fixture
def held_payment(client_user, service):
    """5000 payment held in escrow at 10% (fee 500, vendor 4500)."""
    booking = BookingFactory(
        client=client_user,
        service=service,
        payment_status=BookingPaymentStatus.ESCROWED,
    )
    return PaymentFactory(booking=booking)


@pytest.fixture
def completed_payment(client_user, service):
    """Held payment on a completed booking."""
    booking = BookingFactory(
        client=client_user,
        service=service,
        status=BookingStatus.COMPLETED,
        payment_status=BookingPaymentStatus.ESCROWED,
    )
    return PaymentFactory(booking=booking)


@pytest.fixture
def pending_payment(client_user, service):
    """Checkout started for a pending booking, charge not confirmed."""
    booking = BookingFactory(client=client_user, service=service)
    return PaymentFactory(booking=booking, pending=True)


# =============================================================================
# Paystack Mocks
# =============================================================================


@pytest.fixture
def mock_paystack():
    """
    Patch the adapter used by the escrow ledger.

    initialize() echoes the reference. Tests set verify.return_value.
    """
    with patch("payments.services.escrow_ledger.PaystackAdapter") as adapter:
        adapter.initialize.side_effect = lambda **kwargs: InitializeResult(
            authorization_url=f"https://checkout.paystack.com/{kwargs['reference']}",
            access_code="access_test",
            reference=kwargs["reference"],
        )
        yield adapter

