"""
Test configuration and fixtures for bookings tests.

Bookings are built between the project-level client_user and vendor_user
fixtures so party checks line up.
"""

import pytest

from bookings.models import BookingPaymentStatus, BookingStatus
from bookings.tests.factories import BookingFactory, ServiceFactory
from payments.tests.factories import PaymentFactory


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def service(vendor_user):
    """A 5000 service offered by vendor_user."""
    return ServiceFactory(vendor=vendor_user, base_price=5000)


# =============================================================================
# Booking Fixtures
# =============================================================================


@pytest.fixture
def pending_booking(client_user, service):
    """Pending, unpaid booking."""
    return BookingFactory(client=client_user, service=service)


@pytest.fixture
def escrowed_payment(client_user, service):
    """Payment held in escrow for a pending booking (5000, fee 500)."""
    booking = BookingFactory(
        client=client_user,
        service=service,
        payment_status=BookingPaymentStatus.ESCROWED,
    )
    return PaymentFactory(booking=booking)


@pytest.fixture
def escrowed_booking(escrowed_payment):
    return escrowed_payment.booking


@pytest.fixture
def accepted_booking(client_user, service):
    """Accepted booking whose 5000 payment is in escrow."""
    booking = BookingFactory(
        client=client_user,
        service=service,
        status=BookingStatus.ACCEPTED,
        payment_status=BookingPaymentStatus.ESCROWED,
    )
    PaymentFactory(booking=booking)
    return booking
