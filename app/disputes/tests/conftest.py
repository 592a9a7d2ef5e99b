"""
Test configuration and fixtures for disputes tests.

The disputed booking is a 5000 booking between client_user and
vendor_user with its payment held in escrow at 10% commission.
"""

import pytest

from bookings.models import BookingPaymentStatus, BookingStatus
from bookings.tests.factories import BookingFactory, ServiceFactory
from disputes.tests.factories import DisputeFactory
from payments.tests.factories import PaymentFactory


@pytest.fixture
def escrowed_booking(client_user, vendor_user):
    booking = BookingFactory(
        client=client_user,
        service=ServiceFactory(vendor=vendor_user, base_price=5000),
        status=BookingStatus.IN_PROGRESS,
        payment_status=BookingPaymentStatus.ESCROWED,
    )
    PaymentFactory(booking=booking)
    return booking


@pytest.fixture
def dispute(escrowed_booking, client_user, vendor_user):
    """Open dispute raised by the client against the vendor."""
    return DisputeFactory(booking=escrowed_booking, raised_by=client_user, against=vendor_user)


@pytest.fixture
def second_admin(db):
    from accounts.tests.factories import AdminUserFactory

    return AdminUserFactory()
