"""Fixtures for Paystack webhook tests."""

import pytest

from bookings.tests.factories import BookingFactory, ServiceFactory
from payments.tests.factories import PaymentFactory


@pytest.fixture
def pending_payment(client_user, vendor_user):
    """PAY-123: a 5000 checkout waiting for charge.success."""
    booking = BookingFactory(
        client=client_user,
        service=ServiceFactory(vendor=vendor_user, base_price=5000),
    )
    return PaymentFactory(booking=booking, reference="PAY-123", pending=True)


@pytest.fixture
def charge_success_payload():
    return {
        "event": "charge.success",
        "data": {
            "id": 302961,
            "reference": "PAY-123",
            "amount": 500000,
            "status": "success",
            "authorization": {"authorization_code": "AUTH_8dfhjjdt"},
        },
    }
