"""
Booking pricing.

Home-service bookings add a travel charge: one BASE_DISTANCE_CHARGE covers
the first BASE_DISTANCE_KM, and each started BASE_DISTANCE_KM beyond that
adds another.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings

from core.helpers import haversine_km


@dataclass(frozen=True)
class BookingQuote:
    service_price: int
    distance_km: Decimal | None
    distance_charge: int

    @property
    def total_amount(self) -> int:
        return self.service_price + self.distance_charge


def distance_charge(distance_km: float, base_km: int | None = None, base_charge: int | None = None) -> int:
    """
    Travel charge for a distance.

    Examples with the defaults (5 km, 1000):
        3 km -> 1000, 5 km -> 1000, 7 km -> 2000, 12 km -> 3000
    """
    base_km = base_km if base_km is not None else settings.BASE_DISTANCE_KM
    base_charge = base_charge if base_charge is not None else settings.BASE_DISTANCE_CHARGE

    if distance_km <= base_km:
        return base_charge
    extra_units = math.ceil((distance_km - base_km) / base_km)
    return base_charge + extra_units * base_charge


def quote(service_price: int, vendor_profile=None, latitude: float | None = None, longitude: float | None = None) -> BookingQuote:
    """
    Price a booking.

    The distance charge applies only to home-service vendors with a stored
    location when the client supplied coordinates; otherwise it is zero.
    """
    if (
        vendor_profile is None
        or not vendor_profile.offers_home_service
        or not vendor_profile.has_location
        or latitude is None
        or longitude is None
    ):
        return BookingQuote(service_price=service_price, distance_km=None, distance_charge=0)

    distance = haversine_km(vendor_profile.latitude, vendor_profile.longitude, latitude, longitude)
    return BookingQuote(
        service_price=service_price,
        distance_km=Decimal(str(distance)),
        distance_charge=distance_charge(distance),
    )
