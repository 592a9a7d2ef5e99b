"""
Tests for booking pricing.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from bookings.pricing import distance_charge, quote


def home_vendor(latitude=6.5244, longitude=3.3792, home=True):
    return SimpleNamespace(
        latitude=latitude,
        longitude=longitude,
        offers_home_service=home,
        has_location=latitude is not None and longitude is not None,
    )


class TestDistanceCharge:
    """Tests for distance_charge()."""

    @pytest.mark.parametrize(
        "distance_km, expected",
        [
            (0, 1000),
            (3, 1000),
            (5, 1000),
            (5.01, 2000),
            (7, 2000),
            (10, 2000),
            (12, 3000),
        ],
    )
    def test_charge_per_started_band(self, distance_km, expected):
        """Should charge one base fee per started 5 km band."""
        assert distance_charge(distance_km) == expected

    def test_uses_explicit_base(self):
        assert distance_charge(7, base_km=2, base_charge=300) == 300 + 3 * 300

    def test_reads_settings(self, settings):
        settings.BASE_DISTANCE_KM = 10
        settings.BASE_DISTANCE_CHARGE = 500

        assert distance_charge(15) == 1000


class TestQuote:
    """Tests for quote()."""

    def test_in_shop_has_no_distance_charge(self):
        result = quote(5000)

        assert result.distance_charge == 0
        assert result.distance_km is None
        assert result.total_amount == 5000

    def test_home_service_adds_distance_charge(self):
        """Should add the travel charge for Lagos Island to Ikeja (about 9 km)."""
        result = quote(5000, home_vendor(), latitude=6.6018, longitude=3.3515)

        assert result.distance_km > Decimal("5")
        assert result.distance_charge == distance_charge(float(result.distance_km))
        assert result.total_amount == 5000 + result.distance_charge

    def test_vendor_without_location_is_not_charged(self):
        result = quote(5000, home_vendor(latitude=None, longitude=None), latitude=6.6, longitude=3.35)

        assert result.distance_charge == 0

    def test_missing_client_coordinates_not_charged(self):
        result = quote(5000, home_vendor(), latitude=None, longitude=None)

        assert result.total_amount == 5000

    def test_in_shop_vendor_with_coordinates_not_charged(self):
        result = quote(5000, home_vendor(home=False), latitude=6.6018, longitude=3.3515)

        assert result.distance_charge == 0
