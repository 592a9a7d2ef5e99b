"""
Tests for accounts models.
"""

import pytest
from django.db import IntegrityError, transaction

from accounts.models import User, VendorProfile
from accounts.tests.factories import UserFactory, VendorFactory


class TestUserRoles:
    """Tests for role helpers on User."""

    def test_client_role(self, db):
        user = UserFactory()

        assert user.is_client
        assert not user.is_vendor
        assert not user.is_platform_admin

    def test_vendor_role_has_profile(self, db):
        vendor = VendorFactory()

        assert vendor.is_vendor
        assert vendor.vendor_profile.is_verified

    def test_full_name_falls_back_to_email(self, db):
        user = UserFactory(first_name="", last_name="")

        assert user.get_full_name() == user.email


class TestWithdrawalPin:
    """Tests for withdrawal PIN hashing."""

    def test_pin_is_stored_hashed(self, db):
        user = UserFactory()
        user.set_withdrawal_pin("1234")
        user.save()

        assert user.withdrawal_pin != "1234"
        assert user.has_withdrawal_pin

    def test_check_pin(self, db):
        user = UserFactory()
        user.set_withdrawal_pin("1234")

        assert user.check_withdrawal_pin("1234")
        assert not user.check_withdrawal_pin("4321")

    def test_check_pin_when_unset(self, db):
        user = UserFactory()

        assert not user.has_withdrawal_pin
        assert not user.check_withdrawal_pin("1234")


class TestWalletConstraint:
    """The database refuses negative wallet balances."""

    def test_negative_balance_rejected(self, db):
        user = UserFactory()

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                User.objects.filter(id=user.id).update(wallet_balance=-1)


class TestVendorProfile:
    """Tests for VendorProfile helpers."""

    @pytest.mark.parametrize(
        "vendor_type,expected",
        [
            (VendorProfile.VendorType.IN_SHOP, False),
            (VendorProfile.VendorType.HOME_SERVICE, True),
            (VendorProfile.VendorType.BOTH, True),
        ],
    )
    def test_offers_home_service(self, db, vendor_type, expected):
        vendor = VendorFactory(vendor_profile__vendor_type=vendor_type)

        assert vendor.vendor_profile.offers_home_service is expected

    def test_has_location(self, db):
        vendor = VendorFactory(vendor_profile__latitude=None)

        assert not vendor.vendor_profile.has_location
