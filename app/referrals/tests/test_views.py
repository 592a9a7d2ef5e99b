"""Tests for the referrals API."""

import pytest
from django.urls import reverse
from rest_framework import status

from referrals.models import ReferralStatus


@pytest.mark.django_db
class TestApplyReferralCodeView:
    url = reverse("referrals:referral-apply")

    def test_apply(self, auth_client, client_user, other_user):
        response = auth_client(client_user).post(
            self.url, {"referral_code": other_user.referral_code}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["status"] == ReferralStatus.PENDING

    def test_invalid_code(self, auth_client, client_user):
        response = auth_client(client_user).post(self.url, {"referral_code": "ZZZZ9999"}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "REFERRAL_NOT_FOUND"

    def test_applied_twice(self, auth_client, client_user, other_user, vendor_user):
        client = auth_client(client_user)
        client.post(self.url, {"referral_code": other_user.referral_code}, format="json")

        response = client.post(self.url, {"referral_code": vendor_user.referral_code}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_requires_auth(self, api_client):
        assert api_client.post(self.url, {}, format="json").status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestReferralReadViews:
    def test_stats_and_list(self, auth_client, client_user, other_user):
        auth_client(client_user).post(
            reverse("referrals:referral-apply"),
            {"referral_code": other_user.referral_code},
            format="json",
        )
        client = auth_client(other_user)

        stats = client.get(reverse("referrals:referral-stats"))
        listing = client.get(reverse("referrals:referral-list"))

        assert stats.data["total_referrals"] == 1
        assert stats.data["referral_code"] == other_user.referral_code
        assert listing.data["count"] == 1
        assert listing.data["results"][0]["referee_email"] == client_user.email

    def test_list_rejects_unknown_status(self, auth_client, client_user):
        response = auth_client(client_user).get(reverse("referrals:referral-list"), {"status": "bogus"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
