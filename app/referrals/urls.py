"""
URL configuration for referrals.

All URLs are prefixed with /api/v1/referrals/ in the main URL configuration.
"""

from django.urls import path

from referrals.views import ApplyReferralCodeView, ReferralListView, ReferralStatsView

app_name = "referrals"

urlpatterns = [
    path("", ReferralListView.as_view(), name="referral-list"),
    path("apply/", ApplyReferralCodeView.as_view(), name="referral-apply"),
    path("stats/", ReferralStatsView.as_view(), name="referral-stats"),
]
