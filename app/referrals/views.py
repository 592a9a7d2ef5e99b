"""
API views for referrals.

Endpoints:
    POST /api/v1/referrals/apply/  - Apply a referral code
    GET  /api/v1/referrals/stats/  - Caller's referral stats
    GET  /api/v1/referrals/        - Referrals the caller made
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError
from core.views import error_response
from referrals.serializers import (
    ApplyReferralCodeSerializer,
    ReferralListQuerySerializer,
    ReferralSerializer,
    ReferralStatsSerializer,
)
from referrals.services import referral_service


class ApplyReferralCodeView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="apply_referral_code",
        summary="Apply referral code",
        tags=["Referrals"],
        request=ApplyReferralCodeSerializer,
        responses={201: ReferralSerializer},
    )
    def post(self, request):
        serializer = ApplyReferralCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            referral = referral_service.apply_referral_code(
                request.user, serializer.validated_data["referral_code"]
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(ReferralSerializer(referral).data, status=status.HTTP_201_CREATED)


class ReferralStatsView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_referral_stats",
        summary="Referral stats",
        tags=["Referrals"],
        responses={200: ReferralStatsSerializer},
    )
    def get(self, request):
        stats = referral_service.referral_stats(request.user)
        return Response(ReferralStatsSerializer(stats).data)


@extend_schema(
    operation_id="list_referrals",
    summary="List referrals",
    tags=["Referrals"],
    parameters=[OpenApiParameter("status", str, description="Filter by referral status")],
)
class ReferralListView(generics.ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = ReferralSerializer

    def get_queryset(self):
        query = ReferralListQuerySerializer(data=self.request.query_params)
        query.is_valid(raise_exception=True)
        return referral_service.list_referrals(
            self.request.user, status=query.validated_data.get("status")
        )
