"""
DRF views for payments app.

This module provides API views for:
- Booking checkout and verification
- Wallet balance, stats and transaction history
- Withdrawal PIN, withdrawal requests and admin payout approval
- Vendor subscriptions

Related files:
    - services/: EscrowLedger, WithdrawalService, SubscriptionRegistry
    - ledger/services.py: WalletLedger
    - serializers.py: Request/response serializers
    - urls.py: URL routing
    - webhooks/views.py: Paystack webhook endpoint

Endpoints:
    POST /api/v1/payments/initialize/ - Start checkout for a booking
    GET  /api/v1/payments/verify/<reference>/ - Verify a checkout
    GET  /api/v1/payments/ - List payments made or received
    GET  /api/v1/payments/<id>/ - Payment detail
    GET  /api/v1/payments/wallet/ - Balance and stats
    GET  /api/v1/payments/wallet/transactions/ - Transaction history
    POST /api/v1/payments/wallet/pin/ - Set or change withdrawal PIN
    GET/POST /api/v1/payments/withdrawals/ - List / request withdrawals
    GET  /api/v1/payments/withdrawals/<id>/ - Withdrawal detail
    POST /api/v1/payments/withdrawals/<id>/process/ - Admin approves payout
    POST /api/v1/payments/withdrawals/<id>/reject/ - Admin rejects
    GET/POST /api/v1/payments/subscription/ - Current plan / subscribe
    POST /api/v1/payments/subscription/pay/ - Pay the current period
    POST /api/v1/payments/subscription/change-plan/ - Switch tier
    POST /api/v1/payments/subscription/cancel/ - Cancel

Security:
    - All endpoints require authentication except the webhook
    - Withdrawal approval is limited to platform admins
    - Subscription endpoints are limited to vendors
"""

from __future__ import annotations

import logging

from django.db import transaction
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError
from core.permissions import IsPlatformAdmin, IsVendor
from core.views import error_response
from payments.exceptions import PaymentConflictError, PaymentNotFoundError
from payments.ledger import wallet_ledger
from payments.services import escrow_ledger, subscription_registry, withdrawal_service
from payments.state_machines import WithdrawalStatus

from .serializers import (
    InitializePaymentSerializer,
    PaymentSerializer,
    SubscriptionCancelSerializer,
    SubscriptionSerializer,
    SubscriptionTierSerializer,
    TransactionQuerySerializer,
    TransactionSerializer,
    WalletSerializer,
    WithdrawalPinSerializer,
    WithdrawalQuerySerializer,
    WithdrawalRejectSerializer,
    WithdrawalRequestSerializer,
    WithdrawalSerializer,
)

logger = logging.getLogger(__name__)

TAGS = ["Payments"]
WALLET_TAGS = ["Wallet"]
SUBSCRIPTION_TAGS = ["Subscriptions"]


def paginated(view: APIView, request, queryset, serializer_class) -> Response:
    paginator = PageNumberPagination()
    page = paginator.paginate_queryset(queryset, request, view=view)
    if page is not None:
        return paginator.get_paginated_response(serializer_class(page, many=True).data)
    return Response(serializer_class(queryset, many=True).data)


# =============================================================================
# Booking Payments
# =============================================================================


class InitializePaymentView(APIView):
    """
    Start a Paystack checkout for one of the caller's bookings.

    POST /api/v1/payments/initialize/

    Returns:
        201 with the payment (authorization_url is where the client pays)
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="initialize_payment",
        summary="Initialize booking payment",
        tags=TAGS,
        request=InitializePaymentSerializer,
        responses={201: PaymentSerializer},
    )
    def post(self, request):
        serializer = InitializePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            payment = escrow_ledger.initialize_payment(request.user, **serializer.validated_data)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


class VerifyPaymentView(APIView):
    """
    Verify a checkout with Paystack. A successful charge moves the
    booking's funds into escrow, exactly as the webhook would.

    GET /api/v1/payments/verify/<reference>/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="verify_payment",
        summary="Verify payment",
        tags=TAGS,
        responses={200: PaymentSerializer},
    )
    def get(self, request, reference: str):
        try:
            payment = escrow_ledger.verify_payment(reference, user=request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(PaymentSerializer(payment).data)


class PaymentListView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_payments",
        summary="List payments",
        tags=TAGS,
        parameters=[OpenApiParameter("status", str)],
        responses={200: PaymentSerializer(many=True)},
    )
    def get(self, request):
        queryset = escrow_ledger.list_user_payments(request.user, status=request.query_params.get("status"))
        return paginated(self, request, queryset, PaymentSerializer)


class PaymentDetailView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_payment",
        summary="Get payment",
        tags=TAGS,
        responses={200: PaymentSerializer},
    )
    def get(self, request, payment_id):
        try:
            payment = escrow_ledger.get_payment(payment_id, request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(PaymentSerializer(payment).data)


# =============================================================================
# Wallet
# =============================================================================


class WalletView(APIView):
    """
    Wallet balance with lifetime totals.

    GET /api/v1/payments/wallet/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_wallet",
        summary="Wallet balance and stats",
        tags=WALLET_TAGS,
        responses={200: WalletSerializer},
    )
    def get(self, request):
        stats = wallet_ledger.wallet_stats(request.user.id)
        return Response(WalletSerializer(stats).data)


class TransactionListView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_transactions",
        summary="Wallet transaction history",
        tags=WALLET_TAGS,
        parameters=[
            OpenApiParameter("type", str),
            OpenApiParameter("status", str),
            OpenApiParameter("start_date", str, description="ISO 8601 datetime"),
            OpenApiParameter("end_date", str, description="ISO 8601 datetime"),
        ],
        responses={200: TransactionSerializer(many=True)},
    )
    def get(self, request):
        query = TransactionQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        queryset = wallet_ledger.list_transactions(request.user.id, **query.validated_data)
        return paginated(self, request, queryset, TransactionSerializer)


class WithdrawalPinView(APIView):
    """
    Set the withdrawal PIN, or change it by also sending current_pin.

    POST /api/v1/payments/wallet/pin/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="set_withdrawal_pin",
        summary="Set withdrawal PIN",
        tags=WALLET_TAGS,
        request=WithdrawalPinSerializer,
        responses={200: None},
    )
    def post(self, request):
        serializer = WithdrawalPinSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            withdrawal_service.set_withdrawal_pin(
                request.user,
                serializer.validated_data["pin"],
                current_pin=serializer.validated_data.get("current_pin") or None,
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response({"detail": "Withdrawal PIN updated"})


# =============================================================================
# Withdrawals
# =============================================================================


class WithdrawalListCreateView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_withdrawals",
        summary="List withdrawals",
        tags=WALLET_TAGS,
        parameters=[
            OpenApiParameter("status", str),
            OpenApiParameter("all", bool, description="Admins only: every user's withdrawals"),
        ],
        responses={200: WithdrawalSerializer(many=True)},
    )
    def get(self, request):
        query = WithdrawalQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        queryset = withdrawal_service.list_withdrawals(
            request.user,
            status=query.validated_data.get("status"),
            all_users=query.validated_data["all"],
        )
        return paginated(self, request, queryset, WithdrawalSerializer)

    @extend_schema(
        operation_id="request_withdrawal",
        summary="Request withdrawal",
        tags=WALLET_TAGS,
        request=WithdrawalRequestSerializer,
        responses={201: WithdrawalSerializer},
    )
    def post(self, request):
        serializer = WithdrawalRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            withdrawal = withdrawal_service.request_withdrawal(request.user, **serializer.validated_data)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(WithdrawalSerializer(withdrawal).data, status=status.HTTP_201_CREATED)


class WithdrawalDetailView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_withdrawal",
        summary="Get withdrawal",
        tags=WALLET_TAGS,
        responses={200: WithdrawalSerializer},
    )
    def get(self, request, withdrawal_id):
        try:
            withdrawal = withdrawal_service.get_withdrawal(withdrawal_id, request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(WithdrawalSerializer(withdrawal).data)


class WithdrawalProcessView(APIView):
    """
    Approve a pending withdrawal. The Paystack transfer runs in a Celery
    task once this request's transaction commits.

    POST /api/v1/payments/withdrawals/<id>/process/

    Returns:
        202 with the withdrawal as it stood when queued
    """

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="process_withdrawal",
        summary="Approve withdrawal",
        tags=WALLET_TAGS,
        request=None,
        responses={202: WithdrawalSerializer},
    )
    def post(self, request, withdrawal_id):
        from payments.tasks import process_withdrawal_transfer

        try:
            withdrawal = withdrawal_service.get_withdrawal(withdrawal_id, request.user)
            if withdrawal.status != WithdrawalStatus.PENDING:
                raise PaymentConflictError(
                    "Only pending withdrawals can be processed",
                    error_code="INVALID_WITHDRAWAL_STATUS",
                    details={"withdrawal_id": str(withdrawal.id), "status": withdrawal.status},
                )
        except BaseApplicationError as e:
            return error_response(e)

        withdrawal_pk = str(withdrawal.id)
        admin_pk = str(request.user.id)
        transaction.on_commit(lambda: process_withdrawal_transfer.delay(withdrawal_pk, admin_pk))
        logger.info(
            "Withdrawal queued for transfer",
            extra={"withdrawal_id": withdrawal_pk, "admin_id": admin_pk},
        )
        return Response(WithdrawalSerializer(withdrawal).data, status=status.HTTP_202_ACCEPTED)


class WithdrawalRejectView(APIView):
    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    @extend_schema(
        operation_id="reject_withdrawal",
        summary="Reject withdrawal",
        tags=WALLET_TAGS,
        request=WithdrawalRejectSerializer,
        responses={200: WithdrawalSerializer},
    )
    def post(self, request, withdrawal_id):
        serializer = WithdrawalRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            withdrawal = withdrawal_service.reject_withdrawal(
                withdrawal_id,
                admin=request.user,
                reason=serializer.validated_data["reason"],
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(WithdrawalSerializer(withdrawal).data)


# =============================================================================
# Subscriptions
# =============================================================================


class SubscriptionView(APIView):
    """
    GET: the vendor's current subscription (404 when none).
    POST: subscribe to a tier.
    """

    permission_classes = [IsAuthenticated, IsVendor]

    @extend_schema(
        operation_id="get_subscription",
        summary="Get current subscription",
        tags=SUBSCRIPTION_TAGS,
        responses={200: SubscriptionSerializer},
    )
    def get(self, request):
        subscription = subscription_registry.get_vendor_subscription(request.user)
        if subscription is None:
            return error_response(
                PaymentNotFoundError("No subscription found", error_code="SUBSCRIPTION_NOT_FOUND")
            )
        return Response(SubscriptionSerializer(subscription).data)

    @extend_schema(
        operation_id="create_subscription",
        summary="Subscribe to a tier",
        tags=SUBSCRIPTION_TAGS,
        request=SubscriptionTierSerializer,
        responses={201: SubscriptionSerializer},
    )
    def post(self, request):
        serializer = SubscriptionTierSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            subscription = subscription_registry.create_subscription(
                request.user, serializer.validated_data["tier"]
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(SubscriptionSerializer(subscription).data, status=status.HTTP_201_CREATED)


class SubscriptionPayView(APIView):
    permission_classes = [IsAuthenticated, IsVendor]

    @extend_schema(
        operation_id="pay_subscription",
        summary="Pay current subscription period",
        tags=SUBSCRIPTION_TAGS,
        request=None,
        responses={200: SubscriptionSerializer},
    )
    def post(self, request):
        try:
            subscription = subscription_registry.get_vendor_subscription(request.user)
            if subscription is None:
                raise PaymentNotFoundError("No subscription found", error_code="SUBSCRIPTION_NOT_FOUND")
            subscription = subscription_registry.pay_subscription(subscription.id, vendor=request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(SubscriptionSerializer(subscription).data)


class SubscriptionChangePlanView(APIView):
    permission_classes = [IsAuthenticated, IsVendor]

    @extend_schema(
        operation_id="change_subscription_plan",
        summary="Change subscription tier",
        tags=SUBSCRIPTION_TAGS,
        request=SubscriptionTierSerializer,
        responses={200: SubscriptionSerializer},
    )
    def post(self, request):
        serializer = SubscriptionTierSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            subscription = subscription_registry.change_plan(request.user, serializer.validated_data["tier"])
        except BaseApplicationError as e:
            return error_response(e)
        return Response(SubscriptionSerializer(subscription).data)


class SubscriptionCancelView(APIView):
    permission_classes = [IsAuthenticated, IsVendor]

    @extend_schema(
        operation_id="cancel_subscription",
        summary="Cancel subscription",
        tags=SUBSCRIPTION_TAGS,
        request=SubscriptionCancelSerializer,
        responses={200: SubscriptionSerializer},
    )
    def post(self, request):
        serializer = SubscriptionCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            subscription = subscription_registry.cancel_subscription(
                request.user, reason=serializer.validated_data["reason"]
            )
        except BaseApplicationError as e:
            return error_response(e)
        return Response(SubscriptionSerializer(subscription).data)
