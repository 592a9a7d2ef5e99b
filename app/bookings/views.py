"""
ViewSet for the bookings API.

URL Structure:
    /api/v1/bookings/                 GET (list), POST (create)
    /api/v1/bookings/offer/           POST (offer-based booking)
    /api/v1/bookings/stats/           GET
    /api/v1/bookings/{id}/            GET
    /api/v1/bookings/{id}/accept/     POST (vendor)
    /api/v1/bookings/{id}/reject/     POST (vendor)
    /api/v1/bookings/{id}/start/      POST (vendor)
    /api/v1/bookings/{id}/complete/   POST (client or vendor)
    /api/v1/bookings/{id}/cancel/     POST (client or vendor)
    /api/v1/bookings/{id}/notes/      PATCH

Every action delegates to BookingLifecycleManager; domain errors are turned
into responses by core.views.error_response.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from bookings.exceptions import BookingNotFoundError
from bookings.serializers import (
    BookingCreateSerializer,
    BookingListQuerySerializer,
    BookingListSerializer,
    BookingNotesSerializer,
    BookingSerializer,
    BookingStatsSerializer,
    MarkCompleteSerializer,
    OfferBookingCreateSerializer,
    ReasonSerializer,
)
from bookings.services import booking_lifecycle
from core.exceptions import BaseApplicationError
from core.views import error_response

User = get_user_model()

TAGS = ["Bookings"]


@extend_schema_view(
    list=extend_schema(
        operation_id="list_bookings",
        summary="List bookings",
        tags=TAGS,
        parameters=[
            OpenApiParameter("role", str, description="client or vendor"),
            OpenApiParameter("status", str),
            OpenApiParameter("start_date", str, description="YYYY-MM-DD"),
            OpenApiParameter("end_date", str, description="YYYY-MM-DD"),
        ],
    ),
    create=extend_schema(
        operation_id="create_booking",
        summary="Create booking",
        tags=TAGS,
        request=BookingCreateSerializer,
        responses={201: BookingSerializer},
    ),
    retrieve=extend_schema(operation_id="get_booking", summary="Get booking", tags=TAGS),
)
class BookingViewSet(viewsets.GenericViewSet):
    """
    list:
        Bookings where the caller is client or vendor.

    create:
        Book a service at its catalogue price (plus distance charge).

    accept / reject / start:
        Vendor actions. Accept requires the payment to be in escrow.

    complete:
        Record the caller's confirmation; the second confirmation completes
        the booking and releases the payment.

    cancel:
        Either party; an escrowed payment is refunded to the client's wallet.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = BookingSerializer
    lookup_value_regex = "[0-9a-f-]{36}"

    def get_serializer_class(self):
        if self.action == "list":
            return BookingListSerializer
        return BookingSerializer

    def list(self, request):
        query = BookingListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        queryset = booking_lifecycle.list_bookings(request.user, **query.validated_data)

        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(BookingListSerializer(page, many=True).data)
        return Response(BookingListSerializer(queryset, many=True).data)

    def create(self, request):
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            booking = booking_lifecycle.create_booking(request.user, **serializer.validated_data)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        try:
            booking = booking_lifecycle.get_booking(pk, request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(BookingSerializer(booking).data)

    @extend_schema(
        operation_id="create_offer_booking",
        summary="Create offer-based booking",
        tags=TAGS,
        request=OfferBookingCreateSerializer,
        responses={201: BookingSerializer},
    )
    @action(detail=False, methods=["post"])
    def offer(self, request):
        serializer = OfferBookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        vendor_id = data.pop("vendor_id")
        try:
            vendor = User.objects.filter(id=vendor_id).select_related("vendor_profile").first()
            if vendor is None:
                raise BookingNotFoundError("Vendor not found", error_code="VENDOR_NOT_FOUND")
            booking = booking_lifecycle.create_offer_booking(request.user, vendor, **data)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="get_booking_stats",
        summary="Booking counts per status",
        tags=TAGS,
        parameters=[OpenApiParameter("role", str, description="client or vendor")],
        responses={200: BookingStatsSerializer},
    )
    @action(detail=False, methods=["get"])
    def stats(self, request):
        role = request.query_params.get("role") or ("vendor" if request.user.is_vendor else "client")
        return Response(BookingStatsSerializer(booking_lifecycle.booking_stats(request.user, role)).data)

    @extend_schema(operation_id="accept_booking", summary="Accept booking", tags=TAGS, request=None)
    @action(detail=True, methods=["post"])
    def accept(self, request, pk=None):
        return self._run(booking_lifecycle.accept, pk, request.user)

    @extend_schema(operation_id="reject_booking", summary="Reject booking", tags=TAGS, request=ReasonSerializer)
    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run(booking_lifecycle.reject, pk, request.user, serializer.validated_data["reason"])

    @extend_schema(operation_id="start_booking", summary="Start booking", tags=TAGS, request=None)
    @action(detail=True, methods=["post"])
    def start(self, request, pk=None):
        return self._run(booking_lifecycle.start, pk, request.user)

    @extend_schema(
        operation_id="complete_booking",
        summary="Mark booking complete",
        tags=TAGS,
        request=MarkCompleteSerializer,
    )
    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        serializer = MarkCompleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run(booking_lifecycle.mark_complete, pk, request.user, serializer.validated_data["role"])

    @extend_schema(operation_id="cancel_booking", summary="Cancel booking", tags=TAGS, request=ReasonSerializer)
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run(booking_lifecycle.cancel, pk, request.user, serializer.validated_data["reason"])

    @extend_schema(
        operation_id="update_booking_notes",
        summary="Update booking notes",
        tags=TAGS,
        request=BookingNotesSerializer,
    )
    @action(detail=True, methods=["patch"])
    def notes(self, request, pk=None):
        serializer = BookingNotesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run(booking_lifecycle.update_notes, pk, request.user, **serializer.validated_data)

    def _run(self, operation, pk, *args, **kwargs):
        try:
            booking = operation(pk, *args, **kwargs)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(BookingSerializer(booking).data)
