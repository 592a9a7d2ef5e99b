"""
Serializers for the bookings API.

Input serializers only validate shape; every rule about who may do what
lives in BookingLifecycleManager.
"""

from rest_framework import serializers

from bookings.models import Booking, BookingStatus, BookingStatusChange


class BookingStatusChangeSerializer(serializers.ModelSerializer):
    class Meta:
        model = BookingStatusChange
        fields = ["status", "changed_at", "changed_by", "reason"]
        read_only_fields = fields


class BookingSerializer(serializers.ModelSerializer):
    """Read serializer for bookings, including status history on detail."""

    service_name = serializers.CharField(source="service.name", read_only=True, default=None)
    status_history = BookingStatusChangeSerializer(many=True, read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "booking_type",
            "client",
            "vendor",
            "service",
            "service_name",
            "offer_reference",
            "scheduled_date",
            "scheduled_time",
            "duration_minutes",
            "address",
            "city",
            "state",
            "latitude",
            "longitude",
            "service_price",
            "distance_km",
            "distance_charge",
            "total_amount",
            "status",
            "client_marked_complete",
            "vendor_marked_complete",
            "completed_by",
            "payment_status",
            "payment_reference",
            "accepted_at",
            "rejected_at",
            "started_at",
            "completed_at",
            "cancelled_at",
            "cancelled_by",
            "cancellation_reason",
            "has_dispute",
            "client_notes",
            "vendor_notes",
            "status_history",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BookingListSerializer(BookingSerializer):
    class Meta(BookingSerializer.Meta):
        fields = [f for f in BookingSerializer.Meta.fields if f != "status_history"]
        read_only_fields = fields


class LocationFieldsMixin(serializers.Serializer):
    address = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    city = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    state = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    latitude = serializers.FloatField(required=False, allow_null=True, default=None, min_value=-90, max_value=90)
    longitude = serializers.FloatField(required=False, allow_null=True, default=None, min_value=-180, max_value=180)


class BookingCreateSerializer(LocationFieldsMixin):
    service_id = serializers.UUIDField()
    scheduled_date = serializers.DateField()
    scheduled_time = serializers.RegexField(r"^\d{2}:\d{2}$", required=False, allow_blank=True, default="")
    client_notes = serializers.CharField(required=False, allow_blank=True, default="")


class OfferBookingCreateSerializer(LocationFieldsMixin):
    vendor_id = serializers.UUIDField()
    agreed_price = serializers.IntegerField(min_value=1)
    scheduled_date = serializers.DateField()
    scheduled_time = serializers.RegexField(r"^\d{2}:\d{2}$", required=False, allow_blank=True, default="")
    duration_minutes = serializers.IntegerField(min_value=1, required=False, default=60)
    service_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    offer_reference = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    client_notes = serializers.CharField(required=False, allow_blank=True, default="")


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class MarkCompleteSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=["client", "vendor"])


class BookingNotesSerializer(serializers.Serializer):
    client_notes = serializers.CharField(required=False, allow_blank=True)
    vendor_notes = serializers.CharField(required=False, allow_blank=True)


class BookingListQuerySerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=["client", "vendor"], required=False)
    status = serializers.ChoiceField(choices=BookingStatus.choices, required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)


class BookingStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    pending = serializers.IntegerField()
    accepted = serializers.IntegerField()
    in_progress = serializers.IntegerField()
    completed = serializers.IntegerField()
    cancelled = serializers.IntegerField()
