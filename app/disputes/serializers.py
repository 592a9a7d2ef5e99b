"""DRF serializers for disputes."""

from __future__ import annotations

from rest_framework import serializers

from disputes.models import (
    Dispute,
    DisputeCategory,
    DisputeEvidence,
    DisputeMessage,
    DisputePriority,
    DisputeResolution,
    DisputeStatus,
    EvidenceType,
)


class DisputeEvidenceSerializer(serializers.ModelSerializer):
    class Meta:
        model = DisputeEvidence
        fields = ["id", "type", "content", "uploaded_by", "uploaded_at"]
        read_only_fields = fields


class DisputeMessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = DisputeMessage
        fields = ["id", "sender", "message", "attachments", "sent_at"]
        read_only_fields = fields


class DisputeSerializer(serializers.ModelSerializer):
    evidence = DisputeEvidenceSerializer(many=True, read_only=True)
    messages = DisputeMessageSerializer(many=True, read_only=True)

    class Meta:
        model = Dispute
        fields = [
            "id",
            "booking",
            "raised_by",
            "against",
            "reason",
            "description",
            "category",
            "priority",
            "status",
            "resolution",
            "resolution_details",
            "refund_amount",
            "vendor_payment_amount",
            "assigned_to",
            "reviewed_at",
            "resolved_at",
            "resolved_by",
            "closed_at",
            "closed_by",
            "evidence",
            "messages",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class DisputeListSerializer(serializers.ModelSerializer):
    class Meta:
        model = Dispute
        fields = [
            "id",
            "booking",
            "raised_by",
            "against",
            "reason",
            "category",
            "priority",
            "status",
            "resolution",
            "assigned_to",
            "created_at",
        ]
        read_only_fields = fields


class EvidenceItemSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=EvidenceType.choices, default=EvidenceType.TEXT)
    content = serializers.CharField()


class DisputeCreateSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField()
    reason = serializers.CharField(max_length=200)
    description = serializers.CharField()
    category = serializers.ChoiceField(choices=DisputeCategory.choices, default=DisputeCategory.OTHER)
    evidence = EvidenceItemSerializer(many=True, required=False)


class AddEvidenceSerializer(serializers.Serializer):
    evidence = EvidenceItemSerializer(many=True, allow_empty=False)


class AddMessageSerializer(serializers.Serializer):
    message = serializers.CharField()
    attachments = serializers.ListField(child=serializers.URLField(), required=False, default=list)


class AssignDisputeSerializer(serializers.Serializer):
    assign_to = serializers.UUIDField(required=False, help_text="Defaults to the calling admin")


class PrioritySerializer(serializers.Serializer):
    priority = serializers.ChoiceField(choices=DisputePriority.choices)


class ResolveDisputeSerializer(serializers.Serializer):
    resolution = serializers.ChoiceField(choices=DisputeResolution.choices)
    resolution_details = serializers.CharField(required=False, allow_blank=True, default="")
    refund_amount = serializers.IntegerField(min_value=0, required=False)
    vendor_payment_amount = serializers.IntegerField(min_value=0, required=False)

    def validate(self, attrs):
        if attrs["resolution"] == DisputeResolution.PARTIAL_REFUND and (
            attrs.get("refund_amount") is None or attrs.get("vendor_payment_amount") is None
        ):
            raise serializers.ValidationError(
                "refund_amount and vendor_payment_amount are required for a partial refund"
            )
        return attrs


class DisputeListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=DisputeStatus.choices, required=False)
    category = serializers.ChoiceField(choices=DisputeCategory.choices, required=False)
    priority = serializers.ChoiceField(choices=DisputePriority.choices, required=False)
    assigned_to = serializers.UUIDField(required=False)
    all = serializers.BooleanField(required=False, default=False)
