"""Serializers for the referrals API."""

from rest_framework import serializers

from referrals.models import Referral, ReferralStatus


class ApplyReferralCodeSerializer(serializers.Serializer):
    referral_code = serializers.CharField(max_length=20)


class ReferralSerializer(serializers.ModelSerializer):
    referee_email = serializers.EmailField(source="referee.email", read_only=True)

    class Meta:
        model = Referral
        fields = [
            "id",
            "referral_code",
            "referee",
            "referee_email",
            "status",
            "first_booking_completed",
            "referrer_reward",
            "referee_reward",
            "referrer_paid",
            "referee_paid",
            "completed_at",
            "expires_at",
            "created_at",
        ]
        read_only_fields = fields


class ReferralStatsSerializer(serializers.Serializer):
    referral_code = serializers.CharField()
    total_referrals = serializers.IntegerField()
    completed_referrals = serializers.IntegerField()
    pending_referrals = serializers.IntegerField()
    total_earnings = serializers.IntegerField()


class ReferralListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ReferralStatus.choices, required=False)
