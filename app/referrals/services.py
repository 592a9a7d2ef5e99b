"""
Referral service.

Usage:
    from referrals.services import referral_service

    referral_service.apply_referral_code(new_user, "ADA4F2K9")

    # Called by BookingLifecycleManager on completion, inside a savepoint
    referral_service.on_booking_completed(booking)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db.models import Count, Q, Sum
from django.utils import timezone

from accounts.models import User
from core.helpers import generate_reference
from core.services import BaseService
from notifications.models import NotificationType
from notifications.services import notification_dispatcher
from payments.ledger import WalletEntryParams, wallet_ledger
from payments.state_machines import TransactionType
from referrals.exceptions import (
    ReferralConflictError,
    ReferralNotFoundError,
    ReferralPermissionError,
    ReferralValidationError,
)
from referrals.models import Referral, ReferralStatus

if TYPE_CHECKING:
    import uuid

    from django.db.models import QuerySet

    from bookings.models import Booking


class ReferralService(BaseService):
    """
    Referral codes and rewards.

    Methods:
        apply_referral_code: Link a new user to a referrer
        on_booking_completed: Complete the referral and pay both rewards
        expire_old_referrals: Expire pending referrals past expires_at
        referral_stats / list_referrals / get_referral: Reads
    """

    @classmethod
    def apply_referral_code(cls, user: User, code: str) -> Referral:
        """
        Apply a referral code for user.

        Raises:
            ReferralNotFoundError: No user has this code
            ReferralValidationError: user's own code
            ReferralConflictError: user already has a referral
        """
        code = (code or "").strip().upper()
        referrer = User.objects.filter(referral_code=code).first()
        if referrer is None:
            raise ReferralNotFoundError(
                "Invalid referral code",
                details={"referral_code": code},
            )
        if referrer.id == user.id:
            raise ReferralValidationError("You cannot refer yourself")

        with cls.atomic():
            locked_user = User.objects.select_for_update().get(id=user.id)
            if Referral.objects.filter(referee=locked_user).exists():
                raise ReferralConflictError("You have already used a referral code")

            referral = Referral.objects.create(
                referrer=referrer,
                referee=locked_user,
                referral_code=code,
            )
            User.objects.filter(id=locked_user.id).update(referred_by=referrer)

        cls.get_logger().info(
            "Referral applied",
            extra={
                "referral_id": str(referral.id),
                "referrer_id": str(referrer.id),
                "referee_id": str(user.id),
            },
        )
        return referral

    @classmethod
    def on_booking_completed(cls, booking: Booking) -> Referral | None:
        """
        Complete the client's pending referral and pay its rewards.

        Returns None when the client has no pending referral waiting for a
        first booking. Each reward is gated by its own paid flag, so calling
        this twice pays nothing the second time.
        """
        logger = cls.get_logger()

        with cls.atomic():
            referral = (
                Referral.objects.select_for_update()
                .filter(
                    referee_id=booking.client_id,
                    status=ReferralStatus.PENDING,
                    requires_first_booking=True,
                    first_booking_completed=False,
                )
                .first()
            )
            if referral is None:
                return None

            now = timezone.now()
            referral.first_booking_completed = True
            referral.first_booking = booking
            referral.status = ReferralStatus.COMPLETED
            referral.completed_at = now

            if not referral.referrer_paid and referral.referrer_reward > 0:
                txn = cls._pay(
                    referral,
                    referral.referrer_id,
                    referral.referrer_reward,
                    "Referral bonus for inviting a friend",
                    "referrer",
                )
                referral.referrer_paid = True
                referral.referrer_paid_at = now
                referral.referrer_transaction = txn

            if not referral.referee_paid and referral.referee_reward > 0:
                txn = cls._pay(
                    referral,
                    referral.referee_id,
                    referral.referee_reward,
                    "Welcome bonus for joining with a referral code",
                    "referee",
                )
                referral.referee_paid = True
                referral.referee_paid_at = now
                referral.referee_transaction = txn

            referral.save()

        logger.info(
            "Referral completed",
            extra={"referral_id": str(referral.id), "booking_id": str(booking.id)},
        )
        return referral

    @classmethod
    def _pay(cls, referral: Referral, user_id: uuid.UUID, amount: int, description: str, side: str):
        txn = wallet_ledger.credit(
            WalletEntryParams(
                user_id=user_id,
                amount=amount,
                type=TransactionType.REFERRAL_BONUS,
                description=description,
                reference=generate_reference("REF"),
                idempotency_key=f"referral:{referral.id}:{side}",
                metadata={"referral_id": str(referral.id)},
            )
        )
        notification_dispatcher.notify(
            User.objects.get(id=user_id),
            NotificationType.REFERRAL_REWARD,
            data={"amount": amount, "referral_id": str(referral.id)},
            idempotency_key=f"referral_reward:{referral.id}:{side}",
        )
        return txn

    @classmethod
    def expire_old_referrals(cls) -> int:
        """Mark pending referrals past their expiry date as expired."""
        count = Referral.objects.filter(
            status=ReferralStatus.PENDING,
            expires_at__lt=timezone.now(),
        ).update(status=ReferralStatus.EXPIRED, updated_at=timezone.now())
        if count:
            cls.get_logger().info("Expired referrals", extra={"count": count})
        return count

    @classmethod
    def referral_stats(cls, user: User) -> dict[str, int]:
        counts = Referral.objects.filter(referrer=user).aggregate(
            total_referrals=Count("id"),
            completed_referrals=Count("id", filter=Q(status=ReferralStatus.COMPLETED)),
            pending_referrals=Count("id", filter=Q(status=ReferralStatus.PENDING)),
            total_earnings=Sum("referrer_reward", filter=Q(referrer_paid=True)),
        )
        counts["total_earnings"] = counts["total_earnings"] or 0
        counts["referral_code"] = user.referral_code
        return counts

    @classmethod
    def list_referrals(cls, user: User, status: str | None = None) -> QuerySet[Referral]:
        queryset = Referral.objects.filter(referrer=user).select_related("referee", "first_booking")
        if status:
            queryset = queryset.filter(status=status)
        return queryset.order_by("-created_at")

    @classmethod
    def get_referral(cls, referral_id: uuid.UUID, user: User) -> Referral:
        """
        Raises:
            ReferralNotFoundError: Unknown referral
            ReferralPermissionError: user is neither referrer nor referee
        """
        try:
            referral = Referral.objects.select_related("referrer", "referee").get(id=referral_id)
        except Referral.DoesNotExist:
            raise ReferralNotFoundError("Referral not found")
        if user.id not in (referral.referrer_id, referral.referee_id):
            raise ReferralPermissionError("Not authorized to view this referral")
        return referral


referral_service = ReferralService()
