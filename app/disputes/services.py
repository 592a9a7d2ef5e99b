"""
Dispute resolver.

A dispute can only be raised while the booking's payment is held in escrow,
and an active dispute stops booking completion from releasing it. The
escrow stays held until an admin resolves the dispute, at which point
exactly one settlement runs (refund, release or split) in the same atomic
block as the dispute transition. If the ledger refuses, the dispute stays
unresolved.

Usage:
    from disputes.services import dispute_resolver

    dispute = dispute_resolver.create_dispute(client, booking.id, reason="No show", description="...")
    dispute_resolver.assign_dispute(dispute.id, admin, assign_to=admin)
    dispute_resolver.resolve_dispute(
        dispute.id, admin, DisputeResolution.PARTIAL_REFUND,
        refund_amount=2000, vendor_payment_amount=3000,
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db.models import Case, Count, IntegerField, Q, Value, When
from django_fsm import TransitionNotAllowed

from bookings.models import Booking, BookingStatus
from core.services import BaseService
from disputes.exceptions import (
    DisputeConflictError,
    DisputeNotFoundError,
    DisputePermissionError,
    DisputeValidationError,
)
from disputes.models import (
    ACTIVE_DISPUTE_STATUSES,
    Dispute,
    DisputeEvidence,
    DisputeMessage,
    DisputePriority,
    DisputeResolution,
    DisputeStatus,
)
from notifications.models import NotificationType
from notifications.services import notification_dispatcher
from payments.models import Payment
from payments.state_machines import EscrowStatus

if TYPE_CHECKING:
    import uuid

    from django.db.models import QuerySet

    from accounts.models import User


DISPUTABLE_BOOKING_STATUSES = (
    BookingStatus.ACCEPTED,
    BookingStatus.IN_PROGRESS,
    BookingStatus.COMPLETED,
)

PRIORITY_ORDER = Case(
    When(priority=DisputePriority.URGENT, then=Value(3)),
    When(priority=DisputePriority.HIGH, then=Value(2)),
    When(priority=DisputePriority.MEDIUM, then=Value(1)),
    default=Value(0),
    output_field=IntegerField(),
)


class DisputeResolver(BaseService):
    """
    Raises, reviews and settles booking disputes.

    Methods:
        create_dispute: A booking party disputes it
        add_evidence / add_message: Parties (and admins, for messages)
        assign_dispute / update_priority: Admin triage
        resolve_dispute: Admin settles the escrow
        close_dispute: Admin closes a resolved dispute
        get_dispute / list_disputes / dispute_stats: Reads
    """

    # =========================================================================
    # Parties
    # =========================================================================

    @classmethod
    def create_dispute(
        cls,
        user: User,
        booking_id: uuid.UUID,
        reason: str,
        description: str,
        category: str = "other",
        evidence: list[dict] | None = None,
    ) -> Dispute:
        """
        Open a dispute on a booking.

        The dispute is raised against the other party. Initial evidence is
        stored with it and the booking is flagged has_dispute.

        Raises:
            DisputeNotFoundError: Unknown booking
            DisputePermissionError: user is not the booking's client or vendor
            DisputeValidationError: Booking is pending or cancelled
            DisputeConflictError: Booking already has an open or in-review dispute,
                or its escrow was already released, refunded or split
        """
        with cls.atomic():
            try:
                booking = (
                    Booking.objects.select_for_update(of=("self",))
                    .select_related("client", "vendor")
                    .get(id=booking_id)
                )
            except Booking.DoesNotExist:
                raise DisputeNotFoundError(
                    "Booking not found",
                    error_code="BOOKING_NOT_FOUND",
                    details={"booking_id": str(booking_id)},
                )

            if user.id == booking.client_id:
                against = booking.vendor
            elif user.id == booking.vendor_id:
                against = booking.client
            else:
                raise DisputePermissionError("You can only create disputes for your own bookings")

            if booking.status not in DISPUTABLE_BOOKING_STATUSES:
                raise DisputeValidationError(
                    "Disputes can only be created for accepted, in-progress or completed bookings",
                    error_code="BOOKING_NOT_DISPUTABLE",
                    details={"booking_id": str(booking.id), "status": booking.status},
                )
            if Dispute.objects.filter(booking=booking, status__in=ACTIVE_DISPUTE_STATUSES).exists():
                raise DisputeConflictError(
                    "An active dispute already exists for this booking",
                    details={"booking_id": str(booking.id)},
                )
            if not Payment.objects.filter(booking=booking, escrow_status=EscrowStatus.HELD).exists():
                raise DisputeConflictError(
                    "The booking's payment is no longer held in escrow",
                    error_code="ESCROW_NOT_HELD",
                    details={"booking_id": str(booking.id), "payment_status": booking.payment_status},
                )

            dispute = Dispute.objects.create(
                booking=booking,
                raised_by=user,
                against=against,
                reason=reason,
                description=description,
                category=category,
                priority=DisputePriority.MEDIUM,
            )
            cls._store_evidence(dispute, user, evidence or [])

            booking.has_dispute = True
            booking.save(update_fields=["has_dispute", "updated_at"])

            notification_dispatcher.notify(
                against,
                NotificationType.DISPUTE_CREATED,
                data={"dispute_id": str(dispute.id), "booking_id": str(booking.id), "reason": reason},
                idempotency_key=f"dispute_created:{dispute.id}",
            )

        cls.get_logger().info(
            "Dispute created",
            extra={
                "dispute_id": str(dispute.id),
                "booking_id": str(booking.id),
                "raised_by": str(user.id),
                "category": category,
            },
        )
        return dispute

    @classmethod
    def add_evidence(cls, dispute_id: uuid.UUID, user: User, evidence: list[dict]) -> Dispute:
        """
        Raises:
            DisputeNotFoundError: Unknown dispute
            DisputePermissionError: user is not a party
            DisputeValidationError: Dispute is resolved or closed
        """
        with cls.atomic():
            dispute = cls._get_locked(dispute_id)
            if not dispute.is_party(user):
                raise DisputePermissionError("You are not part of this dispute")
            if dispute.is_settled:
                raise DisputeValidationError(
                    "Cannot add evidence to resolved or closed disputes",
                    error_code="DISPUTE_SETTLED",
                )
            cls._store_evidence(dispute, user, evidence)

        cls.get_logger().info(
            "Dispute evidence added",
            extra={"dispute_id": str(dispute.id), "count": len(evidence)},
        )
        return dispute

    @classmethod
    def add_message(
        cls,
        dispute_id: uuid.UUID,
        user: User,
        message: str,
        attachments: list[str] | None = None,
    ) -> DisputeMessage:
        """
        Post a message on a dispute. Parties and admins may post.

        The parties other than the sender are notified.
        """
        dispute = cls._get(dispute_id)
        if not (dispute.is_party(user) or user.is_platform_admin):
            raise DisputePermissionError("You are not authorized to send messages in this dispute")

        with cls.atomic():
            dispute_message = DisputeMessage.objects.create(
                dispute=dispute,
                sender=user,
                message=message,
                attachments=attachments or [],
            )
            for recipient in (dispute.raised_by, dispute.against):
                if recipient.id == user.id:
                    continue
                notification_dispatcher.notify(
                    recipient,
                    NotificationType.DISPUTE_MESSAGE,
                    data={"dispute_id": str(dispute.id)},
                    idempotency_key=f"dispute_message:{dispute_message.id}:{recipient.id}",
                )
        return dispute_message

    # =========================================================================
    # Admin
    # =========================================================================

    @classmethod
    def assign_dispute(cls, dispute_id: uuid.UUID, admin: User, assign_to: User) -> Dispute:
        """
        Assign a reviewer. An open dispute moves to in_review; a dispute
        already in review is just reassigned.

        Raises:
            DisputeValidationError: Dispute is resolved or closed, or assign_to is not an admin
        """
        if not assign_to.is_platform_admin:
            raise DisputeValidationError(
                "Disputes can only be assigned to admins",
                error_code="INVALID_ASSIGNEE",
                details={"user_id": str(assign_to.id)},
            )

        with cls.atomic():
            dispute = cls._get_locked(dispute_id)
            if dispute.status == DisputeStatus.OPEN:
                dispute.start_review(assigned_to=assign_to)
            elif dispute.status == DisputeStatus.IN_REVIEW:
                dispute.assigned_to = assign_to
            else:
                raise DisputeValidationError(
                    "Resolved or closed disputes cannot be reassigned",
                    error_code="DISPUTE_SETTLED",
                )
            dispute.save()

        cls.get_logger().info(
            "Dispute assigned",
            extra={
                "dispute_id": str(dispute.id),
                "assigned_to": str(assign_to.id),
                "admin_id": str(admin.id),
            },
        )
        return dispute

    @classmethod
    def update_priority(cls, dispute_id: uuid.UUID, priority: str) -> Dispute:
        if priority not in DisputePriority.values:
            raise DisputeValidationError(
                "Unknown priority",
                error_code="INVALID_PRIORITY",
                details={"priority": priority},
            )
        with cls.atomic():
            dispute = cls._get_locked(dispute_id)
            dispute.priority = priority
            dispute.save(update_fields=["priority", "updated_at"])
        return dispute

    @classmethod
    def resolve_dispute(
        cls,
        dispute_id: uuid.UUID,
        admin: User,
        resolution: str,
        resolution_details: str = "",
        refund_amount: int | None = None,
        vendor_payment_amount: int | None = None,
    ) -> Dispute:
        """
        Settle the booking's escrow and resolve the dispute.

        refund_client refunds the full payment, pay_vendor releases it even
        if the booking never completed, and partial_refund splits it; both
        amounts are required and must add up to the payment amount.

        Raises:
            DisputeNotFoundError: Unknown dispute
            DisputeValidationError: Unknown resolution, missing split amounts
            DisputeConflictError: Already resolved or closed
            PaymentValidationError: Booking was never paid, split amounts are wrong
            PaymentConflictError: Escrow already released, refunded or split
        """
        from payments.services import escrow_ledger

        if resolution not in DisputeResolution.values:
            raise DisputeValidationError(
                "Unknown resolution",
                error_code="INVALID_RESOLUTION",
                details={"resolution": resolution},
            )
        if resolution == DisputeResolution.PARTIAL_REFUND and (
            refund_amount is None or vendor_payment_amount is None
        ):
            raise DisputeValidationError(
                "Refund and vendor payment amounts are required for a partial refund",
                error_code="SPLIT_AMOUNTS_REQUIRED",
            )

        with cls.atomic():
            dispute = cls._get_locked(dispute_id)
            if dispute.is_settled:
                raise DisputeConflictError(
                    "Dispute already resolved or closed",
                    error_code="DISPUTE_SETTLED",
                )

            if resolution == DisputeResolution.REFUND_CLIENT:
                payment = escrow_ledger.refund_payment(
                    dispute.booking_id,
                    refunded_by=admin,
                    reason="Dispute resolved in favor of client",
                )
                refund_amount, vendor_payment_amount = payment.amount, 0
            elif resolution == DisputeResolution.PAY_VENDOR:
                payment = escrow_ledger.release_payment(dispute.booking_id, override=True)
                refund_amount, vendor_payment_amount = 0, payment.vendor_amount
            else:
                escrow_ledger.split_payment(
                    dispute.booking_id,
                    refund_amount=refund_amount,
                    vendor_amount=vendor_payment_amount,
                    resolved_by=admin,
                    reason=resolution_details or "Dispute resolved with a partial refund",
                )

            cls._transition(
                dispute,
                "resolve",
                resolution=resolution,
                resolved_by=admin,
                details=resolution_details,
                refund_amount=refund_amount,
                vendor_payment_amount=vendor_payment_amount,
            )
            dispute.save()

            for party in (dispute.raised_by, dispute.against):
                notification_dispatcher.notify(
                    party,
                    NotificationType.DISPUTE_RESOLVED,
                    data={
                        "dispute_id": str(dispute.id),
                        "resolution": dispute.get_resolution_display(),
                    },
                    idempotency_key=f"dispute_resolved:{dispute.id}:{party.id}",
                )

        cls.get_logger().info(
            "Dispute resolved",
            extra={
                "dispute_id": str(dispute.id),
                "booking_id": str(dispute.booking_id),
                "resolution": resolution,
                "refund_amount": refund_amount,
                "vendor_payment_amount": vendor_payment_amount,
                "admin_id": str(admin.id),
            },
        )
        return dispute

    @classmethod
    def close_dispute(cls, dispute_id: uuid.UUID, admin: User) -> Dispute:
        """
        Raises:
            DisputeValidationError: Dispute is not resolved
        """
        with cls.atomic():
            dispute = cls._get_locked(dispute_id)
            if dispute.status != DisputeStatus.RESOLVED:
                raise DisputeValidationError(
                    "Only resolved disputes can be closed",
                    error_code="DISPUTE_NOT_RESOLVED",
                    details={"status": dispute.status},
                )
            dispute.close(closed_by=admin)
            dispute.save()

        cls.get_logger().info(
            "Dispute closed",
            extra={"dispute_id": str(dispute.id), "admin_id": str(admin.id)},
        )
        return dispute

    # =========================================================================
    # Reads
    # =========================================================================

    @classmethod
    def get_dispute(cls, dispute_id: uuid.UUID, user: User) -> Dispute:
        dispute = cls._get(dispute_id)
        if not (dispute.is_party(user) or user.is_platform_admin):
            raise DisputePermissionError("Not authorized to view this dispute")
        return dispute

    @classmethod
    def list_disputes(
        cls,
        user: User,
        status: str | None = None,
        category: str | None = None,
        priority: str | None = None,
        assigned_to: uuid.UUID | None = None,
        all_users: bool = False,
    ) -> QuerySet[Dispute]:
        """
        Disputes the user raised or is the subject of. Admins passing
        all_users see every dispute, most urgent first.
        """
        queryset = Dispute.objects.select_related("booking", "raised_by", "against", "assigned_to")
        if all_users and user.is_platform_admin:
            ordering = [PRIORITY_ORDER.desc(), "-created_at"]
            if priority:
                queryset = queryset.filter(priority=priority)
            if assigned_to:
                queryset = queryset.filter(assigned_to_id=assigned_to)
        else:
            queryset = queryset.filter(Q(raised_by=user) | Q(against=user))
            ordering = ["-created_at"]

        if status:
            queryset = queryset.filter(status=status)
        if category:
            queryset = queryset.filter(category=category)
        return queryset.order_by(*ordering)

    @classmethod
    def dispute_stats(cls) -> dict:
        """Counts per status, category and priority for the admin dashboard."""
        totals = Dispute.objects.aggregate(
            total=Count("id"),
            **{status: Count("id", filter=Q(status=status)) for status in DisputeStatus.values},
        )
        by_category = dict(
            Dispute.objects.values_list("category").annotate(count=Count("id")).order_by()
        )
        by_priority = dict(
            Dispute.objects.values_list("priority").annotate(count=Count("id")).order_by()
        )
        return {**totals, "by_category": by_category, "by_priority": by_priority}

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _get(dispute_id: uuid.UUID) -> Dispute:
        try:
            return Dispute.objects.select_related("raised_by", "against", "booking").get(id=dispute_id)
        except Dispute.DoesNotExist:
            raise DisputeNotFoundError(
                "Dispute not found",
                details={"dispute_id": str(dispute_id)},
            )

    @staticmethod
    def _get_locked(dispute_id: uuid.UUID) -> Dispute:
        try:
            return (
                Dispute.objects.select_for_update(of=("self",))
                .select_related("raised_by", "against")
                .get(id=dispute_id)
            )
        except Dispute.DoesNotExist:
            raise DisputeNotFoundError(
                "Dispute not found",
                details={"dispute_id": str(dispute_id)},
            )

    @staticmethod
    def _store_evidence(dispute: Dispute, user: User, evidence: list[dict]) -> None:
        DisputeEvidence.objects.bulk_create(
            [
                DisputeEvidence(
                    dispute=dispute,
                    type=item.get("type", "text"),
                    content=item["content"],
                    uploaded_by=user,
                )
                for item in evidence
            ]
        )

    @staticmethod
    def _transition(dispute: Dispute, name: str, **kwargs) -> None:
        try:
            getattr(dispute, name)(**kwargs)
        except TransitionNotAllowed:
            raise DisputeValidationError(
                f"Cannot {name} a dispute in status {dispute.status}",
                error_code="INVALID_DISPUTE_STATUS",
                details={"dispute_id": str(dispute.id), "status": dispute.status},
            )


dispute_resolver = DisputeResolver()
