"""
Booking lifecycle service.

BookingLifecycleManager is the only writer of Booking.status. Every
transition follows the same shape:

    1. Lock the booking row (select_for_update) inside cls.atomic()
    2. Run the guards (party check, source status, escrow state)
    3. Apply the django-fsm transition and save with update_fields
    4. Append a BookingStatusChange row
    5. Settle escrow where the transition requires it (refund on
       reject/cancel, release on completion); an active dispute blocks
       cancellation and defers the completion release to its resolution
    6. Notify the other party

A failed guard raises before anything is written, and a refund or release
failure rolls back the booking transition with it.

Usage:
    from bookings.services import booking_lifecycle

    booking = booking_lifecycle.create_booking(client, service.id, scheduled_date=date(2026, 11, 2))
    booking = booking_lifecycle.accept(booking.id, vendor)
    booking_lifecycle.mark_complete(booking.id, client, role="client")
    booking_lifecycle.mark_complete(booking.id, vendor, role="vendor")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import transaction
from django.db.models import Count, F, Q

from accounts.models import VendorProfile
from bookings import pricing
from bookings.exceptions import (
    BookingConflictError,
    BookingNotFoundError,
    BookingPermissionError,
    BookingValidationError,
)
from bookings.models import (
    Booking,
    BookingPaymentStatus,
    BookingStatus,
    BookingStatusChange,
    BookingType,
    Service,
)
from core.exceptions import BaseApplicationError
from core.services import BaseService
from notifications.models import NotificationType
from notifications.services import notification_dispatcher

if TYPE_CHECKING:
    import datetime
    import uuid

    from django.db.models import QuerySet

    from accounts.models import User


CLIENT = "client"
VENDOR = "vendor"


class BookingLifecycleManager(BaseService):
    """
    Creates bookings and drives them through their lifecycle.

    Methods:
        create_booking / create_offer_booking: New pending bookings
        accept / reject / start: Vendor actions
        mark_complete: Dual confirmation, releases escrow when both agree
        cancel: Either party, refunds escrow
        get_booking / list_bookings / booking_stats / update_notes
    """

    # =========================================================================
    # Creation
    # =========================================================================

    @classmethod
    def create_booking(
        cls,
        client: User,
        service_id: uuid.UUID,
        scheduled_date: datetime.date,
        scheduled_time: str = "",
        address: str = "",
        city: str = "",
        state: str = "",
        latitude: float | None = None,
        longitude: float | None = None,
        client_notes: str = "",
    ) -> Booking:
        """
        Book a vendor's service at its catalogue price.

        Home-service vendors need the client's coordinates; the distance
        charge is added when the vendor has a stored location.

        Raises:
            BookingNotFoundError: Service missing or inactive
            BookingValidationError: Vendor unverified, location missing,
                or the client is booking their own service
        """
        try:
            service = Service.objects.select_related("vendor").get(id=service_id, is_active=True)
        except Service.DoesNotExist:
            raise BookingNotFoundError(
                "Service not found or not available",
                error_code="SERVICE_NOT_FOUND",
                details={"service_id": str(service_id)},
            )

        vendor = service.vendor
        profile = cls._get_verified_profile(vendor)

        if vendor.id == client.id:
            raise BookingValidationError("You cannot book your own service")

        if profile.offers_home_service and (latitude is None or longitude is None):
            raise BookingValidationError(
                "Location is required for home service",
                error_code="LOCATION_REQUIRED",
            )

        if profile.offers_home_service:
            booking_quote = pricing.quote(service.base_price, profile, latitude, longitude)
        else:
            booking_quote = pricing.quote(service.base_price)

        with cls.atomic():
            booking = Booking.objects.create(
                booking_type=BookingType.STANDARD,
                client=client,
                vendor=vendor,
                service=service,
                scheduled_date=scheduled_date,
                scheduled_time=scheduled_time,
                duration_minutes=service.duration_minutes,
                address=address,
                city=city,
                state=state,
                latitude=latitude,
                longitude=longitude,
                service_price=booking_quote.service_price,
                distance_km=booking_quote.distance_km,
                distance_charge=booking_quote.distance_charge,
                total_amount=booking_quote.total_amount,
                client_notes=client_notes,
            )
            cls._record_status(booking, client)
            Service.objects.filter(id=service.id).update(bookings_count=F("bookings_count") + 1)

            notification_dispatcher.notify(
                vendor,
                NotificationType.BOOKING_CREATED,
                data=cls._notice_data(booking),
                idempotency_key=f"booking_created:{booking.id}",
            )

        cls.get_logger().info(
            "Booking created",
            extra={
                "booking_id": str(booking.id),
                "client_id": str(client.id),
                "vendor_id": str(vendor.id),
                "total_amount": booking.total_amount,
                "distance_charge": booking.distance_charge,
            },
        )
        return booking

    @classmethod
    def create_offer_booking(
        cls,
        client: User,
        vendor: User,
        agreed_price: int,
        scheduled_date: datetime.date,
        scheduled_time: str = "",
        duration_minutes: int = 60,
        service_id: uuid.UUID | None = None,
        offer_reference: str = "",
        address: str = "",
        city: str = "",
        state: str = "",
        latitude: float | None = None,
        longitude: float | None = None,
        client_notes: str = "",
    ) -> Booking:
        """
        Create a booking at a price the client and vendor negotiated.

        Travel is already part of the agreed price, so no distance charge
        is added.

        Raises:
            BookingValidationError: Non-positive price, unverified vendor
            BookingNotFoundError: service_id given but not the vendor's
        """
        if agreed_price is None or agreed_price <= 0:
            raise BookingValidationError(
                "Agreed price must be greater than zero",
                details={"agreed_price": agreed_price},
            )
        cls._get_verified_profile(vendor)
        if vendor.id == client.id:
            raise BookingValidationError("You cannot book yourself")

        service = None
        if service_id is not None:
            service = Service.objects.filter(id=service_id, vendor=vendor).first()
            if service is None:
                raise BookingNotFoundError(
                    "Service not found",
                    error_code="SERVICE_NOT_FOUND",
                    details={"service_id": str(service_id)},
                )

        with cls.atomic():
            booking = Booking.objects.create(
                booking_type=BookingType.OFFER_BASED,
                client=client,
                vendor=vendor,
                service=service,
                offer_reference=offer_reference,
                scheduled_date=scheduled_date,
                scheduled_time=scheduled_time,
                duration_minutes=duration_minutes,
                address=address,
                city=city,
                state=state,
                latitude=latitude,
                longitude=longitude,
                service_price=agreed_price,
                distance_charge=0,
                total_amount=agreed_price,
                client_notes=client_notes,
            )
            cls._record_status(booking, client)
            if service is not None:
                Service.objects.filter(id=service.id).update(bookings_count=F("bookings_count") + 1)

            notification_dispatcher.notify(
                vendor,
                NotificationType.BOOKING_CREATED,
                data=cls._notice_data(booking),
                idempotency_key=f"booking_created:{booking.id}",
            )

        cls.get_logger().info(
            "Offer booking created",
            extra={
                "booking_id": str(booking.id),
                "offer_reference": offer_reference,
                "total_amount": agreed_price,
            },
        )
        return booking

    # =========================================================================
    # Vendor actions
    # =========================================================================

    @classmethod
    def accept(cls, booking_id: uuid.UUID, vendor: User) -> Booking:
        """
        Accept a paid, pending booking.

        Raises:
            BookingNotFoundError: Unknown booking
            BookingPermissionError: Caller is not the booking's vendor
            BookingValidationError: Not pending, or payment not in escrow
        """
        with cls.atomic():
            booking = cls._get_locked(booking_id)
            if booking.vendor_id != vendor.id:
                raise BookingPermissionError("You can only accept your own bookings")
            cls._require_status(booking, (BookingStatus.PENDING,), "Only pending bookings can be accepted")
            if booking.payment_status != BookingPaymentStatus.ESCROWED:
                raise BookingValidationError(
                    "Payment must be completed before accepting",
                    error_code="PAYMENT_NOT_ESCROWED",
                    details={"payment_status": booking.payment_status},
                )

            booking.accept()
            booking.save(update_fields=["status", "accepted_at", "updated_at"])
            cls._record_status(booking, vendor)

            notification_dispatcher.notify(
                booking.client,
                NotificationType.BOOKING_ACCEPTED,
                data=cls._notice_data(booking),
                idempotency_key=f"booking_accepted:{booking.id}",
            )

        cls.get_logger().info("Booking accepted", extra={"booking_id": str(booking.id)})
        return booking

    @classmethod
    def reject(cls, booking_id: uuid.UUID, vendor: User, reason: str = "") -> Booking:
        """
        Decline a pending booking and refund any escrowed payment.

        Raises:
            BookingNotFoundError: Unknown booking
            BookingPermissionError: Caller is not the booking's vendor
            BookingValidationError: Booking is not pending
        """
        reason = reason or "Rejected by vendor"

        with cls.atomic():
            booking = cls._get_locked(booking_id)
            if booking.vendor_id != vendor.id:
                raise BookingPermissionError("You can only reject your own bookings")
            cls._require_status(booking, (BookingStatus.PENDING,), "Only pending bookings can be rejected")

            booking.reject(rejected_by=vendor, reason=reason)
            booking.save(
                update_fields=[
                    "status",
                    "rejected_at",
                    "cancelled_at",
                    "cancelled_by",
                    "cancellation_reason",
                    "updated_at",
                ]
            )
            cls._record_status(booking, vendor, reason)
            cls._refund_if_escrowed(booking, vendor, reason)

            notification_dispatcher.notify(
                booking.client,
                NotificationType.BOOKING_REJECTED,
                data={**cls._notice_data(booking), "reason": reason},
                idempotency_key=f"booking_rejected:{booking.id}",
            )

        cls.get_logger().info(
            "Booking rejected",
            extra={"booking_id": str(booking.id), "reason": reason},
        )
        return cls._reload(booking)

    @classmethod
    def start(cls, booking_id: uuid.UUID, vendor: User) -> Booking:
        """
        Mark an accepted booking as in progress.

        Raises:
            BookingNotFoundError: Unknown booking
            BookingPermissionError: Caller is not the booking's vendor
            BookingValidationError: Booking is not accepted
        """
        with cls.atomic():
            booking = cls._get_locked(booking_id)
            if booking.vendor_id != vendor.id:
                raise BookingPermissionError("Only the vendor can start this booking")
            cls._require_status(booking, (BookingStatus.ACCEPTED,), "Only accepted bookings can be started")

            booking.start()
            booking.save(update_fields=["status", "started_at", "updated_at"])
            cls._record_status(booking, vendor)

            notification_dispatcher.notify(
                booking.client,
                NotificationType.BOOKING_STARTED,
                data=cls._notice_data(booking),
                idempotency_key=f"booking_started:{booking.id}",
            )

        cls.get_logger().info("Booking started", extra={"booking_id": str(booking.id)})
        return booking

    # =========================================================================
    # Completion & cancellation
    # =========================================================================

    @classmethod
    def mark_complete(cls, booking_id: uuid.UUID, user: User, role: str) -> Booking:
        """
        Record one party's confirmation that the service was delivered.

        When both flags are set the booking completes: counters are bumped,
        the escrowed payment is released to the vendor unless an active
        dispute holds it, and the client's pending referral is rewarded.
        Repeating a confirmation is a no-op.

        Args:
            booking_id: Booking to confirm
            user: Confirming user
            role: "client" or "vendor"; must match the user's side

        Raises:
            BookingNotFoundError: Unknown booking
            BookingPermissionError: user is not the booking's party for role
            BookingValidationError: Unknown role, or booking not accepted/in progress
        """
        from payments.services import escrow_ledger

        if role not in (CLIENT, VENDOR):
            raise BookingValidationError(
                "Role must be 'client' or 'vendor'",
                details={"role": role},
            )

        logger = cls.get_logger()

        with cls.atomic():
            booking = cls._get_locked(booking_id)
            party_id = booking.client_id if role == CLIENT else booking.vendor_id
            if party_id != user.id:
                raise BookingPermissionError("Not authorized")
            cls._require_status(
                booking,
                (BookingStatus.ACCEPTED, BookingStatus.IN_PROGRESS),
                "Only accepted or in-progress bookings can be completed",
            )

            flag = "client_marked_complete" if role == CLIENT else "vendor_marked_complete"
            if getattr(booking, flag):
                return booking

            setattr(booking, flag, True)
            update_fields = [flag, "updated_at"]

            if not (booking.client_marked_complete and booking.vendor_marked_complete):
                booking.save(update_fields=update_fields)
                other = booking.vendor if role == CLIENT else booking.client
                notification_dispatcher.notify(
                    other,
                    NotificationType.BOOKING_MARKED_COMPLETE,
                    data={**cls._notice_data(booking), "marked_by": role},
                    idempotency_key=f"booking_marked_complete:{booking.id}:{role}",
                )
                logger.info(
                    "Booking marked complete",
                    extra={"booking_id": str(booking.id), "role": role},
                )
                return booking

            booking.complete()
            booking.save(update_fields=[*update_fields, "status", "completed_at", "completed_by"])
            cls._record_status(booking, user)

            if booking.service_id:
                Service.objects.filter(id=booking.service_id).update(
                    completed_bookings_count=F("completed_bookings_count") + 1
                )
            VendorProfile.objects.filter(user_id=booking.vendor_id).update(
                completed_bookings=F("completed_bookings") + 1
            )

            # An active dispute settles the escrow when it is resolved
            if booking.payment_status == BookingPaymentStatus.ESCROWED and not cls._has_active_dispute(booking):
                escrow_ledger.release_payment(booking.id)

            cls._trigger_referral_reward(booking)

            for party in (booking.client, booking.vendor):
                notification_dispatcher.notify(
                    party,
                    NotificationType.BOOKING_COMPLETED,
                    data=cls._notice_data(booking),
                    idempotency_key=f"booking_completed:{booking.id}:{party.id}",
                )

        logger.info("Booking completed", extra={"booking_id": str(booking.id)})
        return cls._reload(booking)

    @classmethod
    def cancel(cls, booking_id: uuid.UUID, user: User, reason: str = "") -> Booking:
        """
        Cancel an active booking and refund any escrowed payment.

        Raises:
            BookingNotFoundError: Unknown booking
            BookingPermissionError: user is not a party
            BookingValidationError: Booking already completed or cancelled
            BookingConflictError: An open or in-review dispute exists
        """
        with cls.atomic():
            booking = cls._get_locked(booking_id)
            if not booking.is_party(user):
                raise BookingPermissionError("Not authorized to cancel this booking")
            if booking.is_terminal:
                raise BookingValidationError(
                    "Cannot cancel completed or already cancelled bookings",
                    error_code="INVALID_BOOKING_STATUS",
                    details={"status": booking.status},
                )
            if cls._has_active_dispute(booking):
                raise BookingConflictError(
                    "Bookings with an active dispute cannot be cancelled",
                    details={"booking_id": str(booking.id)},
                )

            booking.cancel(cancelled_by=user, reason=reason)
            booking.save(
                update_fields=[
                    "status",
                    "cancelled_at",
                    "cancelled_by",
                    "cancellation_reason",
                    "updated_at",
                ]
            )
            cls._record_status(booking, user, reason)
            cls._refund_if_escrowed(booking, user, reason or "Booking cancelled")

            other = booking.vendor if user.id == booking.client_id else booking.client
            notification_dispatcher.notify(
                other,
                NotificationType.BOOKING_CANCELLED,
                data={**cls._notice_data(booking), "reason": reason},
                idempotency_key=f"booking_cancelled:{booking.id}",
            )

        cls.get_logger().info(
            "Booking cancelled",
            extra={"booking_id": str(booking.id), "cancelled_by": str(user.id)},
        )
        return cls._reload(booking)

    # =========================================================================
    # Reads & notes
    # =========================================================================

    @classmethod
    def get_booking(cls, booking_id: uuid.UUID, user: User) -> Booking:
        """
        A booking visible to its parties and platform admins.

        Raises:
            BookingNotFoundError: Unknown booking
            BookingPermissionError: user may not view it
        """
        try:
            booking = (
                Booking.objects.select_related("client", "vendor", "service")
                .prefetch_related("status_history")
                .get(id=booking_id)
            )
        except Booking.DoesNotExist:
            raise BookingNotFoundError(
                "Booking not found",
                details={"booking_id": str(booking_id)},
            )
        if not (booking.is_party(user) or user.is_platform_admin):
            raise BookingPermissionError("Not authorized to view this booking")
        return booking

    @classmethod
    def list_bookings(
        cls,
        user: User,
        role: str | None = None,
        status: str | None = None,
        start_date: datetime.date | None = None,
        end_date: datetime.date | None = None,
    ) -> QuerySet[Booking]:
        """Bookings where user is the client, the vendor, or either when role is None."""
        if role == CLIENT:
            queryset = Booking.objects.filter(client=user)
        elif role == VENDOR:
            queryset = Booking.objects.filter(vendor=user)
        else:
            queryset = Booking.objects.filter(Q(client=user) | Q(vendor=user))

        if status:
            queryset = queryset.filter(status=status)
        if start_date:
            queryset = queryset.filter(scheduled_date__gte=start_date)
        if end_date:
            queryset = queryset.filter(scheduled_date__lte=end_date)

        return queryset.select_related("client", "vendor", "service").order_by("-created_at")

    @classmethod
    def booking_stats(cls, user: User, role: str = CLIENT) -> dict[str, int]:
        """Booking counts per status for one side of the marketplace."""
        queryset = Booking.objects.filter(vendor=user) if role == VENDOR else Booking.objects.filter(client=user)
        counts = queryset.aggregate(
            total=Count("id"),
            pending=Count("id", filter=Q(status=BookingStatus.PENDING)),
            accepted=Count("id", filter=Q(status=BookingStatus.ACCEPTED)),
            in_progress=Count("id", filter=Q(status=BookingStatus.IN_PROGRESS)),
            completed=Count("id", filter=Q(status=BookingStatus.COMPLETED)),
            cancelled=Count("id", filter=Q(status=BookingStatus.CANCELLED)),
        )
        return counts

    @classmethod
    def update_notes(
        cls,
        booking_id: uuid.UUID,
        user: User,
        client_notes: str | None = None,
        vendor_notes: str | None = None,
    ) -> Booking:
        """
        Update the caller's own notes; the other side's notes are ignored.

        Raises:
            BookingNotFoundError: Unknown booking
            BookingPermissionError: user is not a party
        """
        with cls.atomic():
            booking = cls._get_locked(booking_id)
            if not booking.is_party(user):
                raise BookingPermissionError("Not authorized")

            update_fields = ["updated_at"]
            if user.id == booking.client_id and client_notes is not None:
                booking.client_notes = client_notes
                update_fields.append("client_notes")
            if user.id == booking.vendor_id and vendor_notes is not None:
                booking.vendor_notes = vendor_notes
                update_fields.append("vendor_notes")
            booking.save(update_fields=update_fields)

        return booking

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _get_locked(booking_id: uuid.UUID) -> Booking:
        """Lock and return a booking. Call inside an atomic block."""
        try:
            return (
                Booking.objects.select_for_update(of=("self",))
                .select_related("client", "vendor", "service")
                .get(id=booking_id)
            )
        except Booking.DoesNotExist:
            raise BookingNotFoundError(
                "Booking not found",
                details={"booking_id": str(booking_id)},
            )

    @staticmethod
    def _reload(booking: Booking) -> Booking:
        # status is a protected FSM field, so refresh_from_db() cannot be used
        return Booking.objects.select_related("client", "vendor", "service").get(id=booking.id)

    @staticmethod
    def _get_verified_profile(vendor: User) -> VendorProfile:
        profile = getattr(vendor, "vendor_profile", None) if vendor.is_vendor else None
        if profile is None or not profile.is_verified:
            raise BookingValidationError(
                "Vendor is not available",
                error_code="VENDOR_UNAVAILABLE",
                details={"vendor_id": str(vendor.id)},
            )
        return profile

    @staticmethod
    def _require_status(booking: Booking, allowed: tuple[str, ...], message: str) -> None:
        if booking.status not in allowed:
            raise BookingValidationError(
                message,
                error_code="INVALID_BOOKING_STATUS",
                details={"status": booking.status},
            )

    @staticmethod
    def _record_status(booking: Booking, changed_by: User | None, reason: str = "") -> BookingStatusChange:
        return BookingStatusChange.objects.create(
            booking=booking,
            status=booking.status,
            changed_by=changed_by,
            reason=reason or "",
        )

    @staticmethod
    def _has_active_dispute(booking: Booking) -> bool:
        from disputes.models import ACTIVE_DISPUTE_STATUSES, Dispute

        return Dispute.objects.filter(booking=booking, status__in=ACTIVE_DISPUTE_STATUSES).exists()

    @staticmethod
    def _refund_if_escrowed(booking: Booking, refunded_by: User, reason: str) -> None:
        from payments.services import escrow_ledger

        if booking.payment_status == BookingPaymentStatus.ESCROWED:
            escrow_ledger.refund_payment(booking.id, refunded_by=refunded_by, reason=reason)

    @classmethod
    def _trigger_referral_reward(cls, booking: Booking) -> None:
        """
        Reward the client's pending referral in its own savepoint.

        A domain error here undoes only the reward work.
        """
        from referrals.services import referral_service

        try:
            with transaction.atomic():
                referral_service.on_booking_completed(booking)
        except BaseApplicationError as e:
            cls.get_logger().error(
                "Referral reward failed",
                extra={"booking_id": str(booking.id), "error_code": e.error_code},
                exc_info=True,
            )

    @staticmethod
    def _notice_data(booking: Booking) -> dict:
        return {
            "booking_id": str(booking.id),
            "service_name": booking.service.name if booking.service_id else "your service",
            "scheduled_date": str(booking.scheduled_date),
        }


booking_lifecycle = BookingLifecycleManager()
