"""
Bookings models.

This module defines:
- Service: The bookable catalogue entry (only what booking creation needs)
- Booking: A client's booking of a vendor, with its FSM-managed status
- BookingStatusChange: Append-only status history

Related files:
    - services.py: BookingLifecycleManager, the only writer of Booking.status
    - pricing.py: Distance charge calculation
    - payments/services/escrow_ledger.py: Writes Booking.payment_status

Usage:
    from bookings.models import Booking, BookingStatus

    upcoming = Booking.objects.filter(vendor=vendor, status=BookingStatus.ACCEPTED)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class BookingStatus(models.TextChoices):
    """
    Booking lifecycle states.

    Terminal states: COMPLETED, CANCELLED

    State Flow:
        PENDING -> ACCEPTED -> IN_PROGRESS -> COMPLETED
        ACCEPTED -> COMPLETED (both parties confirm without a start)
        PENDING -> CANCELLED (vendor rejects)
        PENDING/ACCEPTED/IN_PROGRESS -> CANCELLED
    """

    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.ACCEPTED,
    BookingStatus.IN_PROGRESS,
)


class BookingType(models.TextChoices):
    STANDARD = "standard", "Standard"
    OFFER_BASED = "offer_based", "Offer Based"


class BookingPaymentStatus(models.TextChoices):
    """Escrow outcome as seen from the booking; written by EscrowLedger."""

    PENDING = "pending", "Pending"
    ESCROWED = "escrowed", "Escrowed"
    RELEASED = "released", "Released"
    REFUNDED = "refunded", "Refunded"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially Refunded"


class Service(UUIDPrimaryKeyMixin, BaseModel):
    """
    A vendor's bookable service.

    Fields:
        vendor: Vendor offering the service
        base_price: Price in whole currency units before distance charges
        duration_minutes: Expected duration
        bookings_count / completed_bookings_count: Counters updated with F()
    """

    vendor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="services",
        help_text="Vendor offering this service",
    )
    name = models.CharField(max_length=150, help_text="Service name")
    description = models.TextField(blank=True, help_text="Service description")
    base_price = models.PositiveBigIntegerField(help_text="Price in whole currency units")
    duration_minutes = models.PositiveIntegerField(default=60, help_text="Expected duration")
    is_active = models.BooleanField(default=True, help_text="Inactive services cannot be booked")

    bookings_count = models.PositiveIntegerField(default=0, help_text="Bookings created")
    completed_bookings_count = models.PositiveIntegerField(default=0, help_text="Bookings completed")

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "service"
        verbose_name_plural = "services"

    def __str__(self) -> str:
        return self.name


class Booking(UUIDPrimaryKeyMixin, BaseModel):
    """
    A client's booking of a vendor.

    Status is managed by django-fsm and changed only by
    BookingLifecycleManager, which also appends a BookingStatusChange
    for every transition.

    Fields:
        booking_type: Standard (catalogue price) or offer-based (agreed price)
        client / vendor / service: Parties and what was booked
        scheduled_date / scheduled_time: Appointment
        address ... longitude: Where a home service takes place
        service_price + distance_charge = total_amount
        client_marked_complete / vendor_marked_complete: Dual confirmation flags
        payment_status: Escrow outcome, written by EscrowLedger
        payment_reference: Reference of the latest checkout
    """

    booking_type = models.CharField(
        max_length=20,
        choices=BookingType.choices,
        default=BookingType.STANDARD,
        help_text="How the price was set",
    )

    # ==========================================================================
    # Parties
    # ==========================================================================

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="client_bookings",
        help_text="Client who booked",
    )
    vendor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="vendor_bookings",
        help_text="Vendor who delivers the service",
    )
    service = models.ForeignKey(
        Service,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="bookings",
        help_text="Booked service (optional for offer-based bookings)",
    )
    offer_reference = models.CharField(
        max_length=64,
        blank=True,
        help_text="Accepted offer this booking came from",
    )

    # ==========================================================================
    # Schedule & Location
    # ==========================================================================

    scheduled_date = models.DateField(help_text="Appointment date")
    scheduled_time = models.CharField(max_length=10, blank=True, help_text="Appointment time (HH:MM)")
    duration_minutes = models.PositiveIntegerField(default=60, help_text="Expected duration")

    address = models.CharField(max_length=255, blank=True, help_text="Service address")
    city = models.CharField(max_length=100, blank=True, help_text="City")
    state = models.CharField(max_length=100, blank=True, help_text="State")
    latitude = models.FloatField(null=True, blank=True, help_text="Service latitude")
    longitude = models.FloatField(null=True, blank=True, help_text="Service longitude")

    # ==========================================================================
    # Pricing
    # ==========================================================================

    service_price = models.PositiveBigIntegerField(help_text="Service price in whole currency units")
    distance_km = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Vendor to client distance (home service only)",
    )
    distance_charge = models.PositiveBigIntegerField(default=0, help_text="Travel charge")
    total_amount = models.PositiveBigIntegerField(help_text="service_price + distance_charge")

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=BookingStatus.PENDING,
        choices=BookingStatus.choices,
        db_index=True,
        protected=True,
        help_text="Booking state (managed by FSM)",
    )

    client_marked_complete = models.BooleanField(default=False, help_text="Client confirmed completion")
    vendor_marked_complete = models.BooleanField(default=False, help_text="Vendor confirmed completion")
    completed_by = models.CharField(max_length=10, blank=True, help_text="Who completed it ('both')")

    payment_status = models.CharField(
        max_length=20,
        choices=BookingPaymentStatus.choices,
        default=BookingPaymentStatus.PENDING,
        db_index=True,
        help_text="Escrow outcome for this booking",
    )
    payment_reference = models.CharField(max_length=64, blank=True, help_text="Latest payment reference")

    # ==========================================================================
    # Timestamps & Cancellation
    # ==========================================================================

    accepted_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="cancelled_bookings",
        help_text="Party who cancelled or rejected",
    )
    cancellation_reason = models.TextField(blank=True, help_text="Why the booking was cancelled")

    has_dispute = models.BooleanField(default=False, help_text="A dispute was raised on this booking")
    client_notes = models.TextField(blank=True, help_text="Notes from the client")
    vendor_notes = models.TextField(blank=True, help_text="Notes from the vendor")

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "booking"
        verbose_name_plural = "bookings"
        indexes = [
            models.Index(fields=["client", "status"]),
            models.Index(fields=["vendor", "status"]),
            models.Index(fields=["scheduled_date"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_amount=F("service_price") + F("distance_charge")),
                name="booking_total_matches_price",
            ),
        ]

    def __str__(self) -> str:
        return f"Booking({self.id}, {self.status})"

    def is_party(self, user) -> bool:
        return user is not None and user.pk in (self.client_id, self.vendor_id)

    @property
    def is_terminal(self) -> bool:
        return self.status in (BookingStatus.COMPLETED, BookingStatus.CANCELLED)

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source=BookingStatus.PENDING, target=BookingStatus.ACCEPTED)
    def accept(self):
        self.accepted_at = timezone.now()

    @transition(field=status, source=BookingStatus.PENDING, target=BookingStatus.CANCELLED)
    def reject(self, rejected_by=None, reason: str = ""):
        """
        Vendor declines the booking.

        Transition: PENDING -> CANCELLED
        """
        now = timezone.now()
        self.rejected_at = now
        self.cancelled_at = now
        self.cancelled_by = rejected_by
        self.cancellation_reason = reason

    @transition(field=status, source=BookingStatus.ACCEPTED, target=BookingStatus.IN_PROGRESS)
    def start(self):
        self.started_at = timezone.now()

    @transition(
        field=status,
        source=[BookingStatus.ACCEPTED, BookingStatus.IN_PROGRESS],
        target=BookingStatus.COMPLETED,
    )
    def complete(self):
        """
        Both parties confirmed.

        Transition: ACCEPTED/IN_PROGRESS -> COMPLETED
        """
        self.completed_at = timezone.now()
        self.completed_by = "both"

    @transition(field=status, source=list(ACTIVE_BOOKING_STATUSES), target=BookingStatus.CANCELLED)
    def cancel(self, cancelled_by=None, reason: str = ""):
        """
        Either party cancels.

        Transition: PENDING/ACCEPTED/IN_PROGRESS -> CANCELLED
        """
        self.cancelled_at = timezone.now()
        self.cancelled_by = cancelled_by
        self.cancellation_reason = reason


class BookingStatusChange(models.Model):
    """
    One row per booking status change; never updated or deleted.

    Fields:
        booking: Booking that changed
        status: Status entered
        changed_at: When it changed
        changed_by: Actor (null for system changes)
        reason: Optional reason
    """

    booking = models.ForeignKey(
        Booking,
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    status = models.CharField(max_length=20, choices=BookingStatus.choices)
    changed_at = models.DateTimeField(default=timezone.now, db_index=True)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    reason = models.TextField(blank=True)

    class Meta:
        ordering = ["changed_at", "id"]
        verbose_name = "booking status change"
        verbose_name_plural = "booking status changes"

    def __str__(self) -> str:
        return f"{self.booking_id} -> {self.status}"
