"""
Dispute models.

A dispute is raised by one party of a booking against the other. An admin
reviews it and resolves it by refunding the client, paying the vendor or
splitting the escrow; the resolved dispute is then closed.

Models:
    Dispute: The dispute and its resolution
    DisputeEvidence: Evidence attached by either party
    DisputeMessage: Conversation between the parties and admins
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class DisputeStatus(models.TextChoices):
    """
    Dispute lifecycle states.

    State Flow:
        OPEN -> IN_REVIEW -> RESOLVED -> CLOSED
        OPEN -> RESOLVED
    """

    OPEN = "open", "Open"
    IN_REVIEW = "in_review", "In Review"
    RESOLVED = "resolved", "Resolved"
    CLOSED = "closed", "Closed"


ACTIVE_DISPUTE_STATUSES = (DisputeStatus.OPEN, DisputeStatus.IN_REVIEW)


class DisputeCategory(models.TextChoices):
    SERVICE_QUALITY = "service_quality", "Service Quality"
    PAYMENT = "payment", "Payment"
    CANCELLATION = "cancellation", "Cancellation"
    COMMUNICATION = "communication", "Communication"
    OTHER = "other", "Other"


class DisputePriority(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    URGENT = "urgent", "Urgent"


class DisputeResolution(models.TextChoices):
    REFUND_CLIENT = "refund_client", "Refund Client"
    PAY_VENDOR = "pay_vendor", "Pay Vendor"
    PARTIAL_REFUND = "partial_refund", "Partial Refund"


class EvidenceType(models.TextChoices):
    TEXT = "text", "Text"
    IMAGE = "image", "Image"
    DOCUMENT = "document", "Document"


class Dispute(UUIDPrimaryKeyMixin, BaseModel):
    """
    A disagreement over one booking.

    A booking has at most one open or in-review dispute, enforced by the
    service and by a partial unique constraint.

    Fields:
        booking: Disputed booking
        raised_by / against: The two parties
        status: FSM-protected lifecycle state
        resolution: How the escrow was settled
        refund_amount / vendor_payment_amount: Settlement amounts
        assigned_to: Admin reviewing the dispute
    """

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="disputes",
        help_text="Disputed booking",
    )
    raised_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="disputes_raised",
        help_text="Party who raised the dispute",
    )
    against = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="disputes_against",
        help_text="The other party",
    )

    reason = models.CharField(max_length=200)
    description = models.TextField()
    category = models.CharField(
        max_length=30,
        choices=DisputeCategory.choices,
        default=DisputeCategory.OTHER,
    )
    priority = models.CharField(
        max_length=10,
        choices=DisputePriority.choices,
        default=DisputePriority.MEDIUM,
        db_index=True,
    )

    status = FSMField(
        default=DisputeStatus.OPEN,
        choices=DisputeStatus.choices,
        protected=True,
        db_index=True,
    )

    resolution = models.CharField(max_length=20, choices=DisputeResolution.choices, blank=True)
    resolution_details = models.TextField(blank=True)
    refund_amount = models.PositiveBigIntegerField(null=True, blank=True)
    vendor_payment_amount = models.PositiveBigIntegerField(null=True, blank=True)

    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="disputes_assigned",
        help_text="Admin reviewing the dispute",
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    closed_at = models.DateTimeField(null=True, blank=True)
    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "dispute"
        verbose_name_plural = "disputes"
        indexes = [
            models.Index(fields=["status", "priority"]),
            models.Index(fields=["raised_by", "status"]),
            models.Index(fields=["against", "status"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["booking"],
                condition=models.Q(status__in=ACTIVE_DISPUTE_STATUSES),
                name="unique_active_dispute_per_booking",
            ),
        ]

    def __str__(self) -> str:
        return f"Dispute({self.id}, {self.status})"

    def is_party(self, user) -> bool:
        return user.id in (self.raised_by_id, self.against_id)

    @property
    def is_settled(self) -> bool:
        return self.status in (DisputeStatus.RESOLVED, DisputeStatus.CLOSED)

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source=DisputeStatus.OPEN, target=DisputeStatus.IN_REVIEW)
    def start_review(self, assigned_to):
        self.assigned_to = assigned_to
        self.reviewed_at = timezone.now()

    @transition(
        field=status,
        source=[DisputeStatus.OPEN, DisputeStatus.IN_REVIEW],
        target=DisputeStatus.RESOLVED,
    )
    def resolve(
        self,
        resolution: str,
        resolved_by,
        details: str = "",
        refund_amount: int | None = None,
        vendor_payment_amount: int | None = None,
    ):
        """
        Record the settlement. Terminal apart from closing.

        Transition: OPEN | IN_REVIEW -> RESOLVED
        """
        self.resolution = resolution
        self.resolution_details = details
        self.refund_amount = refund_amount
        self.vendor_payment_amount = vendor_payment_amount
        self.resolved_by = resolved_by
        self.resolved_at = timezone.now()

    @transition(field=status, source=DisputeStatus.RESOLVED, target=DisputeStatus.CLOSED)
    def close(self, closed_by):
        self.closed_by = closed_by
        self.closed_at = timezone.now()


class DisputeEvidence(models.Model):
    """Evidence attached to a dispute; never edited."""

    dispute = models.ForeignKey(Dispute, on_delete=models.CASCADE, related_name="evidence")
    type = models.CharField(max_length=10, choices=EvidenceType.choices, default=EvidenceType.TEXT)
    content = models.TextField(help_text="Text, or the URL of an uploaded file")
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="+",
    )
    uploaded_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["uploaded_at"]
        verbose_name = "dispute evidence"
        verbose_name_plural = "dispute evidence"


class DisputeMessage(models.Model):
    dispute = models.ForeignKey(Dispute, on_delete=models.CASCADE, related_name="messages")
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="+",
    )
    message = models.TextField()
    attachments = models.JSONField(default=list, blank=True, help_text="Attachment URLs")
    sent_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["sent_at"]
