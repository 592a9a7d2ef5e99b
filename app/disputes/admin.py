"""Django admin configuration for disputes."""

from django.contrib import admin

from disputes.models import Dispute, DisputeEvidence, DisputeMessage


class DisputeEvidenceInline(admin.TabularInline):
    model = DisputeEvidence
    extra = 0
    readonly_fields = ("type", "content", "uploaded_by", "uploaded_at")
    can_delete = False


class DisputeMessageInline(admin.TabularInline):
    model = DisputeMessage
    extra = 0
    readonly_fields = ("sender", "message", "attachments", "sent_at")
    can_delete = False


@admin.register(Dispute)
class DisputeAdmin(admin.ModelAdmin):
    """
    Disputes are resolved through the API so the escrow settles with them;
    the admin only exposes triage fields.
    """

    list_display = ("id", "booking", "raised_by", "against", "category", "priority", "status", "created_at")
    list_filter = ("status", "priority", "category")
    search_fields = ("id", "reason", "raised_by__email", "against__email")
    raw_id_fields = ("booking", "raised_by", "against", "assigned_to", "resolved_by", "closed_by")
    readonly_fields = (
        "status",
        "resolution",
        "resolution_details",
        "refund_amount",
        "vendor_payment_amount",
        "reviewed_at",
        "resolved_at",
        "resolved_by",
        "closed_at",
        "closed_by",
    )
    inlines = [DisputeEvidenceInline, DisputeMessageInline]

    def has_delete_permission(self, request, obj=None):
        return False
