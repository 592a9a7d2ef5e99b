"""Django admin configuration for bookings."""

from django.contrib import admin

from bookings.models import Booking, BookingStatusChange, Service


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ("name", "vendor", "base_price", "is_active", "bookings_count", "completed_bookings_count")
    list_filter = ("is_active",)
    search_fields = ("name", "vendor__email")
    raw_id_fields = ("vendor",)
    readonly_fields = ("bookings_count", "completed_bookings_count")


class BookingStatusChangeInline(admin.TabularInline):
    model = BookingStatusChange
    extra = 0
    can_delete = False
    readonly_fields = ("status", "changed_at", "changed_by", "reason")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """
    Bookings are read-only here; status and payment_status change only
    through BookingLifecycleManager and EscrowLedger.
    """

    list_display = (
        "id",
        "client",
        "vendor",
        "status",
        "payment_status",
        "total_amount",
        "scheduled_date",
        "has_dispute",
        "created_at",
    )
    list_filter = ("status", "payment_status", "booking_type", "has_dispute")
    search_fields = ("id", "client__email", "vendor__email", "payment_reference")
    raw_id_fields = ("client", "vendor", "service", "cancelled_by")
    inlines = [BookingStatusChangeInline]
    readonly_fields = (
        "status",
        "payment_status",
        "payment_reference",
        "service_price",
        "distance_km",
        "distance_charge",
        "total_amount",
        "client_marked_complete",
        "vendor_marked_complete",
        "completed_by",
        "accepted_at",
        "rejected_at",
        "started_at",
        "completed_at",
        "cancelled_at",
    )

    def has_delete_permission(self, request, obj=None):
        return False
