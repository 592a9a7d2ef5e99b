"""Django admin configuration for notifications."""

from django.contrib import admin

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("notification_type", "recipient", "title", "is_read", "email_sent_at", "created_at")
    list_filter = ("notification_type", "is_read")
    search_fields = ("recipient__email", "title")
    readonly_fields = (
        "recipient",
        "notification_type",
        "title",
        "body",
        "data",
        "idempotency_key",
        "email_sent_at",
        "created_at",
    )
