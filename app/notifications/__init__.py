"""
Notifications app for marketplace event notices.

This app provides:
- Notification model storing one rendered notice per recipient and event
- NotificationDispatcher.notify() used by the booking, payment, dispute and
  referral services
- A Celery task that emails the notice after the triggering transaction
  commits

Usage:
    from notifications.services import notification_dispatcher

    notification_dispatcher.notify(
        booking.vendor,
        NotificationType.BOOKING_CREATED,
        {"booking_id": str(booking.id)},
    )

Note:
    notify() never raises. A failed notification is logged and reported in
    the returned ServiceResult so it cannot undo a settled payment.
"""
