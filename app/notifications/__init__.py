"""
Notifications app for in-app and e-mail notification delivery.

This app provides:
- Notification model for storing user notifications
- NotificationService, the notification sink used by contracts and payments
- Celery task for async e-mail delivery

Usage:
    from notifications.services import NotificationService

    result = NotificationService.notify(
        user_id=tenant.id,
        title="Rent overdue",
        message="Your rent for Apartment 12 is overdue.",
        idempotency_key=f"{order.id}:overdue",
    )

    if result.success:
        notification = result.data
"""
