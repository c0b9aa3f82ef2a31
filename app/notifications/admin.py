"""
Django admin configuration for notification models.
"""

from django.contrib import admin

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """
    Admin configuration for Notification.

    Provides read-only view of notifications for debugging and support.
    """

    list_display = [
        "id",
        "recipient",
        "title",
        "delivery_status",
        "is_read",
        "created_at",
    ]
    list_filter = ["delivery_status", "is_read", "created_at"]
    search_fields = ["title", "recipient__email", "idempotency_key"]
    raw_id_fields = ["recipient"]
    readonly_fields = [
        "id",
        "idempotency_key",
        "data",
        "sent_at",
        "attempt_count",
        "failure_reason",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
