"""
Notification models.

This module defines the Notification model: one message to one user,
persisted for the in-app inbox and delivered by e-mail from a Celery task.

Design Decisions:
    - Notification inherits from BaseModel (timestamps, ordering)
    - idempotency_key is unique when set, so a side effect enqueued twice
      (webhook redelivery, task retry) produces one notification
    - Delivery status lives on the notification itself (single channel)

Usage:
    from notifications.models import Notification

    Notification.objects.filter(recipient=user, is_read=False)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class DeliveryStatus(models.TextChoices):
    """
    Status of the e-mail delivery of a notification.

    State Flow:
        PENDING -> SENT
        PENDING -> FAILED (retries exhausted)
        PENDING -> SKIPPED (recipient has no e-mail address)
    """

    PENDING = "pending", "Pending"
    SENT = "sent", "Sent"
    FAILED = "failed", "Failed"
    SKIPPED = "skipped", "Skipped"


class Notification(UUIDPrimaryKeyMixin, BaseModel):
    """
    A notification sent to a user.

    Fields:
        recipient: User receiving the notification
        title: Short headline
        message: Body text
        action_link: Absolute link to the relevant screen
        data: Arbitrary context (entity ids, amounts)
        idempotency_key: Dedupe key, unique when set
        is_read: Whether the recipient opened it
        delivery_status: E-mail delivery status
        sent_at: When the e-mail was handed to the mail backend
        attempt_count: E-mail delivery attempts
        failure_reason: Last delivery error
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User receiving this notification",
    )

    title = models.CharField(
        max_length=255,
        help_text="Notification headline",
    )

    message = models.TextField(
        help_text="Notification body",
    )

    action_link = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Link to the screen this notification refers to",
    )

    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary context data (entity ids, amounts)",
    )

    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Idempotency key to prevent duplicate notifications",
    )

    is_read = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether recipient has read this notification",
    )

    # ==========================================================================
    # Delivery
    # ==========================================================================

    delivery_status = models.CharField(
        max_length=20,
        choices=DeliveryStatus.choices,
        default=DeliveryStatus.PENDING,
        db_index=True,
        help_text="E-mail delivery status",
    )

    sent_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the e-mail was sent",
    )

    attempt_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of e-mail delivery attempts",
    )

    failure_reason = models.TextField(
        blank=True,
        default="",
        help_text="Last delivery error",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["idempotency_key"],
                name="notif_idempotency_key_unique",
                condition=models.Q(idempotency_key__isnull=False),
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return f"Notification({self.title}) -> User {self.recipient_id} [{read_status}]"
