"""
WebhookEvent model for inbound webhook tracking.

Every delivery from the payment gateway or the e-signature provider is
stored before it is acknowledged, which makes the acknowledgement mean
"durably queued". The unique delivery_id detects redeliveries of the same
event; correctness under replay does not depend on it, since every state
change is also guarded by the entity's expected prior status.

Usage:
    from payments.models import WebhookEvent
    from payments.state_machines import WebhookSource

    event, created = WebhookEvent.objects.get_or_create(
        delivery_id="evt_05b708f961d739ea",
        defaults={
            "source": WebhookSource.PAYMENT_GATEWAY,
            "event_type": "PAYMENT_RECEIVED",
            "payload": payload,
        },
    )
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import WebhookEventStatus, WebhookSource

MAX_PROCESSING_ATTEMPTS = 5


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Durable record of one inbound webhook delivery.

    Processing Flow:
        1. View authenticates the sender
        2. Insert/get WebhookEvent by delivery_id
        3. If exists and PROCESSED -> return 200 (duplicate)
        4. Otherwise queue process_webhook_event after commit, return 200
        5. Task marks PROCESSING, dispatches to the handler registry
        6. Task marks PROCESSED or FAILED
        7. FAILED events are re-queued by a periodic task

    Fields:
        source: Payment gateway or e-signature provider
        delivery_id: Sender's event id, or SHA-256 of the raw body
        event_type: Event name used for handler dispatch
        payload: Full JSON payload
        status: Processing status
        processed_at: When event was successfully processed
        error_message: Error details if processing failed
        retry_count: Number of processing attempts
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    source = models.CharField(
        max_length=20,
        choices=WebhookSource.choices,
        db_index=True,
        help_text="External system that delivered the event",
    )

    delivery_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Sender event id or payload hash - unique for redelivery detection",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Event type used for handler dispatch (e.g. 'PAYMENT_RECEIVED')",
    )

    payload = models.JSONField(
        help_text="Full webhook payload (JSON)",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When event was successfully processed",
    )

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
            models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.source}, {self.event_type}, {self.delivery_id})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def can_retry(self) -> bool:
        """Check if event can be retried (failed with attempts left)."""
        return (
            self.status == WebhookEventStatus.FAILED
            and self.retry_count < MAX_PROCESSING_ATTEMPTS
        )

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def mark_processing(self) -> None:
        """
        Mark event as being processed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        """
        Mark event as successfully processed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        """
        Mark event as failed with error message.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message

    def section(self, key: str) -> dict:
        """
        Return a nested object of the payload (e.g. "payment", "transfer").

        Missing or non-object sections come back as an empty dict so
        handlers can validate required keys uniformly.
        """
        value = self.payload.get(key) if isinstance(self.payload, dict) else None
        return value if isinstance(value, dict) else {}
