"""
Celery tasks for notification delivery.

Tasks:
    send_email_notification: Deliver a notification by e-mail

Design:
    - Tasks receive notification_id (UUID string)
    - Each task updates the Notification delivery status
    - Tasks are idempotent: re-running on a non-PENDING notification is a no-op
    - SMTP and connection errors are retried with backoff; after the last
      attempt the notification is marked FAILED

Usage:
    from notifications.tasks import send_email_notification

    # Called automatically by NotificationService.notify() after commit
    send_email_notification.delay(notification_id="uuid-string")
"""

from __future__ import annotations

import logging
from smtplib import SMTPException

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone as django_timezone

from notifications.models import DeliveryStatus, Notification

logger = logging.getLogger(__name__)

MAX_EMAIL_RETRIES = 3


def _get_pending_notification(notification_id: str) -> Notification | None:
    """
    Fetch notification with its recipient.

    Returns None if not found or no longer PENDING.
    """
    try:
        notification = Notification.objects.select_related("recipient").get(id=notification_id)
    except Notification.DoesNotExist:
        logger.warning(f"Notification {notification_id} not found")
        return None

    if notification.delivery_status != DeliveryStatus.PENDING:
        logger.info(
            f"Notification {notification_id} status is {notification.delivery_status}, skipping"
        )
        return None
    return notification


def _render_body(notification: Notification) -> str:
    if notification.action_link:
        return f"{notification.message}\n\n{notification.action_link}"
    return notification.message


@shared_task(
    bind=True,
    autoretry_for=(SMTPException, ConnectionError),
    retry_backoff=True,
    retry_kwargs={"max_retries": MAX_EMAIL_RETRIES},
)
def send_email_notification(self, notification_id: str) -> bool:
    """
    Send a notification by e-mail.

    Flow:
        1. Fetch notification + recipient
        2. Skip if status != PENDING or no e-mail on recipient
        3. Send through the configured Django e-mail backend
        4. Update delivery status

    Returns:
        True if sent successfully or skipped
    """
    notification = _get_pending_notification(notification_id)
    if notification is None:
        return True

    recipient = notification.recipient
    if not recipient.email:
        notification.delivery_status = DeliveryStatus.SKIPPED
        notification.save(update_fields=["delivery_status", "updated_at"])
        logger.info(f"Email skipped for notification {notification_id}: recipient has no email")
        return True

    notification.attempt_count += 1
    try:
        send_mail(
            subject=notification.title,
            message=_render_body(notification),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient.email],
        )
    except (SMTPException, ConnectionError) as e:
        notification.failure_reason = str(e)
        if self.request.retries >= MAX_EMAIL_RETRIES:
            notification.delivery_status = DeliveryStatus.FAILED
        notification.save(
            update_fields=["attempt_count", "failure_reason", "delivery_status", "updated_at"]
        )
        logger.warning(
            f"Email delivery failed for notification {notification_id}: {e}",
            extra={"attempt": notification.attempt_count},
        )
        raise

    notification.delivery_status = DeliveryStatus.SENT
    notification.sent_at = django_timezone.now()
    notification.failure_reason = ""
    notification.save(
        update_fields=["delivery_status", "sent_at", "attempt_count", "failure_reason", "updated_at"]
    )
    logger.info(f"Email sent for notification {notification_id}")
    return True
