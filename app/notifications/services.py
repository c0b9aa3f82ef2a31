"""
Notification services.

NotificationService is the notification sink used by the contract and
payment services: it persists a notification, dedupes it by idempotency
key and queues e-mail delivery once the surrounding transaction commits.

Design:
    - Services are stateless (use class methods)
    - A duplicate idempotency key is not an error; the existing
      notification is returned and nothing is re-sent
    - Delivery is queued with transaction.on_commit, so a rolled-back
      state change never sends mail

Usage:
    from notifications.services import NotificationService

    NotificationService.notify(
        user_id=landlord.id,
        title="Payment received",
        message="Rent for Apartment 12 was paid.",
        action_link=config.action_link(f"/contracts/{contract.id}"),
        idempotency_key=f"{order.id}:paid",
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction

from core.services import BaseService, ServiceResult
from notifications.models import Notification

if TYPE_CHECKING:
    from typing import Any


class NotificationService(BaseService):
    """
    Service for notification operations.

    Methods:
        notify: Persist one notification and queue its e-mail
        escalate_to_admins: Notify every active administrator
    """

    @classmethod
    def notify(
        cls,
        user_id: Any,
        title: str,
        message: str,
        action_link: str = "",
        idempotency_key: str | None = None,
        data: dict | None = None,
    ) -> ServiceResult[Notification]:
        """
        Create a notification for a user.

        Implementation:
            1. Idempotency check (if key provided)
            2. Create notification (a concurrent duplicate surfaces as
               IntegrityError and resolves to the existing row)
            3. Queue e-mail delivery after commit

        Returns:
            ServiceResult with the Notification (new or existing); ``data``
            is the existing row when the key was already used
        """
        from notifications import tasks

        logger = cls.get_logger()

        if idempotency_key:
            existing = Notification.objects.filter(idempotency_key=idempotency_key).first()
            if existing:
                logger.info(
                    "Duplicate notification prevented",
                    extra={"idempotency_key": idempotency_key},
                )
                return ServiceResult.ok(existing)

        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    recipient_id=user_id,
                    title=title,
                    message=message,
                    action_link=action_link,
                    data=data or {},
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            if not idempotency_key:
                raise
            logger.info(
                "Duplicate notification prevented (concurrent insert)",
                extra={"idempotency_key": idempotency_key},
            )
            return ServiceResult.ok(Notification.objects.get(idempotency_key=idempotency_key))

        logger.info(
            "Created notification",
            extra={
                "notification_id": str(notification.id),
                "recipient_id": str(user_id),
                "idempotency_key": idempotency_key,
            },
        )

        notification_id = str(notification.id)
        transaction.on_commit(lambda: tasks.send_email_notification.delay(notification_id))
        return ServiceResult.ok(notification)

    @classmethod
    def escalate_to_admins(
        cls,
        title: str,
        message: str,
        idempotency_key: str,
        details: dict | None = None,
    ) -> ServiceResult[list[Notification]]:
        """
        Notify every active administrator.

        Each admin gets a key derived from ``idempotency_key``, so the same
        escalation raised twice reaches each admin once.
        """
        User = get_user_model()
        admins = list(User.objects.admins())

        if not admins:
            cls.get_logger().error(
                "Escalation raised but no administrator to notify",
                extra={"idempotency_key": idempotency_key, "details": details},
            )
            return ServiceResult.failure(
                "No administrator to notify",
                error_code="NO_ADMINISTRATORS",
            )

        notifications = [
            cls.notify(
                user_id=admin.pk,
                title=title,
                message=message,
                idempotency_key=f"{idempotency_key}:{admin.pk}",
                data=details,
            ).data
            for admin in admins
        ]

        cls.get_logger().warning(
            "Escalated to administrators",
            extra={"idempotency_key": idempotency_key, "admin_count": len(admins)},
        )
        return ServiceResult.ok(notifications)

