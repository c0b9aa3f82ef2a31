"""
Tests for the webhook processing tasks.

Test Classes:
    TestProcessWebhookEvent: status bookkeeping around dispatch and redelivery
    TestRetryFailedWebhooks: re-queue of failed and stale pending events
    TestCleanupTasks: stuck and old events
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone

from core.services import ServiceResult
from notifications.models import Notification
from notifications.services import NotificationService
from payments.models import WebhookEvent
from payments.state_machines import PaymentOrderState, TransferState, WebhookEventStatus
from payments.tasks import (
    MAX_WEBHOOK_RETRIES,
    cleanup_old_webhooks,
    cleanup_stuck_webhooks,
    process_webhook_event,
    retry_failed_webhooks,
)
from payments.tests.factories import WebhookEventFactory

DISPATCH_PATH = "payments.webhooks.handlers.dispatch_webhook"


class TestProcessWebhookEvent:
    def test_marks_processed(self, db):
        event = WebhookEventFactory(event_type="PAYMENT_ANTICIPATED")

        result = process_webhook_event(str(event.id))

        assert result == {"status": "processed", "webhook_event_id": str(event.id)}
        event.refresh_from_db()
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.processed_at is not None
        assert event.retry_count == 1

    def test_already_processed_is_skipped(self, db):
        event = WebhookEventFactory(status=WebhookEventStatus.PROCESSED)

        with patch(DISPATCH_PATH) as dispatch:
            result = process_webhook_event(str(event.id))

        assert result["status"] == "already_processed"
        dispatch.assert_not_called()

    def test_unknown_event(self, db):
        result = process_webhook_event("00000000-0000-0000-0000-000000000000")

        assert result["status"] == "not_found"

    def test_handler_failure_marks_failed(self, db):
        event = WebhookEventFactory()

        with patch(DISPATCH_PATH, return_value=ServiceResult.failure("boom", error_code="X")):
            result = process_webhook_event(str(event.id))

        assert result["status"] == "handler_failed"
        event.refresh_from_db()
        assert event.status == WebhookEventStatus.FAILED
        assert event.error_message == "boom"

    def test_exception_marks_failed_and_propagates(self, db):
        event = WebhookEventFactory()

        with patch(DISPATCH_PATH, side_effect=RuntimeError("db down")):
            with pytest.raises(RuntimeError):
                process_webhook_event(str(event.id))

        event.refresh_from_db()
        assert event.status == WebhookEventStatus.FAILED
        assert event.error_message == "RuntimeError: db down"

    def test_task_leaves_retries_to_the_sweep(self):
        assert not getattr(process_webhook_event, "autoretry_for", ())

    def test_failed_escalation_rolls_back_and_is_redelivered(
        self, pending_transfer, admin_user, django_capture_on_commit_callbacks
    ):
        event = WebhookEventFactory(
            event_type="TRANSFER_FAILED",
            payload={
                "event": "TRANSFER_FAILED",
                "transfer": {"id": "tra_pending000001", "failReason": "Invalid key"},
            },
        )
        escalate = NotificationService.escalate_to_admins
        attempts = []

        def unavailable_once(**kwargs):
            attempts.append(kwargs["idempotency_key"])
            if len(attempts) == 1:
                raise RuntimeError("notification store unavailable")
            return escalate(**kwargs)

        with patch.object(NotificationService, "escalate_to_admins", side_effect=unavailable_once):
            with pytest.raises(RuntimeError):
                process_webhook_event(str(event.id))

            event.refresh_from_db()
            pending_transfer.refresh_from_db()
            assert event.status == WebhookEventStatus.FAILED
            assert pending_transfer.status == TransferState.PENDING
            assert not Notification.objects.filter(recipient=admin_user).exists()

            with django_capture_on_commit_callbacks(execute=True):
                result = process_webhook_event(str(event.id))

        assert result["status"] == "processed"
        pending_transfer.refresh_from_db()
        assert pending_transfer.status == TransferState.FAILED
        order = pending_transfer.payment_order
        order.refresh_from_db()
        assert order.status == PaymentOrderState.PAID
        assert attempts == [f"{pending_transfer.pk}:failed"] * 2
        assert Notification.objects.filter(
            recipient=admin_user,
            idempotency_key=f"{pending_transfer.pk}:failed:{admin_user.pk}",
        ).exists()


class TestRetryFailedWebhooks:
    def test_requeues_failed_and_stale_pending(self, db):
        failed = WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=2)
        WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=MAX_WEBHOOK_RETRIES)
        stale = WebhookEventFactory()
        WebhookEvent.objects.filter(pk=stale.pk).update(
            created_at=timezone.now() - timedelta(minutes=10)
        )
        WebhookEventFactory()
        WebhookEventFactory(status=WebhookEventStatus.PROCESSED)

        with patch("payments.tasks.process_webhook_event") as task:
            result = retry_failed_webhooks()

        assert result == {"queued_count": 2}
        queued = {call.args[0] for call in task.delay.call_args_list}
        assert queued == {str(failed.id), str(stale.id)}


class TestCleanupTasks:
    def test_resets_stuck_processing(self, db):
        stuck = WebhookEventFactory(status=WebhookEventStatus.PROCESSING)
        WebhookEvent.objects.filter(pk=stuck.pk).update(
            updated_at=timezone.now() - timedelta(hours=1)
        )
        busy = WebhookEventFactory(status=WebhookEventStatus.PROCESSING)

        result = cleanup_stuck_webhooks()

        assert result == {"reset_count": 1}
        stuck.refresh_from_db()
        busy.refresh_from_db()
        assert stuck.status == WebhookEventStatus.FAILED
        assert busy.status == WebhookEventStatus.PROCESSING

    def test_deletes_old_processed(self, db):
        old = WebhookEventFactory(
            status=WebhookEventStatus.PROCESSED,
            processed_at=timezone.now() - timedelta(days=120),
        )
        recent = WebhookEventFactory(
            status=WebhookEventStatus.PROCESSED,
            processed_at=timezone.now() - timedelta(days=5),
        )
        failed = WebhookEventFactory(status=WebhookEventStatus.FAILED)

        result = cleanup_old_webhooks()

        assert result == {"deleted_count": 1}
        assert not WebhookEvent.objects.filter(pk=old.pk).exists()
        assert WebhookEvent.objects.filter(pk__in=[recent.pk, failed.pk]).count() == 2
