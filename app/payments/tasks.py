"""
Celery tasks for payment processing.

This module provides async tasks for:
- Processing inbound webhook events
- Retrying failed webhook events
- Periodic cleanup of old/stuck events
- Issuing charges and requesting payouts
- Daily ledger sweeps (overdue marking, charge pre-generation, payout
  dispatch, reminders)

Usage:
    from payments.tasks import process_webhook_event

    # Queue a webhook for async processing
    process_webhook_event.delay(webhook_event_id)

    # Issue the charge for one installment
    from payments.tasks import issue_charge_for_order
    issue_charge_for_order.delay(str(order.id))

    # Run a named daily job (typically via celery-beat)
    from payments.tasks import run_daily_job
    run_daily_job.delay("mark_overdue")
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.db import transaction
from django.utils import timezone

from core.exceptions import NotFoundError, PrerequisiteMissingError

from notifications.services import NotificationService
from payments.adapters import AsaasAdapter
from payments.config import PaymentsConfig
from payments.exceptions import (
    ChargeAlreadyExistsError,
    GatewayRateLimitError,
    GatewayTimeoutError,
    GatewayUnavailableError,
    InvalidStateTransitionError,
)
from payments.ledger import LedgerStore
from payments.models import PaymentOrder, WebhookEvent
from payments.models.webhook_event import MAX_PROCESSING_ATTEMPTS
from payments.state_machines import BillingType, PaymentOrderState, WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_WEBHOOK_RETRIES = MAX_PROCESSING_ATTEMPTS
STUCK_PROCESSING_THRESHOLD_MINUTES = 30
STALE_PENDING_THRESHOLD_MINUTES = 5
WEBHOOK_RETRY_BATCH_SIZE = 100
MAX_CHARGE_RETRIES = 3

# Precondition failures caused by platform settings rather than ledger data
CONFIGURATION_ERROR_CODES = frozenset({"PLATFORM_WALLET_NOT_CONFIGURED"})

RETRYABLE_GATEWAY_ERRORS = (
    GatewayRateLimitError,
    GatewayTimeoutError,
    GatewayUnavailableError,
)


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(acks_late=True)
def process_webhook_event(webhook_event_id: str) -> dict:
    """
    Process an inbound webhook event asynchronously.

    This task:
    1. Loads the WebhookEvent by ID
    2. Checks if already processed (idempotency)
    3. Marks as processing
    4. Dispatches to appropriate handler inside a transaction
    5. Marks as processed or failed

    Retries are owned by retry_failed_webhooks: a failure leaves the event
    FAILED and the sweep re-queues it until MAX_WEBHOOK_RETRIES attempts
    were made. The task itself never retries, so an event is never
    queued twice for the same failure.

    Args:
        webhook_event_id: UUID of the WebhookEvent to process

    Returns:
        Dict with processing result status

    Raises:
        Exception: Re-raised so the worker records the failure
    """
    # Import here to avoid circular imports
    from payments.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    context = {
        "webhook_event_id": str(webhook_event_id),
        "delivery_id": webhook_event.delivery_id,
        "event_type": webhook_event.event_type,
    }

    if webhook_event.is_processed:
        logger.info("WebhookEvent already processed, skipping", extra=context)
        return {"status": "already_processed", "webhook_event_id": str(webhook_event_id)}

    webhook_event.mark_processing()
    webhook_event.save()

    logger.info(
        f"Dispatching webhook: {webhook_event.event_type}",
        extra={**context, "retry_count": webhook_event.retry_count},
    )

    try:
        with transaction.atomic():
            result = dispatch_webhook(webhook_event)

        if result.success:
            webhook_event.mark_processed()
            webhook_event.save()
            logger.info("Webhook processed successfully", extra=context)
            return {"status": "processed", "webhook_event_id": str(webhook_event_id)}

        error_msg = result.error or "Handler returned failure"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.warning(
            f"Webhook handler failed: {error_msg}",
            extra={**context, "error_code": result.error_code},
        )
        return {
            "status": "handler_failed",
            "webhook_event_id": str(webhook_event_id),
            "error": error_msg,
        }

    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.exception("Webhook processing failed with exception", extra=context)
        raise


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to re-queue webhooks that did not complete.

    Picks FAILED events with attempts left, and PENDING events older than
    a few minutes whose initial enqueue never reached the broker.

    Returns:
        Dict with count of webhooks queued for retry
    """
    stale_pending = timezone.now() - timedelta(minutes=STALE_PENDING_THRESHOLD_MINUTES)
    failed = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=MAX_WEBHOOK_RETRIES,
    )
    pending = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PENDING,
        created_at__lt=stale_pending,
    )
    webhooks = (failed | pending).order_by("created_at")[:WEBHOOK_RETRY_BATCH_SIZE]

    queued_count = 0
    for webhook in webhooks:
        process_webhook_event.delay(str(webhook.id))
        queued_count += 1
        logger.info(
            "Queued webhook for retry",
            extra={
                "webhook_event_id": str(webhook.id),
                "status": webhook.status,
                "retry_count": webhook.retry_count,
            },
        )

    logger.info(
        f"Queued {queued_count} webhooks for retry",
        extra={"queued_count": queued_count},
    )
    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Periodic task to reset stuck webhooks.

    Finds webhooks that have been in PROCESSING status for too long
    (worker crashed mid-processing) and resets them to FAILED so they
    can be retried.

    Returns:
        Dict with count of webhooks reset
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)
    stuck_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook in stuck_webhooks:
        stuck_since = webhook.updated_at
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save()
        reset_count += 1
        logger.warning(
            "Reset stuck webhook",
            extra={"webhook_event_id": str(webhook.id), "stuck_since": stuck_since.isoformat()},
        )

    if reset_count > 0:
        logger.info(f"Reset {reset_count} stuck webhooks", extra={"reset_count": reset_count})

    return {"reset_count": reset_count}


@shared_task
def cleanup_old_webhooks(days: int = 90) -> dict:
    """
    Periodic task to delete old processed webhook events.

    Failed webhooks are kept for debugging.

    Args:
        days: Delete processed webhooks older than this many days

    Returns:
        Dict with count of webhooks deleted
    """
    cutoff = timezone.now() - timedelta(days=days)
    deleted_count, _ = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSED,
        processed_at__lt=cutoff,
    ).delete()

    if deleted_count > 0:
        logger.info(
            f"Deleted {deleted_count} old webhook events",
            extra={"deleted_count": deleted_count, "cutoff_date": cutoff.isoformat()},
        )

    return {"deleted_count": deleted_count}


# =============================================================================
# Charge & Payout Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=RETRYABLE_GATEWAY_ERRORS,
    retry_backoff=True,
    retry_backoff_max=60,
    retry_kwargs={"max_retries": MAX_CHARGE_RETRIES},
)
def issue_charge_for_order(
    self,
    payment_order_id: str,
    billing_type: str = BillingType.BANK_SLIP,
) -> dict:
    """
    Issue the gateway charge for one installment.

    Transient gateway errors are retried with exponential backoff; the
    final failure is logged at ERROR and left for the next pre-generation
    run. Precondition failures are logged and not retried.

    Returns:
        Dict with issuance status
    """
    from payments.services import ChargeIssuer

    issuer = ChargeIssuer(gateway=AsaasAdapter, config=PaymentsConfig.from_settings())
    context = {"payment_order_id": payment_order_id, "attempt": self.request.retries + 1}

    try:
        charge = issuer.issue_charge(payment_order_id, billing_type)
    except ChargeAlreadyExistsError:
        logger.info("Charge already exists, nothing to do", extra=context)
        return {"status": "already_exists", "payment_order_id": payment_order_id}
    except (NotFoundError, InvalidStateTransitionError, PrerequisiteMissingError) as e:
        log = logger.error if e.error_code in CONFIGURATION_ERROR_CODES else logger.warning
        log(
            f"Charge not issued: {e.message}",
            extra={**context, "error_code": e.error_code},
        )
        return {"status": "skipped", "payment_order_id": payment_order_id, "error_code": e.error_code}
    except RETRYABLE_GATEWAY_ERRORS as e:
        if self.request.retries >= MAX_CHARGE_RETRIES:
            logger.error(
                "Charge issuance failed after final attempt",
                extra={**context, "error_code": e.error_code},
            )
        raise

    return {
        "status": "issued",
        "payment_order_id": payment_order_id,
        "charge_id": str(charge.id),
    }


@shared_task
def initiate_payout_for_order(payment_order_id: str) -> dict:
    """
    Pay a PAID installment out to its landlord.

    Queued after commit by the webhook delivery that moved the order to
    PAID, and again by dispatch_pending_payouts while no Transfer exists.
    Never retried: gateway failures are escalated to admins and the order
    is flagged for review.
    """
    from payments.services import PayoutOrchestrator

    order = PaymentOrder.objects.select_related("contract").filter(id=payment_order_id).first()
    if order is None:
        logger.error("PaymentOrder not found for payout", extra={"payment_order_id": payment_order_id})
        return {"status": "not_found", "payment_order_id": payment_order_id}

    orchestrator = PayoutOrchestrator(
        gateway=AsaasAdapter,
        config=PaymentsConfig.from_settings(),
        notifier=NotificationService,
    )
    result = orchestrator.initiate_payout(order)

    if result.success:
        return {
            "status": "payout_requested",
            "payment_order_id": payment_order_id,
            "transfer_id": str(result.data.id),
        }
    return {"status": "skipped", "payment_order_id": payment_order_id, "reason": result.error_code}


# =============================================================================
# Daily Jobs
# =============================================================================


@shared_task
def mark_overdue_payment_orders() -> dict:
    """
    Move PENDING installments whose due date passed to OVERDUE.

    Each row is moved by its own guarded write; the tenant is notified
    only for rows this run moved.
    """
    config = PaymentsConfig.from_settings()
    today = timezone.localdate()
    orders = PaymentOrder.objects.select_related("contract").filter(
        status=PaymentOrderState.PENDING,
        due_date__lt=today,
    )

    marked = 0
    for order in orders.iterator():
        if not LedgerStore.transition(order, order.mark_overdue):
            continue
        marked += 1
        contract = order.contract
        NotificationService.notify(
            user_id=contract.tenant_id,
            title="Rent overdue",
            message=(
                f"Your rent for {contract.property_label} due {order.due_date:%d/%m/%Y} is overdue."
            ),
            action_link=config.action_link(f"contracts/{contract.pk}"),
            idempotency_key=f"{order.pk}:{PaymentOrderState.OVERDUE.value}",
        )

    logger.info(f"Marked {marked} payment orders overdue", extra={"marked_count": marked})
    return {"marked_count": marked}


@shared_task
def pregenerate_upcoming_charges() -> dict:
    """
    Queue charge issuance for installments due within the horizon.

    Picks PENDING installments of ACTIVE contracts with no Charge and a
    due date between today and today + ``charge_horizon_days``.
    """
    from contracts.models import ContractState

    config = PaymentsConfig.from_settings()
    today = timezone.localdate()
    order_ids = PaymentOrder.objects.filter(
        status=PaymentOrderState.PENDING,
        contract__status=ContractState.ACTIVE,
        charge__isnull=True,
        due_date__gte=today,
        due_date__lte=today + timedelta(days=config.charge_horizon_days),
    ).values_list("id", flat=True)

    queued = 0
    for order_id in order_ids:
        issue_charge_for_order.delay(str(order_id))
        queued += 1

    logger.info(f"Queued {queued} charges for issuance", extra={"queued_count": queued})
    return {"queued_count": queued}


@shared_task
def dispatch_pending_payouts() -> dict:
    """
    Queue payouts for PAID installments that have no Transfer.

    The webhook delivery that moves an order to PAID enqueues its payout
    after commit; this sweep picks up orders whose enqueue never reached
    the broker. Orders flagged for review wait for an administrator.
    Queuing an order twice is harmless: initiate_payout only acts on a
    PAID order without a Transfer.
    """
    order_ids = PaymentOrder.objects.filter(
        status=PaymentOrderState.PAID,
        transfer__isnull=True,
        needs_review=False,
    ).values_list("id", flat=True)

    queued = 0
    for order_id in order_ids:
        initiate_payout_for_order.delay(str(order_id))
        queued += 1

    logger.info(f"Queued {queued} pending payouts", extra={"queued_count": queued})
    return {"queued_count": queued}


@shared_task
def send_payment_reminders() -> dict:
    """Remind tenants of installments due in ``reminder_days_ahead`` days."""
    from contracts.models import ContractState

    config = PaymentsConfig.from_settings()
    target = timezone.localdate() + timedelta(days=config.reminder_days_ahead)
    orders = PaymentOrder.objects.select_related("contract", "charge").filter(
        status=PaymentOrderState.PENDING,
        contract__status=ContractState.ACTIVE,
        due_date=target,
    )

    sent = 0
    for order in orders:
        contract = order.contract
        charge = getattr(order, "charge", None)
        link = (charge.invoice_url if charge else "") or config.action_link(
            f"contracts/{contract.pk}"
        )
        result = NotificationService.notify(
            user_id=contract.tenant_id,
            title="Rent due soon",
            message=(
                f"Your rent of R$ {order.amount_due} for {contract.property_label} "
                f"is due on {order.due_date:%d/%m/%Y}."
            ),
            action_link=link,
            idempotency_key=f"{order.pk}:reminder:{target.isoformat()}",
        )
        if result.success:
            sent += 1

    logger.info(f"Sent {sent} payment reminders", extra={"sent_count": sent})
    return {"sent_count": sent}


@shared_task
def run_daily_job(job_name: str) -> dict:
    """Entry point for celery-beat: enqueue a named daily job."""
    from payments.scheduler import SchedulerTrigger

    task_id = SchedulerTrigger.run_daily(job_name)
    return {"job_name": job_name, "task_id": task_id}
