"""
Webhook event handlers for payment gateway and e-signature events.

This module provides a handler registry and implementations for
reconciling inbound events onto the ledger.

Every handler is idempotent: it resolves the entity the event refers to,
returns early when the entity already reached the event's target state,
and otherwise applies a guarded write through LedgerStore. Only the delivery
whose guarded write was applied produces side effects. Notifications and
admin escalations are written in the same transaction as that write, so
a failure to record them rolls the event back for retry; the payout job
is enqueued with ``transaction.on_commit``.

Handlers run inside the transaction opened by ``process_webhook_event``.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    # Register a custom handler
    @register_handler("PAYMENT_REFUNDED")
    def handle_payment_refunded(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    # Dispatch an event to its handler
    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from datetime import datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING, Callable

from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_date

from core.exceptions import AlreadyAppliedError, NotFoundError, ValidationError
from core.helpers import quantize_money
from core.services import ServiceResult

from contracts.models import Contract
from contracts.services import ContractLifecycleService
from notifications.services import NotificationService
from payments.adapters import AsaasAdapter
from payments.config import PaymentsConfig
from payments.exceptions import InvalidStateTransitionError
from payments.ledger import LedgerStore
from payments.models import Charge, PaymentOrder, Transfer, WebhookEvent
from payments.services import PayoutOrchestrator, SubAccountService
from payments.state_machines import PaymentOrderState, TransferState

if TYPE_CHECKING:
    from datetime import date


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(*event_types: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler("PAYMENT_RECEIVED", "PAYMENT_CONFIRMED")
        def handle_payment_received(webhook_event: WebhookEvent) -> ServiceResult:
            ...

    Args:
        event_types: One or more event type strings

    Returns:
        Decorator function that registers the handler
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        for event_type in event_types:
            WEBHOOK_HANDLERS[event_type] = func
            logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to the appropriate handler.

    Unknown event types are acknowledged. Malformed payloads and unknown
    references (ValidationError, NotFoundError) cannot be fixed by a
    retry, so they are logged and acknowledged as well.

    Args:
        webhook_event: The WebhookEvent to process

    Returns:
        ServiceResult from the handler, or success if acknowledged
    """
    context = {
        "webhook_event_id": str(webhook_event.id),
        "delivery_id": webhook_event.delivery_id,
        "event_type": webhook_event.event_type,
    }
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra=context,
        )
        return ServiceResult.ok(None)

    logger.info(f"Dispatching {webhook_event.event_type} to handler", extra=context)

    try:
        return handler(webhook_event)
    except AlreadyAppliedError as e:
        logger.info(e.message, extra={**context, **e.details})
        return ServiceResult.ok({"already_applied": True})
    except (ValidationError, NotFoundError) as e:
        logger.warning(
            f"Webhook acknowledged without effect: {e.message}",
            extra={**context, "error_code": e.error_code, **e.details},
        )
        return ServiceResult.ok({"acknowledged": e.error_code})


# =============================================================================
# Helpers
# =============================================================================


def _payments_config() -> PaymentsConfig:
    return PaymentsConfig.from_settings()


def _payout_orchestrator() -> PayoutOrchestrator:
    return PayoutOrchestrator(
        gateway=AsaasAdapter,
        config=_payments_config(),
        notifier=NotificationService,
    )


def _required(section: dict, key: str, event_type: str) -> str:
    value = section.get(key)
    if not value:
        raise ValidationError(
            f"{event_type} payload is missing '{key}'",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )
    return value


def _order_for_charge(external_charge_id: str) -> PaymentOrder:
    """Resolve a PaymentOrder through its Charge's gateway id."""
    charge = (
        Charge.objects.select_related(
            "payment_order__contract__landlord",
            "payment_order__contract__tenant",
        )
        .filter(external_charge_id=external_charge_id)
        .first()
    )
    if charge is None:
        raise NotFoundError(
            "No charge for gateway payment",
            error_code="CHARGE_NOT_FOUND",
            details={"external_charge_id": external_charge_id},
        )
    return charge.payment_order


def _transfer_for(external_transfer_id: str) -> Transfer:
    transfer = (
        Transfer.objects.select_related("payment_order__contract", "landlord")
        .filter(external_transfer_id=external_transfer_id)
        .first()
    )
    if transfer is None:
        raise NotFoundError(
            "No transfer for gateway transfer",
            error_code="TRANSFER_NOT_FOUND",
            details={"external_transfer_id": external_transfer_id},
        )
    return transfer


def _parse_paid_at(payment: dict) -> datetime:
    """Payment date reported by the gateway, falling back to now."""
    raw = payment.get("paymentDate") or payment.get("clientPaymentDate")
    parsed = parse_date(raw) if raw else None
    if parsed is None:
        return timezone.now()
    return timezone.make_aware(datetime.combine(parsed, time.min))


def _parse_effective_date(transfer: dict) -> date | None:
    raw = transfer.get("effectiveDate") or transfer.get("transferDate")
    return parse_date(raw[:10]) if raw else None


def _notify(user_id, title: str, message: str, path: str, idempotency_key: str) -> None:
    NotificationService.notify(
        user_id=user_id,
        title=title,
        message=message,
        action_link=_payments_config().action_link(path),
        idempotency_key=idempotency_key,
    )


def _escalate_review(order: PaymentOrder, reason: str) -> None:
    """Flag an order for manual reconciliation and tell the admins."""
    LedgerStore.touch(order, needs_review=True, review_reason=reason)
    logger.error(
        "Payment order flagged for manual review",
        extra={"payment_order_id": str(order.pk), "reason": reason},
    )
    details = {
        "payment_order_id": str(order.pk),
        "contract_id": str(order.contract_id),
        "status": order.status,
    }
    NotificationService.escalate_to_admins(
        title="Payment needs manual review",
        message=f"{order.contract.property_label}: {reason}",
        idempotency_key=f"{order.pk}:needs_review",
        details=details,
    )


# =============================================================================
# Payment Handlers
# =============================================================================


@register_handler("PAYMENT_RECEIVED", "PAYMENT_CONFIRMED")
def handle_payment_received(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Apply a received or confirmed payment: PENDING/OVERDUE -> PAID.

    The winning delivery enqueues the payout job and the landlord's
    "payment received" notification after commit. Later deliveries
    (including the CONFIRMED that follows a RECEIVED) are no-ops.
    """
    payment = webhook_event.section("payment")
    charge_id = _required(payment, "id", webhook_event.event_type)
    order = _order_for_charge(charge_id)

    if order.status in PaymentOrderState.settled_states():
        raise AlreadyAppliedError(
            "Payment already applied",
            details={"payment_order_id": str(order.pk), "status": order.status},
        )

    if order.status == PaymentOrderState.CANCELLED:
        _escalate_review(order, f"Payment {charge_id} received for a cancelled installment")
        return ServiceResult.ok({"payment_order_id": str(order.pk), "needs_review": True})

    value = quantize_money(Decimal(str(_required(payment, "value", webhook_event.event_type))))
    net_raw = payment.get("netValue")
    net_value = quantize_money(Decimal(str(net_raw))) if net_raw is not None else value

    won = LedgerStore.transition(
        order,
        order.mark_paid,
        amount_paid=value,
        net_value=net_value,
        paid_at=_parse_paid_at(payment),
    )
    if not won:
        return ServiceResult.ok({"payment_order_id": str(order.pk), "already_applied": True})

    from payments.tasks import initiate_payout_for_order

    order_id = str(order.pk)
    transaction.on_commit(lambda: initiate_payout_for_order.delay(order_id))

    contract = order.contract
    _notify(
        contract.landlord_id,
        title="Payment received",
        message=(
            f"The tenant paid R$ {value} for {contract.property_label} "
            f"(installment {order.installment_number})."
        ),
        path=f"contracts/{contract.pk}",
        idempotency_key=f"{order.pk}:{PaymentOrderState.PAID.value}",
    )

    logger.info(
        "Payment applied",
        extra={"payment_order_id": order_id, "amount_paid": str(value), "net_value": str(net_value)},
    )
    return ServiceResult.ok({"payment_order_id": order_id, "status": order.status})


@register_handler("PAYMENT_OVERDUE")
def handle_payment_overdue(webhook_event: WebhookEvent) -> ServiceResult:
    """PENDING -> OVERDUE; the winner notifies the tenant."""
    payment = webhook_event.section("payment")
    order = _order_for_charge(_required(payment, "id", webhook_event.event_type))

    if order.status != PaymentOrderState.PENDING or not LedgerStore.transition(
        order, order.mark_overdue
    ):
        raise AlreadyAppliedError(
            "Payment order is no longer pending",
            details={"payment_order_id": str(order.pk), "status": order.status},
        )

    contract = order.contract
    _notify(
        contract.tenant_id,
        title="Rent overdue",
        message=(
            f"Your rent for {contract.property_label} due {order.due_date:%d/%m/%Y} is overdue."
        ),
        path=f"contracts/{contract.pk}",
        idempotency_key=f"{order.pk}:{PaymentOrderState.OVERDUE.value}",
    )
    return ServiceResult.ok({"payment_order_id": str(order.pk), "status": order.status})


@register_handler("PAYMENT_DELETED")
def handle_payment_deleted(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Undo a charge the gateway deleted.

    - RECEIVED, PAYOUT_PENDING or a Transfer exists: money already moved,
      flag for manual review and escalate, no state change
    - PAID without a Transfer: reopen to PENDING and drop the Charge
    - PENDING / OVERDUE: drop the Charge so a new one can be issued
    - CANCELLED: nothing to do
    """
    payment = webhook_event.section("payment")
    charge_id = _required(payment, "id", webhook_event.event_type)
    order = _order_for_charge(charge_id)
    result = {"payment_order_id": str(order.pk)}

    if order.status == PaymentOrderState.CANCELLED:
        raise AlreadyAppliedError("Payment order already cancelled", details=result)

    if (
        order.status in (PaymentOrderState.RECEIVED, PaymentOrderState.PAYOUT_PENDING)
        or Transfer.objects.filter(payment_order=order).exists()
    ):
        _escalate_review(order, f"Gateway deleted payment {charge_id} after payout started")
        return ServiceResult.ok({**result, "needs_review": True})

    if order.status == PaymentOrderState.PAID:
        if not LedgerStore.transition(
            order, order.reopen, amount_paid=None, net_value=None, paid_at=None
        ):
            return ServiceResult.ok({**result, "already_applied": True})

    Charge.objects.filter(payment_order=order, external_charge_id=charge_id).delete()
    logger.info(
        "Charge removed after gateway deletion",
        extra={**result, "external_charge_id": charge_id, "status": order.status},
    )
    return ServiceResult.ok({**result, "status": order.status})


@register_handler("PAYMENT_RESTORED")
def handle_payment_restored(webhook_event: WebhookEvent) -> ServiceResult:
    """OVERDUE -> PENDING while the due date has not passed."""
    payment = webhook_event.section("payment")
    order = _order_for_charge(_required(payment, "id", webhook_event.event_type))

    if (
        order.status != PaymentOrderState.OVERDUE
        or order.due_date < timezone.localdate()
        or not LedgerStore.transition(order, order.restore)
    ):
        raise AlreadyAppliedError(
            "Nothing to restore",
            details={"payment_order_id": str(order.pk), "status": order.status},
        )
    return ServiceResult.ok({"payment_order_id": str(order.pk), "status": order.status})


@register_handler("PAYMENT_CREATED", "PAYMENT_UPDATED")
def handle_payment_updated(webhook_event: WebhookEvent) -> ServiceResult:
    """Refresh the Charge's display fields; the order is untouched."""
    payment = webhook_event.section("payment")
    charge_id = _required(payment, "id", webhook_event.event_type)

    fields = {
        "external_status": payment.get("status"),
        "invoice_url": payment.get("invoiceUrl"),
        "bank_slip_url": payment.get("bankSlipUrl"),
        "our_number": payment.get("nossoNumero"),
    }
    fields = {name: value for name, value in fields.items() if value is not None}
    updated = Charge.objects.filter(external_charge_id=charge_id).update(
        updated_at=timezone.now(), **fields
    )
    if not updated:
        raise NotFoundError(
            "No charge for gateway payment",
            error_code="CHARGE_NOT_FOUND",
            details={"external_charge_id": charge_id},
        )
    return ServiceResult.ok({"external_charge_id": charge_id, "updated": sorted(fields)})


# =============================================================================
# Account Status Handlers
# =============================================================================

ACCOUNT_STATUS_EVENTS = [
    f"ACCOUNT_STATUS_{check}_{outcome}"
    for check in ("GENERAL_APPROVAL", "DOCUMENT", "COMMERCIAL_INFO", "BANK_ACCOUNT_INFO")
    for outcome in ("APPROVED", "REJECTED", "PENDING", "AWAITING_APPROVAL")
]


@register_handler(*ACCOUNT_STATUS_EVENTS)
def handle_account_status(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Overwrite the sub-account's approval statuses from the snapshot.

    When the general status just became APPROVED or REJECTED, the
    landlord is notified.
    """
    result = SubAccountService.apply_account_status(webhook_event.section("accountStatus"))
    data = result.data
    decided = data["general_decided"]

    if decided:
        account = data["sub_account"]
        approved = decided == "APPROVED"
        _notify(
            account.landlord_id,
            title="Payment account approved" if approved else "Payment account rejected",
            message=(
                "Your payment account was approved. You can now receive rent."
                if approved
                else "Your payment account was rejected. Please review your documents."
            ),
            path="account/payments",
            idempotency_key=f"{account.pk}:{decided.lower()}",
        )

    return ServiceResult.ok({"changed": sorted(data["changed"])})


# =============================================================================
# Transfer Handlers
# =============================================================================


@register_handler("TRANSFER_CREATED", "TRANSFER_PENDING", "TRANSFER_IN_BANK_PROCESSING")
def handle_transfer_in_progress(webhook_event: WebhookEvent) -> ServiceResult:
    """Intermediate transfer statuses; the Transfer is already PENDING."""
    return ServiceResult.ok({"ignored": webhook_event.event_type})


@register_handler("TRANSFER_DONE")
def handle_transfer_done(webhook_event: WebhookEvent) -> ServiceResult:
    """Transfer PENDING -> DONE; an installment payout also moves its order to RECEIVED."""
    payload = webhook_event.section("transfer")
    transfer = _transfer_for(_required(payload, "id", webhook_event.event_type))

    result = _payout_orchestrator().complete_transfer(transfer, _parse_effective_date(payload))
    if not result.success:
        raise AlreadyAppliedError(
            result.error,
            details={"transfer_id": str(transfer.pk), "status": transfer.status},
        )
    return result


@register_handler("TRANSFER_FAILED", "TRANSFER_CANCELLED")
def handle_transfer_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """Transfer PENDING -> FAILED/CANCELLED, any installment back to PAID, admins escalated."""
    payload = webhook_event.section("transfer")
    transfer = _transfer_for(_required(payload, "id", webhook_event.event_type))
    status = (
        TransferState.CANCELLED
        if webhook_event.event_type == "TRANSFER_CANCELLED"
        else TransferState.FAILED
    )

    result = _payout_orchestrator().handle_transfer_failure(
        transfer,
        status,
        reason=payload.get("failReason") or "",
    )
    if not result.success:
        raise AlreadyAppliedError(
            result.error,
            details={"transfer_id": str(transfer.pk), "status": transfer.status},
        )
    return result


# =============================================================================
# E-signature Handlers
# =============================================================================


def _contract_for_envelope(webhook_event: WebhookEvent) -> Contract:
    envelope_id = _required(webhook_event.section("document"), "key", webhook_event.event_type)
    contract = Contract.objects.filter(envelope_id=envelope_id).first()
    if contract is None:
        raise NotFoundError(
            "No contract for signature envelope",
            error_code="CONTRACT_NOT_FOUND",
            details={"envelope_id": envelope_id},
        )
    return contract


@register_handler("esignature.close", "esignature.auto_close")
def handle_envelope_closed(webhook_event: WebhookEvent) -> ServiceResult:
    """All parties signed: activate the contract and create its installments."""
    contract = _contract_for_envelope(webhook_event)

    try:
        orders = ContractLifecycleService.activate(contract, source="esignature")
    except InvalidStateTransitionError as e:
        logger.warning(
            "Signed envelope for a contract that cannot be activated",
            extra={"contract_id": str(contract.pk), **e.details},
        )
        return ServiceResult.ok({"contract_id": str(contract.pk), "activated": False})

    return ServiceResult.ok(
        {"contract_id": str(contract.pk), "activated": True, "payment_orders": len(orders)}
    )


@register_handler("esignature.sign")
def handle_envelope_signed(webhook_event: WebhookEvent) -> ServiceResult:
    """One party signed; progress is logged only."""
    contract = _contract_for_envelope(webhook_event)
    signer = webhook_event.section("event").get("data", {}).get("signer", {})
    logger.info(
        "Contract signed by a party",
        extra={"contract_id": str(contract.pk), "signer_email": signer.get("email", "")},
    )
    return ServiceResult.ok({"contract_id": str(contract.pk)})
