"""
Payout orchestration for paid installments.

PayoutOrchestrator moves a PAID installment's funds, net of the platform
commission, to the landlord's PIX key, and applies the gateway's
terminal transfer outcome back onto the ledger.

Flow:
    PAID --(initiate_payout: gateway accepted)--> PAYOUT_PENDING + Transfer
    PAYOUT_PENDING --(complete_transfer)--> RECEIVED
    PAYOUT_PENDING --(handle_transfer_failure)--> PAID, admins escalated

Withdrawals are Transfers without an order; their outcomes move only the
Transfer. Notifications and escalations are written in the transaction of
the state change they report.

Usage:
    from notifications.services import NotificationService
    from payments.adapters import AsaasAdapter
    from payments.config import PaymentsConfig
    from payments.services import PayoutOrchestrator

    orchestrator = PayoutOrchestrator(
        gateway=AsaasAdapter,
        config=PaymentsConfig.from_settings(),
        notifier=NotificationService,
    )
    result = orchestrator.initiate_payout(order)
    if not result.success:
        logger.info(result.error, extra={"error_code": result.error_code})
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import IntegrityError

from core.exceptions import ConflictError
from core.helpers import quantize_money
from core.services import BaseService, ServiceResult

from payments.adapters import CreatePayoutParams
from payments.exceptions import GatewayError, PayoutFailureEscalation
from payments.ledger import LedgerStore
from payments.models import PayeeSubAccount, PaymentOrder, Transfer
from payments.state_machines import PaymentOrderState, TransferState

if TYPE_CHECKING:
    from datetime import date

    from core.protocols import NotificationSink, PaymentGateway
    from payments.config import PaymentsConfig


# =============================================================================
# Payout Arithmetic
# =============================================================================


def calculate_payout(amount_paid: Decimal, net_value: Decimal, fee_percent: Decimal) -> Decimal:
    """
    Amount owed to the landlord for one installment.

    The platform commission is taken on the gross amount the tenant paid;
    the gateway's own fees are already excluded from ``net_value``.

    Example:
        >>> calculate_payout(Decimal("1500"), Decimal("1480"), Decimal("5"))
        Decimal('1405.00')
    """
    commission = quantize_money(amount_paid * fee_percent / Decimal("100"))
    return quantize_money(net_value - commission)


# =============================================================================
# Orchestrator
# =============================================================================


class PayoutOrchestrator(BaseService):
    """
    Requests payouts and applies transfer outcomes.

    Skips (order not PAID, sub-account not ready, nothing to pay) are
    returned as failed ServiceResults with an error code; they are
    expected outcomes and are never retried. A gateway failure is
    escalated to administrators and flags the order for review, which
    keeps it out of the payout sweep until an admin clears the flag.
    """

    def __init__(
        self,
        gateway: PaymentGateway,
        config: PaymentsConfig,
        notifier: NotificationSink,
    ):
        self.gateway = gateway
        self.config = config
        self.notifier = notifier

    def initiate_payout(self, order: PaymentOrder) -> ServiceResult[Transfer]:
        """
        Pay out a PAID installment to its landlord.

        Steps:
            1. Skip unless the order is PAID and has no Transfer
            2. Require a sub-account with API key and PIX key
            3. payout = net_value - amount_paid * fee_percent / 100
            4. Request the PIX transfer at the gateway
            5. One transaction: PAID -> PAYOUT_PENDING and Transfer insert

        Returns:
            ServiceResult with the created Transfer, or a failure with one of
            ALREADY_APPLIED, SUB_ACCOUNT_NOT_READY, NON_POSITIVE_PAYOUT,
            GATEWAY_ERROR, LOST_RACE
        """
        logger = self.get_logger()
        order.refresh_from_db()
        context = {"payment_order_id": str(order.id), "contract_id": str(order.contract_id)}

        if order.status != PaymentOrderState.PAID or Transfer.objects.filter(
            payment_order=order
        ).exists():
            logger.info("Payout already handled", extra={**context, "status": order.status})
            return ServiceResult.failure("Payout already handled", error_code="ALREADY_APPLIED")

        contract = order.contract
        sub_account = PayeeSubAccount.objects.filter(landlord_id=contract.landlord_id).first()
        if sub_account is None or not sub_account.can_receive_payouts:
            logger.warning(
                "Landlord cannot receive payouts, order stays PAID",
                extra={**context, "landlord_id": str(contract.landlord_id)},
            )
            return ServiceResult.failure(
                "Landlord payout account is not ready",
                error_code="SUB_ACCOUNT_NOT_READY",
            )

        amount_paid = order.amount_paid or order.amount_due
        net_value = order.net_value if order.net_value is not None else amount_paid
        payout = calculate_payout(amount_paid, net_value, sub_account.platform_fee_percent)

        if payout <= 0:
            logger.warning(
                "Computed payout is not positive, skipping",
                extra={**context, "payout": str(payout), "net_value": str(net_value)},
            )
            return ServiceResult.failure("Nothing to pay out", error_code="NON_POSITIVE_PAYOUT")

        params = CreatePayoutParams(
            value=payout,
            pix_key=sub_account.pix_key,
            pix_key_type=sub_account.pix_key_type,
            description=(
                f"Rent payout {contract.property_label} - installment {order.installment_number}"
            ),
        )

        try:
            result = self.gateway.create_payout(sub_account.api_key, params)
        except GatewayError as e:
            escalation = PayoutFailureEscalation(
                f"Payout request for {contract.property_label} was rejected by the gateway",
                landlord_id=str(contract.landlord_id),
                property_label=contract.property_label,
                amount=str(payout),
                reason=e.message,
                dedupe_key=f"{order.id}:payout_failed:{order.version}",
                details={"payment_order_id": str(order.id)},
            )
            # Flagged orders are skipped by the payout sweep until an admin clears them
            with self.atomic():
                LedgerStore.touch(
                    order,
                    needs_review=True,
                    review_reason=f"Payout rejected by the gateway: {e.message}",
                )
                self.escalate(escalation)
            return ServiceResult.from_exception(e, error_code="GATEWAY_ERROR")

        try:
            with self.atomic():
                if not LedgerStore.transition(order, order.mark_payout_pending):
                    raise ConflictError("Payment order left PAID during payout")
                transfer = Transfer.objects.create(
                    payment_order=order,
                    landlord_id=contract.landlord_id,
                    external_transfer_id=result.id,
                    value=payout,
                )
        except (ConflictError, IntegrityError):
            LedgerStore.touch(
                order,
                needs_review=True,
                review_reason=f"Gateway transfer {result.id} accepted after another payout won",
            )
            logger.error(
                "Gateway transfer accepted but ledger already moved, manual reconciliation required",
                extra={**context, "external_transfer_id": result.id, "payout": str(payout)},
            )
            return ServiceResult.failure(
                "Another payout already claimed this order",
                error_code="LOST_RACE",
            )

        logger.info(
            "Payout requested",
            extra={
                **context,
                "transfer_id": str(transfer.id),
                "external_transfer_id": transfer.external_transfer_id,
                "payout": str(payout),
            },
        )
        return ServiceResult.ok(transfer)

    def complete_transfer(self, transfer: Transfer, effective_date: date | None) -> ServiceResult:
        """
        Apply a settled transfer: Transfer -> DONE, order -> RECEIVED.

        Withdrawals have no order; only the Transfer moves. Replays find
        the Transfer already DONE and return ALREADY_APPLIED.

        Must run inside a transaction. The landlord notification is written
        in that same transaction, so a failure to record it rolls the
        settlement back and the retried event applies both.
        """
        if transfer.status != TransferState.PENDING or not LedgerStore.transition(
            transfer, transfer.mark_done, effective_date=effective_date
        ):
            return ServiceResult.failure("Transfer already settled", error_code="ALREADY_APPLIED")

        result = {"transfer_id": str(transfer.id)}

        if transfer.is_withdrawal:
            self.notifier.notify(
                user_id=transfer.landlord_id,
                title="Withdrawal completed",
                message=f"R$ {transfer.value} was transferred to your PIX key.",
                action_link=self.config.action_link("account/payments"),
                idempotency_key=f"{transfer.pk}:{TransferState.DONE}",
            )
        else:
            order = transfer.payment_order
            LedgerStore.guarded_update(
                PaymentOrder,
                order.pk,
                [PaymentOrderState.PAYOUT_PENDING],
                status=PaymentOrderState.RECEIVED,
            )
            contract = order.contract
            self.notifier.notify(
                user_id=contract.landlord_id,
                title="Payout received",
                message=(
                    f"R$ {transfer.value} for {contract.property_label} "
                    f"(installment {order.installment_number}) was transferred to you."
                ),
                action_link=self.config.action_link(f"contracts/{contract.pk}"),
                idempotency_key=f"{order.pk}:{PaymentOrderState.RECEIVED}",
            )
            result["payment_order_id"] = str(order.pk)

        self.get_logger().info("Transfer settled", extra={**result, "kind": transfer.kind})
        return ServiceResult.ok(result)

    def handle_transfer_failure(
        self, transfer: Transfer, status: str, reason: str
    ) -> ServiceResult:
        """
        Apply a failed or cancelled transfer.

        Transfer PENDING -> ``status``; for an installment payout the order
        also goes PAYOUT_PENDING -> PAID. Only the writer that moved the
        Transfer escalates to admins.

        Must run inside a transaction. The escalation notifications are
        written in that same transaction: if they cannot be recorded the
        state change rolls back with them, and the retried event escalates.

        Args:
            transfer: Transfer the gateway reported on
            status: TransferState.FAILED or TransferState.CANCELLED
            reason: Gateway-provided failure reason
        """
        method = (
            transfer.mark_cancelled if status == TransferState.CANCELLED else transfer.mark_failed
        )

        if transfer.status != TransferState.PENDING or not LedgerStore.transition(
            transfer, method, fail_reason=reason
        ):
            return ServiceResult.failure("Transfer already settled", error_code="ALREADY_APPLIED")

        details = {"transfer_id": str(transfer.pk)}

        if transfer.is_withdrawal:
            property_label = "Manual withdrawal"
            self.notifier.notify(
                user_id=transfer.landlord_id,
                title="Withdrawal failed",
                message=(
                    f"Your withdrawal of R$ {transfer.value} could not be completed. "
                    "The amount remains in your balance."
                ),
                action_link=self.config.action_link("account/payments"),
                idempotency_key=f"{transfer.pk}:{transfer.status}",
            )
        else:
            order = transfer.payment_order
            LedgerStore.guarded_update(
                PaymentOrder,
                order.pk,
                [PaymentOrderState.PAYOUT_PENDING],
                status=PaymentOrderState.PAID,
            )
            property_label = order.contract.property_label
            details["payment_order_id"] = str(order.pk)

        self.escalate(
            PayoutFailureEscalation(
                f"Payout for {property_label} {transfer.status}",
                landlord_id=str(transfer.landlord_id),
                property_label=property_label,
                amount=str(transfer.value),
                reason=reason or "not informed",
                dedupe_key=f"{transfer.pk}:{transfer.status}",
                details=details,
            )
        )
        return ServiceResult.ok({"transfer_id": str(transfer.pk), "status": transfer.status})

    def escalate(self, escalation: PayoutFailureEscalation) -> None:
        """
        Log a payout failure and route it to every administrator.

        Raises whatever the notification sink raises; callers run this in
        the transaction of the state change it reports.
        """
        self.get_logger().error(
            escalation.message,
            extra={"error_code": escalation.error_code, **escalation.details},
        )
        details = escalation.details
        self.notifier.escalate_to_admins(
            title="Payout failed",
            message=(
                f"{escalation.message}. Landlord {details['landlord_id']}, "
                f"amount R$ {details['amount']}, reason: {details['reason']}"
            ),
            idempotency_key=escalation.dedupe_key,
            details=details,
        )
