"""
Contract lifecycle service.

ContractLifecycleService drives a contract from document review through
signature to activation, and on to cancellation or completion. Every
status change is a guarded write through LedgerStore.

State Flow:
    PENDING_DOCS -> UNDER_REVIEW -> AWAITING_SIGNATURES -> ACTIVE -> FINISHED
    UNDER_REVIEW -> PENDING_DOCS (rejected)
    UNDER_REVIEW -> ACTIVE (force-activate)
    any non-terminal -> CANCELLED

Activation creates the contract's full installment schedule in the same
transaction; it is never regenerated.

Usage:
    from contracts.services import ContractLifecycleService

    orders = ContractLifecycleService.activate(contract, source="esignature")
    result = ContractLifecycleService.cancel(contract, actor=request.user)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from django.db import transaction
from django.utils import timezone

from core.exceptions import PermissionDeniedError, PrerequisiteMissingError, ValidationError
from core.helpers import add_months
from core.services import BaseService

from contracts.collaborators import get_document_collaborator
from contracts.models import Contract, ContractState
from notifications.services import NotificationService
from payments.adapters import AsaasAdapter
from payments.config import PaymentsConfig
from payments.exceptions import GatewayError, InvalidStateTransitionError
from payments.ledger import LedgerStore
from payments.models import Charge, PaymentOrder
from payments.services import ChargeIssuer, SubAccountService
from payments.state_machines import PaymentOrderState

if TYPE_CHECKING:
    from collections.abc import Callable

    from authentication.models import User

ACTIVATION_SOURCES = ("esignature", "force")


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class CancellationResult:
    """
    Outcome of a contract cancellation.

    Attributes:
        contract: The cancelled contract
        cancelled_order_ids: Installments moved to CANCELLED
        cancelled_charge_ids: Charges cancelled at the gateway
        failed_charge_ids: Charges the gateway could not cancel
    """

    contract: Contract
    cancelled_order_ids: list[str] = field(default_factory=list)
    cancelled_charge_ids: list[str] = field(default_factory=list)
    failed_charge_ids: list[str] = field(default_factory=list)


# =============================================================================
# Service
# =============================================================================


class ContractLifecycleService(BaseService):
    """
    Lifecycle transitions for rental contracts.

    All methods are class-level - no instance state is maintained.
    """

    @classmethod
    def submit_for_review(cls, contract: Contract) -> Contract:
        """Documents uploaded: PENDING_DOCS -> UNDER_REVIEW."""
        return cls._apply(contract, contract.submit_for_review)

    @classmethod
    def approve(cls, contract: Contract, envelope_id: str | None = None) -> Contract:
        """
        Documents approved: UNDER_REVIEW -> AWAITING_SIGNATURES.

        Records the signature envelope id when given and generates the
        contract document to be signed.
        """
        fields = {"envelope_id": envelope_id} if envelope_id else {}
        with cls.atomic():
            cls._apply(contract, contract.approve, **fields)
            get_document_collaborator().generate_contract_artifact(contract.pk)
        return contract

    @classmethod
    def reject(cls, contract: Contract) -> Contract:
        """Documents rejected: UNDER_REVIEW -> PENDING_DOCS."""
        return cls._apply(contract, contract.reject)

    @classmethod
    def activate(cls, contract: Contract, source: str = "esignature") -> list[PaymentOrder]:
        """
        Activate a contract and create its installment schedule.

        AWAITING_SIGNATURES -> ACTIVE (``source="force"`` also accepts
        UNDER_REVIEW). Creates ``duration_in_months`` PaymentOrders due
        start_date + 1..N months with the current monthly amount frozen.
        Both parties are notified in the same transaction; after commit the
        first installment's charge is queued.

        Returns:
            The contract's PaymentOrders, ordered by installment. An
            already ACTIVE contract returns its existing orders.

        Raises:
            InvalidStateTransitionError: Contract cannot be activated from
                its current status
            ValidationError: Monthly amount is not positive
        """
        if source not in ACTIVATION_SOURCES:
            raise ValueError(f"Unknown activation source: {source}")

        logger = cls.get_logger()
        context = {"contract_id": str(contract.pk), "source": source}

        if contract.status == ContractState.ACTIVE:
            logger.info("Contract already active", extra=context)
            return cls._orders(contract)

        if contract.monthly_amount <= 0:
            raise ValidationError(
                "Contract monthly amount must be positive",
                error_code="NON_POSITIVE_MONTHLY_AMOUNT",
                details={**context, "monthly_amount": str(contract.monthly_amount)},
            )

        method = contract.force_activate if source == "force" else contract.activate

        with cls.atomic():
            if not LedgerStore.transition(contract, method, activated_at=timezone.now()):
                contract.refresh_from_db()
                if contract.status == ContractState.ACTIVE:
                    logger.info("Contract activated by a concurrent writer", extra=context)
                    return cls._orders(contract)
                raise InvalidStateTransitionError(
                    f"Cannot activate a '{contract.status}' contract",
                    details={**context, "current_state": contract.status},
                )

            amount = contract.monthly_amount
            orders = PaymentOrder.objects.bulk_create(
                [
                    PaymentOrder(
                        contract=contract,
                        installment_number=number,
                        due_date=add_months(contract.start_date, number),
                        amount_due=amount,
                    )
                    for number in range(1, contract.duration_in_months + 1)
                ]
            )
            SubAccountService.ensure_for_landlord(contract.landlord)

            first_order_id = str(orders[0].pk)
            transaction.on_commit(lambda: cls._queue_first_charge(first_order_id), robust=True)
            cls._notify_parties(contract)

        logger.info(
            "Contract activated",
            extra={**context, "installments": len(orders), "amount_due": str(amount)},
        )
        return orders

    @classmethod
    def force_activate(cls, contract: Contract, actor: User) -> list[PaymentOrder]:
        """
        Activate without waiting for signatures.

        Raises:
            PermissionDeniedError: Actor is neither the landlord nor an admin
            InvalidStateTransitionError: Contract not UNDER_REVIEW or
                AWAITING_SIGNATURES
        """
        cls._require_landlord_or_admin(contract, actor, "force-activate")
        return cls.activate(contract, source="force")

    @classmethod
    def cancel(cls, contract: Contract, actor: User | None = None) -> CancellationResult:
        """
        Cancel a contract and its unpaid installments.

        PENDING/OVERDUE installments move to CANCELLED and their charges are
        cancelled at the gateway one by one; a gateway failure is logged
        and never stops the loop. Paid installments and transfers are left
        untouched. The signature envelope is deleted best-effort.

        Args:
            contract: Contract to cancel
            actor: Requesting user; None for system-initiated cancellations

        Raises:
            PermissionDeniedError: Actor is neither the landlord nor an admin
            InvalidStateTransitionError: Contract already CANCELLED or FINISHED
        """
        if actor is not None:
            cls._require_landlord_or_admin(contract, actor, "cancel")

        logger = cls.get_logger()
        context = {"contract_id": str(contract.pk)}
        result = CancellationResult(contract=contract)
        now = timezone.now()
        open_states = PaymentOrderState.open_states()

        with cls.atomic():
            if not LedgerStore.transition(contract, contract.cancel, cancelled_at=now):
                contract.refresh_from_db()
                raise InvalidStateTransitionError(
                    f"Cannot cancel a '{contract.status}' contract",
                    details={**context, "current_state": contract.status},
                )

            order_ids = PaymentOrder.objects.filter(
                contract=contract, status__in=open_states
            ).values_list("pk", flat=True)
            for order_id in order_ids:
                if LedgerStore.guarded_update(
                    PaymentOrder,
                    order_id,
                    open_states,
                    status=PaymentOrderState.CANCELLED,
                    cancelled_at=now,
                ):
                    result.cancelled_order_ids.append(str(order_id))

        issuer = ChargeIssuer(gateway=AsaasAdapter, config=PaymentsConfig.from_settings())
        charges = Charge.objects.select_related("payment_order__contract").filter(
            payment_order_id__in=result.cancelled_order_ids
        )
        for charge in charges:
            try:
                issuer.cancel_charge(charge)
            except (GatewayError, PrerequisiteMissingError) as e:
                result.failed_charge_ids.append(str(charge.pk))
                logger.error(
                    "Gateway charge cancellation failed",
                    extra={**context, "charge_id": str(charge.pk), "error_code": e.error_code},
                )
            else:
                result.cancelled_charge_ids.append(str(charge.pk))

        if contract.envelope_id:
            cls._delete_envelope(contract)

        logger.info(
            "Contract cancelled",
            extra={
                **context,
                "cancelled_orders": len(result.cancelled_order_ids),
                "cancelled_charges": len(result.cancelled_charge_ids),
                "failed_charges": len(result.failed_charge_ids),
            },
        )
        return result

    @classmethod
    def finish(cls, contract: Contract) -> Contract:
        """
        ACTIVE -> FINISHED once the end date has passed.

        Raises:
            InvalidStateTransitionError: Not ACTIVE or end date not reached
        """
        if contract.end_date >= timezone.localdate():
            raise InvalidStateTransitionError(
                "Contract has not reached its end date",
                details={"contract_id": str(contract.pk), "end_date": contract.end_date.isoformat()},
            )
        return cls._apply(contract, contract.finish, finished_at=timezone.now())

    # =========================================================================
    # Internal
    # =========================================================================

    @classmethod
    def _apply(cls, contract: Contract, method: Callable, **fields) -> Contract:
        if not LedgerStore.transition(contract, method, **fields):
            contract.refresh_from_db()
            raise InvalidStateTransitionError(
                f"Contract changed concurrently, now '{contract.status}'",
                details={"contract_id": str(contract.pk), "transition": method.__name__},
            )
        cls.get_logger().info(
            f"Contract {method.__name__}",
            extra={"contract_id": str(contract.pk), "status": contract.status},
        )
        return contract

    @staticmethod
    def _orders(contract: Contract) -> list[PaymentOrder]:
        return list(contract.payment_orders.order_by("installment_number"))

    @staticmethod
    def _require_landlord_or_admin(contract: Contract, actor: User, action: str) -> None:
        if actor.pk != contract.landlord_id and not actor.is_admin:
            raise PermissionDeniedError(
                f"Only the landlord or an admin can {action} this contract",
                details={"contract_id": str(contract.pk), "actor_id": str(actor.pk)},
            )

    @classmethod
    def _queue_first_charge(cls, payment_order_id: str) -> None:
        from payments.tasks import issue_charge_for_order

        issue_charge_for_order.delay(payment_order_id)

    @classmethod
    def _notify_parties(cls, contract: Contract) -> None:
        link = PaymentsConfig.from_settings().action_link(f"contracts/{contract.pk}")
        key = f"{contract.pk}:{ContractState.ACTIVE.value}"
        for user_id in (contract.landlord_id, contract.tenant_id):
            NotificationService.notify(
                user_id=user_id,
                title="Contract active",
                message=f"The rental contract for {contract.property_label} is now active.",
                action_link=link,
                idempotency_key=f"{key}:{user_id}",
            )

    @classmethod
    def _delete_envelope(cls, contract: Contract) -> None:
        try:
            get_document_collaborator().delete_envelope(contract.envelope_id)
        except Exception:
            cls.get_logger().exception(
                "Signature envelope deletion failed",
                extra={"contract_id": str(contract.pk), "envelope_id": contract.envelope_id},
            )
