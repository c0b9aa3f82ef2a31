"""
Charge issuer for billing tenants.

ChargeIssuer creates the gateway charge for one PaymentOrder and records
it locally. Every precondition is checked before the external call, and
the local Charge row is written only after the gateway accepted the
charge, so a failed call leaves nothing behind.

Usage:
    from payments.adapters import AsaasAdapter
    from payments.config import PaymentsConfig
    from payments.services import ChargeIssuer

    issuer = ChargeIssuer(gateway=AsaasAdapter, config=PaymentsConfig.from_settings())
    charge = issuer.issue_charge(order.id, BillingType.PIX)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import IntegrityError
from django.utils import timezone

from core.exceptions import NotFoundError, PrerequisiteMissingError
from core.services import BaseService

from payments.adapters import CreateChargeParams
from payments.exceptions import (
    ChargeAlreadyExistsError,
    GatewayError,
    InvalidStateTransitionError,
)
from payments.ledger import LedgerStore
from payments.models import Charge, PayeeSubAccount, PaymentOrder
from payments.state_machines import BillingType, PaymentOrderState

if TYPE_CHECKING:
    from uuid import UUID

    from core.protocols import PaymentGateway
    from payments.config import PaymentsConfig


class ChargeIssuer(BaseService):
    """
    Issues and cancels gateway charges for payment orders.

    Preconditions of issue_charge (all checked before the gateway call):
        1. PaymentOrder exists and is PENDING
        2. No Charge is attached yet
        3. Contract is ACTIVE
        4. Landlord's sub-account has an API key and wallet id
        5. Due date is not in the past
        6. Tenant has a gateway customer id
        7. The platform wallet receiving the commission split is configured

    Gateway errors propagate unmodified; retry policy belongs to the caller.
    """

    def __init__(self, gateway: PaymentGateway, config: PaymentsConfig):
        self.gateway = gateway
        self.config = config

    def issue_charge(
        self,
        payment_order_id: UUID | str,
        billing_type: str = BillingType.BANK_SLIP,
    ) -> Charge:
        """
        Create the gateway charge for a payment order.

        Args:
            payment_order_id: Order to bill
            billing_type: BillingType.BANK_SLIP or BillingType.PIX

        Returns:
            The created Charge

        Raises:
            NotFoundError: Order does not exist
            InvalidStateTransitionError: Order not PENDING, contract not
                ACTIVE, or due date in the past
            ChargeAlreadyExistsError: Order already has a charge
            PrerequisiteMissingError: Sub-account, customer id or platform
                wallet missing
            GatewayError: Gateway call failed
        """
        logger = self.get_logger()

        order = (
            PaymentOrder.objects.select_related("contract", "contract__tenant")
            .filter(id=payment_order_id)
            .first()
        )
        if order is None:
            raise NotFoundError(
                "Payment order not found",
                error_code="PAYMENT_ORDER_NOT_FOUND",
                details={"payment_order_id": str(payment_order_id)},
            )

        context = {"payment_order_id": str(order.id), "contract_id": str(order.contract_id)}

        if order.status != PaymentOrderState.PENDING:
            raise InvalidStateTransitionError(
                f"Cannot issue a charge for a '{order.status}' payment order",
                details={**context, "current_state": order.status},
            )

        if Charge.objects.filter(payment_order=order).exists():
            raise ChargeAlreadyExistsError("Payment order already has a charge", details=context)

        # Imported here: contracts depends on payments, not the reverse
        from contracts.models import ContractState

        contract = order.contract
        if contract.status != ContractState.ACTIVE:
            raise InvalidStateTransitionError(
                f"Cannot issue a charge for a '{contract.status}' contract",
                details={**context, "contract_status": contract.status},
            )

        sub_account = PayeeSubAccount.objects.filter(landlord_id=contract.landlord_id).first()
        if sub_account is None or not sub_account.can_receive_charges:
            raise PrerequisiteMissingError(
                "Landlord payment account is not provisioned",
                error_code="SUB_ACCOUNT_NOT_PROVISIONED",
                details={**context, "landlord_id": str(contract.landlord_id)},
            )

        if order.due_date < timezone.localdate():
            raise InvalidStateTransitionError(
                "Cannot issue a charge with a past due date",
                details={**context, "due_date": order.due_date.isoformat()},
            )

        tenant = contract.tenant
        if not tenant.payment_customer_id:
            raise PrerequisiteMissingError(
                "Tenant has no payment gateway customer",
                error_code="CUSTOMER_NOT_REGISTERED",
                details={**context, "tenant_id": str(tenant.pk)},
            )

        if not self.config.platform_wallet_id:
            raise PrerequisiteMissingError(
                "Platform wallet for the commission split is not configured",
                error_code="PLATFORM_WALLET_NOT_CONFIGURED",
                details=context,
            )

        fee_percent = sub_account.platform_fee_percent
        params = CreateChargeParams(
            customer_id=tenant.payment_customer_id,
            billing_type=billing_type,
            due_date=order.due_date,
            value=order.amount_due,
            external_reference=str(order.id),
            split_wallet_id=self.config.platform_wallet_id,
            split_percent=fee_percent,
            description=(
                f"Rent {contract.property_label} - installment "
                f"{order.installment_number} of {contract.duration_in_months}"
            ),
            fine_percent=self.config.late_fee_percent,
            interest_percent=self.config.monthly_interest_percent,
            cancel_registration_after_days=self.config.registration_cancellation_days,
        )

        result = self.gateway.create_charge(sub_account.api_key, params)

        try:
            with self.atomic():
                charge = Charge.objects.create(
                    payment_order=order,
                    external_charge_id=result.id,
                    billing_type=billing_type,
                    value=order.amount_due,
                    due_date=order.due_date,
                    platform_fee_percent=fee_percent,
                    invoice_url=result.invoice_url,
                    bank_slip_url=result.bank_slip_url,
                    our_number=result.our_number,
                    external_status=result.status,
                )
                LedgerStore.touch(order)
        except IntegrityError as e:
            logger.error(
                "Concurrent charge issuance, discarding duplicate gateway charge",
                extra={**context, "external_charge_id": result.id},
            )
            self._discard_orphan(sub_account.api_key, result.id, context)
            raise ChargeAlreadyExistsError(
                "Payment order already has a charge",
                details={**context, "external_charge_id": result.id},
            ) from e

        logger.info(
            "Charge issued",
            extra={
                **context,
                "charge_id": str(charge.id),
                "external_charge_id": charge.external_charge_id,
                "billing_type": billing_type,
                "value": str(charge.value),
            },
        )
        return charge

    def cancel_charge(self, charge: Charge) -> None:
        """
        Cancel a charge at the gateway and stamp ``cancel_requested_at``.

        Raises:
            PrerequisiteMissingError: Landlord sub-account has no API key
            GatewayError: Gateway call failed
        """
        landlord_id = charge.payment_order.contract.landlord_id
        sub_account = PayeeSubAccount.objects.filter(landlord_id=landlord_id).first()
        if sub_account is None or not sub_account.api_key:
            raise PrerequisiteMissingError(
                "Landlord payment account is not provisioned",
                error_code="SUB_ACCOUNT_NOT_PROVISIONED",
                details={"charge_id": str(charge.id), "landlord_id": str(landlord_id)},
            )

        self.gateway.cancel_charge(sub_account.api_key, charge.external_charge_id)

        charge.cancel_requested_at = timezone.now()
        charge.save(update_fields=["cancel_requested_at", "updated_at"])
        self.get_logger().info(
            "Charge cancellation requested",
            extra={
                "charge_id": str(charge.id),
                "external_charge_id": charge.external_charge_id,
            },
        )

    def _discard_orphan(self, api_key: str, external_charge_id: str, context: dict) -> None:
        try:
            self.gateway.cancel_charge(api_key, external_charge_id)
        except GatewayError:
            self.get_logger().exception(
                "Could not cancel duplicate gateway charge, manual cleanup required",
                extra={**context, "external_charge_id": external_charge_id},
            )
