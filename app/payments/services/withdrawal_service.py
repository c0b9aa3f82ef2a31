"""
Manual withdrawals from a landlord's sub-account.

Landlords may move their available gateway balance to their PIX key at
any time, outside the per-installment payout flow. Each accepted
withdrawal is recorded as a Transfer of kind WITHDRAWAL, with no
installment, so the gateway's TRANSFER_* webhooks can settle it.

Usage:
    from payments.services import WithdrawalService

    service = WithdrawalService(gateway=AsaasAdapter, config=PaymentsConfig.from_settings())
    payout = service.request_withdrawal(landlord, amount=Decimal("150.00"))
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from core.exceptions import PrerequisiteMissingError, ValidationError
from core.helpers import quantize_money
from core.services import BaseService

from payments.adapters import CreatePayoutParams, with_retries
from payments.models import PayeeSubAccount, Transfer
from payments.state_machines import TransferKind

if TYPE_CHECKING:
    from authentication.models import User
    from core.protocols import PaymentGateway
    from payments.adapters import PayoutResult
    from payments.config import PaymentsConfig


class WithdrawalService(BaseService):
    """Balance-checked PIX withdrawals for landlords."""

    def __init__(self, gateway: PaymentGateway, config: PaymentsConfig):
        self.gateway = gateway
        self.config = config

    def request_withdrawal(self, landlord: User, amount: Decimal | None = None) -> PayoutResult:
        """
        Withdraw ``amount`` (or the whole balance) to the landlord's PIX key.

        The accepted transfer is stored as a PENDING withdrawal Transfer.

        Raises:
            PrerequisiteMissingError: No API key or PIX key on the sub-account
            ValidationError: Amount below the minimum or above the balance
            GatewayError: Gateway call failed
        """
        sub_account = PayeeSubAccount.objects.filter(landlord=landlord).first()
        if sub_account is None or not sub_account.can_receive_payouts:
            raise PrerequisiteMissingError(
                "Landlord payout account is not ready",
                error_code="SUB_ACCOUNT_NOT_READY",
                details={"landlord_id": str(landlord.pk)},
            )

        balance = with_retries(lambda: self.gateway.get_balance(sub_account.api_key)).value
        amount = quantize_money(balance if amount is None else Decimal(amount))
        minimum = self.config.minimum_withdrawal_amount

        if amount < minimum:
            raise ValidationError(
                f"Minimum withdrawal amount is R$ {minimum}",
                error_code="BELOW_MINIMUM_WITHDRAWAL",
                details={"amount": str(amount), "minimum": str(minimum)},
            )
        if amount > balance:
            raise ValidationError(
                "Insufficient balance",
                error_code="INSUFFICIENT_BALANCE",
                details={"amount": str(amount), "balance": str(balance)},
            )

        result = self.gateway.create_payout(
            sub_account.api_key,
            CreatePayoutParams(
                value=amount,
                pix_key=sub_account.pix_key,
                pix_key_type=sub_account.pix_key_type,
                description="Manual withdrawal",
            ),
        )
        transfer = Transfer.objects.create(
            kind=TransferKind.WITHDRAWAL,
            landlord=landlord,
            external_transfer_id=result.id,
            value=amount,
        )
        self.get_logger().info(
            "Withdrawal requested",
            extra={
                "transfer_id": str(transfer.pk),
                "landlord_id": str(landlord.pk),
                "amount": str(amount),
                "external_transfer_id": result.id,
            },
        )
        return result
