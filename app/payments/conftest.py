"""
Pytest fixtures shared by all payment tests.

Fixtures build a landlord with a provisioned gateway account, installments
in the common states, and a mock gateway standing in for AsaasAdapter.

Usage:
    def test_issue(charge_issuer, gateway, pending_order):
        gateway.create_charge.return_value = ChargeResult(id="pay_1", status="PENDING")
        charge = charge_issuer.issue_charge(pending_order.id)
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from authentication.tests.factories import AdminFactory
from contracts.tests.factories import ContractFactory
from payments.adapters import BalanceResult, ChargeResult, PayoutResult
from payments.config import PaymentsConfig
from payments.services import ChargeIssuer, PayoutOrchestrator, WithdrawalService
from payments.tests.factories import (
    ChargeFactory,
    PayeeSubAccountFactory,
    PaymentOrderFactory,
    TransferFactory,
)

# =============================================================================
# Configuration and Collaborators
# =============================================================================


@pytest.fixture
def payments_config():
    """Settings snapshot with deterministic values."""
    return PaymentsConfig(
        platform_wallet_id="wallet_platform",
        platform_fee_percent=Decimal("5.00"),
        minimum_withdrawal_amount=Decimal("20.00"),
        frontend_url="https://app.test",
    )


@pytest.fixture
def gateway():
    """Mock payment gateway with successful default responses."""
    mock = MagicMock(name="gateway")
    mock.create_charge.return_value = ChargeResult(
        id="pay_000000000001",
        status="PENDING",
        invoice_url="https://gateway.test/i/pay_000000000001",
        bank_slip_url="https://gateway.test/b/pay_000000000001.pdf",
        our_number="123456",
    )
    mock.create_payout.return_value = PayoutResult(
        id="tra_000000000001",
        status="PENDING",
        value=Decimal("1405.00"),
    )
    mock.get_balance.return_value = BalanceResult(value=Decimal("3000.00"))
    return mock


@pytest.fixture
def notifier():
    """Mock notification sink."""
    return MagicMock(name="notifier")


@pytest.fixture
def charge_issuer(gateway, payments_config):
    return ChargeIssuer(gateway=gateway, config=payments_config)


@pytest.fixture
def payout_orchestrator(gateway, payments_config, notifier):
    return PayoutOrchestrator(gateway=gateway, config=payments_config, notifier=notifier)


@pytest.fixture
def withdrawal_service(gateway, payments_config):
    return WithdrawalService(gateway=gateway, config=payments_config)


# =============================================================================
# Ledger Fixtures
# =============================================================================


@pytest.fixture
def active_contract(db):
    """Active contract whose landlord has a provisioned sub-account."""
    contract = ContractFactory(active=True)
    PayeeSubAccountFactory(landlord=contract.landlord)
    return contract


@pytest.fixture
def sub_account(active_contract):
    return active_contract.landlord.payee_sub_account


@pytest.fixture
def pending_order(active_contract):
    """PENDING installment due in ten days, no charge yet."""
    return PaymentOrderFactory(contract=active_contract, installment_number=1)


@pytest.fixture
def charged_order(pending_order):
    """PENDING installment with its gateway charge."""
    ChargeFactory(payment_order=pending_order, external_charge_id="pay_charged000001")
    return pending_order


@pytest.fixture
def paid_order(active_contract):
    """PAID installment: 1500.00 gross, 1480.00 net of gateway fees."""
    order = PaymentOrderFactory(contract=active_contract, installment_number=1, paid=True)
    ChargeFactory(payment_order=order, external_charge_id="pay_paid000000001")
    return order


@pytest.fixture
def pending_transfer(active_contract):
    """PENDING transfer of a PAYOUT_PENDING installment."""
    order = PaymentOrderFactory(
        contract=active_contract,
        installment_number=1,
        paid=True,
        status="payout_pending",
    )
    return TransferFactory(payment_order=order, external_transfer_id="tra_pending000001")


@pytest.fixture
def pending_withdrawal(active_contract):
    """PENDING manual withdrawal of the landlord's balance."""
    return TransferFactory(
        withdrawal=True,
        landlord=active_contract.landlord,
        external_transfer_id="tra_withdraw00001",
    )


@pytest.fixture
def admin_user(db):
    return AdminFactory()
