"""
Tests for ChargeIssuer.

Test Classes:
    TestIssueChargePreconditions: every check runs before the gateway call
    TestIssueCharge: gateway request and local Charge row
    TestConcurrentIssue: duplicate insert discards the orphan gateway charge
    TestCancelCharge: gateway cancellation
"""

from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import IntegrityError
from django.utils import timezone

from contracts.models import ContractState
from core.exceptions import NotFoundError, PrerequisiteMissingError
from payments.exceptions import (
    ChargeAlreadyExistsError,
    GatewayRequestError,
    GatewayUnavailableError,
    InvalidStateTransitionError,
)
from payments.models import Charge
from payments.services import ChargeIssuer
from payments.state_machines import BillingType, PaymentOrderState
from payments.tests.factories import ChargeFactory, PayeeSubAccountFactory, PaymentOrderFactory


class TestIssueChargePreconditions:
    def test_unknown_order(self, db, charge_issuer, gateway):
        with pytest.raises(NotFoundError) as exc_info:
            charge_issuer.issue_charge("00000000-0000-0000-0000-000000000000")

        assert exc_info.value.error_code == "PAYMENT_ORDER_NOT_FOUND"
        gateway.create_charge.assert_not_called()

    @pytest.mark.parametrize(
        "status",
        [PaymentOrderState.OVERDUE, PaymentOrderState.PAID, PaymentOrderState.CANCELLED],
    )
    def test_order_not_pending(self, charge_issuer, gateway, pending_order, status):
        pending_order.status = status
        pending_order.save()

        with pytest.raises(InvalidStateTransitionError):
            charge_issuer.issue_charge(pending_order.id)

        gateway.create_charge.assert_not_called()

    def test_charge_already_exists(self, charge_issuer, gateway, charged_order):
        with pytest.raises(ChargeAlreadyExistsError):
            charge_issuer.issue_charge(charged_order.id)

        gateway.create_charge.assert_not_called()
        assert Charge.objects.filter(payment_order=charged_order).count() == 1

    def test_contract_not_active(self, charge_issuer, gateway, pending_order):
        contract = pending_order.contract
        contract.status = ContractState.CANCELLED
        contract.save()

        with pytest.raises(InvalidStateTransitionError):
            charge_issuer.issue_charge(pending_order.id)

        gateway.create_charge.assert_not_called()

    def test_sub_account_not_provisioned(self, db, charge_issuer, gateway):
        order = PaymentOrderFactory()
        PayeeSubAccountFactory(landlord=order.contract.landlord, unprovisioned=True)

        with pytest.raises(PrerequisiteMissingError) as exc_info:
            charge_issuer.issue_charge(order.id)

        assert exc_info.value.error_code == "SUB_ACCOUNT_NOT_PROVISIONED"
        gateway.create_charge.assert_not_called()

    def test_sub_account_missing(self, db, charge_issuer, gateway):
        order = PaymentOrderFactory()

        with pytest.raises(PrerequisiteMissingError):
            charge_issuer.issue_charge(order.id)

        gateway.create_charge.assert_not_called()

    def test_past_due_date(self, charge_issuer, gateway, pending_order):
        pending_order.due_date = timezone.localdate() - timedelta(days=1)
        pending_order.save()

        with pytest.raises(InvalidStateTransitionError):
            charge_issuer.issue_charge(pending_order.id)

        gateway.create_charge.assert_not_called()

    def test_tenant_without_customer_id(self, charge_issuer, gateway, pending_order):
        tenant = pending_order.contract.tenant
        tenant.payment_customer_id = None
        tenant.save()

        with pytest.raises(PrerequisiteMissingError) as exc_info:
            charge_issuer.issue_charge(pending_order.id)

        assert exc_info.value.error_code == "CUSTOMER_NOT_REGISTERED"
        gateway.create_charge.assert_not_called()

    def test_platform_wallet_not_configured(self, gateway, payments_config, pending_order):
        config = replace(payments_config, platform_wallet_id="")
        issuer = ChargeIssuer(gateway=gateway, config=config)

        with pytest.raises(PrerequisiteMissingError) as exc_info:
            issuer.issue_charge(pending_order.id)

        assert exc_info.value.error_code == "PLATFORM_WALLET_NOT_CONFIGURED"
        gateway.create_charge.assert_not_called()
        assert not Charge.objects.filter(payment_order=pending_order).exists()


class TestIssueCharge:
    def test_creates_charge_with_platform_split(
        self, charge_issuer, gateway, pending_order, sub_account
    ):
        charge = charge_issuer.issue_charge(pending_order.id, BillingType.PIX)

        api_key, params = gateway.create_charge.call_args.args
        assert api_key == sub_account.api_key
        assert params.customer_id == pending_order.contract.tenant.payment_customer_id
        assert params.billing_type == BillingType.PIX
        assert params.value == Decimal("1500.00")
        assert params.due_date == pending_order.due_date
        assert params.external_reference == str(pending_order.id)
        assert params.split_wallet_id == "wallet_platform"
        assert params.split_percent == Decimal("5.00")
        assert "installment 1 of 12" in params.description

        assert charge.external_charge_id == "pay_000000000001"
        assert charge.billing_type == BillingType.PIX
        assert charge.value == Decimal("1500.00")
        assert charge.invoice_url == "https://gateway.test/i/pay_000000000001"
        assert charge.our_number == "123456"

    def test_order_stays_pending_and_version_bumps(self, charge_issuer, pending_order):
        version = pending_order.version

        charge_issuer.issue_charge(pending_order.id)

        pending_order.refresh_from_db()
        assert pending_order.status == PaymentOrderState.PENDING
        assert pending_order.version == version + 1
        assert pending_order.has_charge

    def test_uses_sub_account_fee(self, charge_issuer, gateway, pending_order, sub_account):
        sub_account.platform_fee_percent = Decimal("8.50")
        sub_account.save()

        charge = charge_issuer.issue_charge(pending_order.id)

        assert gateway.create_charge.call_args.args[1].split_percent == Decimal("8.50")
        assert charge.platform_fee_percent == Decimal("8.50")

    def test_gateway_error_leaves_no_charge(self, charge_issuer, gateway, pending_order):
        gateway.create_charge.side_effect = GatewayRequestError(
            "Invalid customer", status_code=400, gateway_errors=["Invalid customer"]
        )

        with pytest.raises(GatewayRequestError):
            charge_issuer.issue_charge(pending_order.id)

        assert not Charge.objects.filter(payment_order=pending_order).exists()


class TestConcurrentIssue:
    def test_duplicate_insert_cancels_gateway_charge(
        self, charge_issuer, gateway, pending_order, sub_account
    ):
        with patch(
            "payments.services.charge_issuer.Charge.objects.create",
            side_effect=IntegrityError("duplicate key"),
        ):
            with pytest.raises(ChargeAlreadyExistsError):
                charge_issuer.issue_charge(pending_order.id)

        gateway.cancel_charge.assert_called_once_with(sub_account.api_key, "pay_000000000001")

    def test_orphan_cleanup_failure_still_raises_conflict(
        self, charge_issuer, gateway, pending_order
    ):
        gateway.cancel_charge.side_effect = GatewayUnavailableError("down", status_code=503)

        with patch(
            "payments.services.charge_issuer.Charge.objects.create",
            side_effect=IntegrityError("duplicate key"),
        ):
            with pytest.raises(ChargeAlreadyExistsError):
                charge_issuer.issue_charge(pending_order.id)


class TestCancelCharge:
    def test_cancels_at_gateway(self, charge_issuer, gateway, charged_order, sub_account):
        charge = charged_order.charge

        charge_issuer.cancel_charge(charge)

        gateway.cancel_charge.assert_called_once_with(sub_account.api_key, "pay_charged000001")
        charge.refresh_from_db()
        assert charge.cancel_requested_at is not None

    def test_requires_api_key(self, db, charge_issuer, gateway):
        charge = ChargeFactory()

        with pytest.raises(PrerequisiteMissingError):
            charge_issuer.cancel_charge(charge)

        gateway.cancel_charge.assert_not_called()
