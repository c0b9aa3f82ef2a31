"""
Tests for ContractLifecycleService.

Test Classes:
    TestReviewFlow: submit / approve / reject
    TestActivate: activation and installment schedule creation
    TestForceActivate: permission checks for manual activation
    TestCancel: cancellation cascade to installments and gateway charges
    TestFinish: completion after the end date
"""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from freezegun import freeze_time

from authentication.tests.factories import AdminFactory, TenantFactory
from contracts.models import ContractArtifact, ContractState
from contracts.services import ContractLifecycleService
from contracts.tests.factories import ContractFactory
from core.exceptions import PermissionDeniedError, ValidationError
from notifications.models import Notification
from payments.exceptions import GatewayUnavailableError, InvalidStateTransitionError
from payments.models import PayeeSubAccount, PaymentOrder
from payments.state_machines import PaymentOrderState, TransferState
from payments.tests.factories import (
    ChargeFactory,
    PayeeSubAccountFactory,
    PaymentOrderFactory,
    TransferFactory,
)


class TestReviewFlow:
    def test_submit_for_review(self, db):
        contract = ContractFactory()

        ContractLifecycleService.submit_for_review(contract)

        assert contract.status == ContractState.UNDER_REVIEW

    def test_approve_records_envelope_and_generates_document(self, db):
        contract = ContractFactory(status=ContractState.UNDER_REVIEW)

        ContractLifecycleService.approve(contract, envelope_id="doc-123")

        contract.refresh_from_db()
        assert contract.status == ContractState.AWAITING_SIGNATURES
        assert contract.envelope_id == "doc-123"
        assert ContractArtifact.objects.filter(contract=contract).count() == 1

    def test_reject_returns_to_pending_docs(self, db):
        contract = ContractFactory(status=ContractState.UNDER_REVIEW)

        ContractLifecycleService.reject(contract)

        assert contract.status == ContractState.PENDING_DOCS

    def test_approve_from_wrong_state_raises(self, db):
        contract = ContractFactory(status=ContractState.PENDING_DOCS)

        with pytest.raises(InvalidStateTransitionError):
            ContractLifecycleService.approve(contract)


class TestActivate:
    def test_creates_one_order_per_month(self, db):
        contract = ContractFactory(
            awaiting_signatures=True,
            start_date=date(2025, 1, 1),
            duration_in_months=12,
        )

        orders = ContractLifecycleService.activate(contract)

        contract.refresh_from_db()
        assert contract.status == ContractState.ACTIVE
        assert contract.activated_at is not None
        assert len(orders) == 12
        assert PaymentOrder.objects.filter(contract=contract).count() == 12

        stored = list(contract.payment_orders.order_by("installment_number"))
        assert [o.installment_number for o in stored] == list(range(1, 13))
        assert stored[0].due_date == date(2025, 2, 1)
        assert stored[-1].due_date == date(2026, 1, 1)
        assert all(o.amount_due == Decimal("1500.00") for o in stored)
        assert all(o.status == PaymentOrderState.PENDING for o in stored)

    def test_due_dates_clamp_to_month_end(self, db):
        contract = ContractFactory(
            awaiting_signatures=True,
            start_date=date(2025, 1, 31),
            duration_in_months=3,
        )

        ContractLifecycleService.activate(contract)

        due_dates = list(
            contract.payment_orders.order_by("installment_number").values_list("due_date", flat=True)
        )
        assert due_dates == [date(2025, 2, 28), date(2025, 3, 31), date(2025, 4, 30)]

    def test_ensures_landlord_sub_account(self, db):
        contract = ContractFactory(awaiting_signatures=True)

        ContractLifecycleService.activate(contract)

        assert PayeeSubAccount.objects.filter(landlord=contract.landlord).exists()

    def test_second_activation_returns_existing_orders(self, db):
        contract = ContractFactory(awaiting_signatures=True, duration_in_months=6)

        first = ContractLifecycleService.activate(contract)
        second = ContractLifecycleService.activate(contract)

        assert [o.pk for o in first] == [o.pk for o in second]
        assert PaymentOrder.objects.filter(contract=contract).count() == 6

    def test_queues_first_charge_and_notifies_parties(
        self, db, django_capture_on_commit_callbacks
    ):
        contract = ContractFactory(awaiting_signatures=True, duration_in_months=3)

        with (
            patch("payments.tasks.issue_charge_for_order.delay") as mock_issue,
            patch("notifications.tasks.send_email_notification.delay"),
        ):
            with django_capture_on_commit_callbacks(execute=True):
                orders = ContractLifecycleService.activate(contract)

        mock_issue.assert_called_once_with(str(orders[0].pk))
        recipients = set(Notification.objects.values_list("recipient_id", flat=True))
        assert recipients == {contract.landlord_id, contract.tenant_id}

    def test_notifications_written_before_commit(self, db, django_capture_on_commit_callbacks):
        contract = ContractFactory(awaiting_signatures=True, duration_in_months=3)

        with patch("payments.tasks.issue_charge_for_order.delay") as mock_issue:
            with django_capture_on_commit_callbacks(execute=False) as callbacks:
                ContractLifecycleService.activate(contract)
                assert Notification.objects.count() == 2

        assert len(callbacks) == 3  # first charge + one e-mail per party
        mock_issue.assert_not_called()

    def test_zero_monthly_amount_is_rejected(self, db):
        contract = ContractFactory.build(
            awaiting_signatures=True,
            rent_amount=Decimal("0.00"),
            condo_fee=Decimal("0.00"),
            iptu_fee=Decimal("0.00"),
        )

        with pytest.raises(ValidationError) as exc_info:
            ContractLifecycleService.activate(contract)

        assert exc_info.value.error_code == "NON_POSITIVE_MONTHLY_AMOUNT"
        assert not PaymentOrder.objects.exists()

    def test_wrong_state_raises(self, db):
        contract = ContractFactory(status=ContractState.PENDING_DOCS)

        with pytest.raises(InvalidStateTransitionError):
            ContractLifecycleService.activate(contract)

        assert not PaymentOrder.objects.filter(contract=contract).exists()

    def test_unknown_source_rejected(self, db):
        contract = ContractFactory(awaiting_signatures=True)

        with pytest.raises(ValueError):
            ContractLifecycleService.activate(contract, source="webhook")


class TestForceActivate:
    def test_landlord_can_force_activate_under_review(self, db):
        contract = ContractFactory(status=ContractState.UNDER_REVIEW, duration_in_months=2)

        orders = ContractLifecycleService.force_activate(contract, actor=contract.landlord)

        assert contract.status == ContractState.ACTIVE
        assert len(orders) == 2

    def test_admin_can_force_activate(self, db):
        contract = ContractFactory(awaiting_signatures=True, duration_in_months=2)

        ContractLifecycleService.force_activate(contract, actor=AdminFactory())

        assert contract.status == ContractState.ACTIVE

    def test_tenant_cannot_force_activate(self, db):
        contract = ContractFactory(awaiting_signatures=True)

        with pytest.raises(PermissionDeniedError):
            ContractLifecycleService.force_activate(contract, actor=contract.tenant)

        contract.refresh_from_db()
        assert contract.status == ContractState.AWAITING_SIGNATURES

    def test_pending_docs_cannot_be_forced(self, db):
        contract = ContractFactory(status=ContractState.PENDING_DOCS)

        with pytest.raises(InvalidStateTransitionError):
            ContractLifecycleService.force_activate(contract, actor=contract.landlord)


class TestCancel:
    @pytest.fixture
    def active_contract(self, db):
        contract = ContractFactory(active=True, envelope_id="doc-cancel")
        PayeeSubAccountFactory(landlord=contract.landlord)
        return contract

    def _orders(self, contract):
        paid = PaymentOrderFactory(
            contract=contract, installment_number=1, due_date=date(2025, 2, 1), paid=True
        )
        pending = [
            PaymentOrderFactory(
                contract=contract, installment_number=n, due_date=date(2025, n + 1, 1)
            )
            for n in (2, 3, 4)
        ]
        return paid, pending

    def test_cancels_open_orders_and_leaves_paid(self, active_contract):
        paid, pending = self._orders(active_contract)
        paid_charge = ChargeFactory(payment_order=paid)
        transfer = TransferFactory(
            payment_order=paid, status=TransferState.FAILED, fail_reason="Invalid PIX key"
        )
        paid.refresh_from_db()
        paid_version, transfer_version = paid.version, transfer.version
        charges = [ChargeFactory(payment_order=order) for order in pending]
        gateway = MagicMock()

        with patch("contracts.services.AsaasAdapter", gateway):
            result = ContractLifecycleService.cancel(active_contract, actor=active_contract.landlord)

        active_contract.refresh_from_db()
        assert active_contract.status == ContractState.CANCELLED
        assert active_contract.cancelled_at is not None
        assert sorted(result.cancelled_order_ids) == sorted(str(o.pk) for o in pending)
        for order in pending:
            order.refresh_from_db()
            assert order.status == PaymentOrderState.CANCELLED
            assert order.cancelled_at is not None

        paid.refresh_from_db()
        assert paid.status == PaymentOrderState.PAID
        assert paid.cancelled_at is None
        assert paid.version == paid_version
        transfer.refresh_from_db()
        assert transfer.status == TransferState.FAILED
        assert transfer.version == transfer_version
        paid_charge.refresh_from_db()
        assert paid_charge.cancel_requested_at is None

        requested = sorted(call.args[1] for call in gateway.cancel_charge.call_args_list)
        assert requested == sorted(c.external_charge_id for c in charges)
        for charge in charges:
            charge.refresh_from_db()
            assert charge.cancel_requested_at is not None
        assert sorted(result.cancelled_charge_ids) == sorted(str(c.pk) for c in charges)
        assert result.failed_charge_ids == []

    def test_gateway_failure_does_not_stop_cancellation(self, active_contract):
        _, pending = self._orders(active_contract)
        failing = ChargeFactory(payment_order=pending[0])
        ok = ChargeFactory(payment_order=pending[1])
        gateway = MagicMock()

        def cancel_charge(api_key, charge_id):
            if charge_id == failing.external_charge_id:
                raise GatewayUnavailableError("down", status_code=503)

        gateway.cancel_charge.side_effect = cancel_charge

        with patch("contracts.services.AsaasAdapter", gateway):
            result = ContractLifecycleService.cancel(active_contract)

        assert gateway.cancel_charge.call_count == 2
        assert result.failed_charge_ids == [str(failing.pk)]
        assert result.cancelled_charge_ids == [str(ok.pk)]
        active_contract.refresh_from_db()
        assert active_contract.status == ContractState.CANCELLED

    def test_deletes_signature_envelope(self, active_contract):
        collaborator = MagicMock()

        with (
            patch("contracts.services.AsaasAdapter", MagicMock()),
            patch("contracts.services.get_document_collaborator", return_value=collaborator),
        ):
            ContractLifecycleService.cancel(active_contract)

        collaborator.delete_envelope.assert_called_once_with("doc-cancel")

    def test_tenant_cannot_cancel(self, active_contract):
        with pytest.raises(PermissionDeniedError):
            ContractLifecycleService.cancel(active_contract, actor=TenantFactory())

    def test_cancel_twice_raises(self, active_contract):
        with patch("contracts.services.AsaasAdapter", MagicMock()):
            ContractLifecycleService.cancel(active_contract)

            with pytest.raises(InvalidStateTransitionError):
                ContractLifecycleService.cancel(active_contract)


class TestFinish:
    @freeze_time("2026-03-15")
    def test_finishes_after_end_date(self, db):
        contract = ContractFactory(active=True, start_date=date(2025, 1, 1), duration_in_months=12)

        ContractLifecycleService.finish(contract)

        assert contract.status == ContractState.FINISHED
        assert contract.finished_at is not None

    @freeze_time("2025-06-15")
    def test_before_end_date_raises(self, db):
        contract = ContractFactory(active=True, start_date=date(2025, 1, 1), duration_in_months=12)

        with pytest.raises(InvalidStateTransitionError):
            ContractLifecycleService.finish(contract)
