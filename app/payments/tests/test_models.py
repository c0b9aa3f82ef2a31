"""
Unit tests for payment models.

Test Classes:
    TestPaymentOrder: constraints, version counter and transitions
    TestTransfer: terminal status
    TestPayeeSubAccount: readiness checks and status snapshots
    TestWebhookEvent: processing bookkeeping helpers
"""

from datetime import date
from decimal import Decimal

import pytest
from django.db import IntegrityError

from payments.exceptions import InvalidStateTransitionError
from payments.ledger import LedgerStore
from payments.models.webhook_event import MAX_PROCESSING_ATTEMPTS
from payments.state_machines import AccountApprovalStatus, PaymentOrderState, TransferState
from payments.tests.factories import (
    ChargeFactory,
    PayeeSubAccountFactory,
    PaymentOrderFactory,
    TransferFactory,
    WebhookEventFactory,
)


class TestPaymentOrder:
    def test_one_order_per_contract_month(self, pending_order):
        with pytest.raises(IntegrityError):
            PaymentOrderFactory(
                contract=pending_order.contract,
                installment_number=2,
                due_date=pending_order.due_date,
            )

    def test_installment_number_is_unique_per_contract(self, pending_order):
        with pytest.raises(IntegrityError):
            PaymentOrderFactory(
                contract=pending_order.contract,
                installment_number=1,
                due_date=date(2030, 1, 1),
            )

    def test_one_charge_per_order(self, charged_order):
        with pytest.raises(IntegrityError):
            ChargeFactory(payment_order=charged_order)

    def test_save_bumps_version(self, pending_order):
        version = pending_order.version

        pending_order.review_reason = "checked"
        pending_order.save()

        assert pending_order.version == version + 1

    def test_has_charge(self, pending_order):
        assert not pending_order.has_charge

        ChargeFactory(payment_order=pending_order)

        assert pending_order.has_charge

    @pytest.mark.parametrize(
        "status,method",
        [
            (PaymentOrderState.RECEIVED, "mark_paid"),
            (PaymentOrderState.CANCELLED, "restore"),
            (PaymentOrderState.PAID, "cancel"),
            (PaymentOrderState.PENDING, "mark_payout_pending"),
        ],
    )
    def test_undeclared_transitions_are_rejected(self, pending_order, status, method):
        pending_order.status = status
        pending_order.save()

        with pytest.raises(InvalidStateTransitionError):
            LedgerStore.transition(pending_order, getattr(pending_order, method))

    def test_settled_states(self):
        assert PaymentOrderState.settled_states() == [
            PaymentOrderState.PAID,
            PaymentOrderState.PAYOUT_PENDING,
            PaymentOrderState.RECEIVED,
        ]


class TestTransfer:
    def test_pending_is_not_terminal(self, pending_transfer):
        assert not pending_transfer.is_terminal

    @pytest.mark.parametrize(
        "status", [TransferState.DONE, TransferState.FAILED, TransferState.CANCELLED]
    )
    def test_outcomes_are_terminal(self, db, status):
        assert TransferFactory(status=status).is_terminal

    def test_value_must_be_positive(self, db):
        with pytest.raises(IntegrityError):
            TransferFactory(value=Decimal("0"))


class TestPayeeSubAccount:
    def test_provisioned_account_is_ready(self, sub_account):
        assert sub_account.can_receive_charges
        assert sub_account.can_receive_payouts

    def test_without_pix_key_cannot_receive_payouts(self, db):
        account = PayeeSubAccountFactory(pix_key="")

        assert account.can_receive_charges
        assert not account.can_receive_payouts

    def test_unprovisioned_account(self, db):
        account = PayeeSubAccountFactory(unprovisioned=True)

        assert not account.can_receive_charges
        assert not account.can_receive_payouts

    def test_snapshot_overwrites_known_keys_only(self, sub_account):
        changed = sub_account.apply_status_snapshot(
            {"general": "REJECTED", "bankAccountInfo": "APPROVED", "unknown": "APPROVED"}
        )

        assert changed == {
            "status_general": "REJECTED",
            "status_bank_account_info": "APPROVED",
        }
        sub_account.refresh_from_db()
        assert sub_account.status_general == AccountApprovalStatus.REJECTED
        assert sub_account.status_documentation == AccountApprovalStatus.PENDING


class TestWebhookEvent:
    def test_processing_lifecycle(self, db):
        event = WebhookEventFactory()

        event.mark_processing()
        assert event.retry_count == 1

        event.mark_failed("boom")
        assert event.can_retry
        assert event.error_message == "boom"

        event.mark_processed()
        assert event.is_processed
        assert event.error_message is None
        assert event.processed_at is not None

    def test_no_retry_after_max_attempts(self, db):
        event = WebhookEventFactory(status="failed", retry_count=MAX_PROCESSING_ATTEMPTS)

        assert not event.can_retry

    def test_section_returns_nested_objects_only(self, db):
        event = WebhookEventFactory(payload={"payment": {"id": "pay_1"}, "event": "X"})

        assert event.section("payment") == {"id": "pay_1"}
        assert event.section("event") == {}
        assert event.section("transfer") == {}

    def test_delivery_id_is_unique(self, db):
        WebhookEventFactory(delivery_id="evt_dup")

        with pytest.raises(IntegrityError):
            WebhookEventFactory(delivery_id="evt_dup")
