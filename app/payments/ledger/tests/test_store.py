"""
Tests for LedgerStore conditional writes.

Test Classes:
    TestTransition: django-fsm transitions applied as guarded UPDATEs
    TestGuardedUpdate: writes scoped to expected prior statuses
    TestTouch: version bumps without status change
"""

from decimal import Decimal

import pytest

from payments.exceptions import InvalidStateTransitionError
from payments.ledger import LedgerStore
from payments.models import PaymentOrder, Transfer
from payments.state_machines import PaymentOrderState, TransferState


class TestTransition:
    def test_applies_declared_transition(self, pending_order):
        version = pending_order.version

        applied = LedgerStore.transition(
            pending_order,
            pending_order.mark_paid,
            amount_paid=Decimal("1500.00"),
            net_value=Decimal("1480.00"),
        )

        assert applied
        assert pending_order.status == PaymentOrderState.PAID
        assert pending_order.amount_paid == Decimal("1500.00")
        assert pending_order.version == version + 1

    def test_undeclared_transition_raises(self, pending_order):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            LedgerStore.transition(pending_order, pending_order.mark_received)

        assert exc_info.value.details["current_state"] == PaymentOrderState.PENDING
        assert exc_info.value.details["transition"] == "mark_received"
        pending_order.refresh_from_db()
        assert pending_order.status == PaymentOrderState.PENDING

    def test_stale_instance_loses(self, pending_order):
        stale = PaymentOrder.objects.get(pk=pending_order.pk)
        assert LedgerStore.transition(pending_order, pending_order.mark_overdue)

        applied = LedgerStore.transition(stale, stale.mark_paid)

        assert not applied
        assert stale.status == PaymentOrderState.PENDING
        pending_order.refresh_from_db()
        assert pending_order.status == PaymentOrderState.OVERDUE

    def test_only_one_of_two_writers_wins(self, pending_transfer):
        first = Transfer.objects.get(pk=pending_transfer.pk)
        second = Transfer.objects.get(pk=pending_transfer.pk)

        results = [
            LedgerStore.transition(first, first.mark_done),
            LedgerStore.transition(second, second.mark_failed, fail_reason="late"),
        ]

        assert results == [True, False]
        pending_transfer.refresh_from_db()
        assert pending_transfer.status == TransferState.DONE
        assert pending_transfer.fail_reason == ""

    def test_rejects_plain_method(self, pending_order):
        with pytest.raises(TypeError):
            LedgerStore.transition(pending_order, pending_order.save)


class TestGuardedUpdate:
    def test_updates_when_status_matches(self, pending_order):
        applied = LedgerStore.guarded_update(
            PaymentOrder,
            pending_order.pk,
            [PaymentOrderState.PENDING, PaymentOrderState.OVERDUE],
            status=PaymentOrderState.CANCELLED,
        )

        assert applied
        pending_order.refresh_from_db()
        assert pending_order.status == PaymentOrderState.CANCELLED

    def test_skips_when_status_differs(self, paid_order):
        version = paid_order.version

        applied = LedgerStore.guarded_update(
            PaymentOrder,
            paid_order.pk,
            [PaymentOrderState.PENDING],
            status=PaymentOrderState.CANCELLED,
        )

        assert not applied
        paid_order.refresh_from_db()
        assert paid_order.status == PaymentOrderState.PAID
        assert paid_order.version == version


class TestTouch:
    def test_bumps_version_and_writes_fields(self, pending_order):
        version = pending_order.version

        LedgerStore.touch(pending_order, needs_review=True, review_reason="check")

        assert pending_order.version == version + 1
        assert pending_order.needs_review
        assert pending_order.review_reason == "check"
        assert pending_order.status == PaymentOrderState.PENDING
