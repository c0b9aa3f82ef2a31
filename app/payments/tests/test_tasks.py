"""
Tests for payment Celery tasks.

Test Classes:
    TestMarkOverduePaymentOrders: daily overdue sweep
    TestPregenerateUpcomingCharges: charge issuance horizon
    TestSendPaymentReminders: due-soon reminders
    TestIssueChargeForOrder: task outcomes around ChargeIssuer
    TestInitiatePayoutForOrder: task outcomes around PayoutOrchestrator
    TestDispatchPendingPayouts: recovery sweep for lost payout enqueues
"""

from datetime import date, timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone
from freezegun import freeze_time

from contracts.models import ContractState
from notifications.models import Notification
from payments.exceptions import GatewayUnavailableError
from payments.models import Charge, Transfer
from payments.state_machines import PaymentOrderState, TransferState
from payments.tasks import (
    dispatch_pending_payouts,
    initiate_payout_for_order,
    issue_charge_for_order,
    mark_overdue_payment_orders,
    pregenerate_upcoming_charges,
    send_payment_reminders,
)
from payments.tests.factories import ChargeFactory, PaymentOrderFactory, TransferFactory


@pytest.fixture
def patched_gateway(gateway):
    with patch("payments.tasks.AsaasAdapter", gateway):
        yield gateway


@freeze_time("2025-06-15")
class TestMarkOverduePaymentOrders:
    def test_marks_past_due_pending_orders(self, active_contract):
        late = PaymentOrderFactory(contract=active_contract, due_date=date(2025, 6, 14))
        today = PaymentOrderFactory(contract=active_contract, due_date=date(2025, 6, 15))
        paid = PaymentOrderFactory(contract=active_contract, due_date=date(2025, 5, 14), paid=True)

        result = mark_overdue_payment_orders()

        assert result == {"marked_count": 1}
        for order in (late, today, paid):
            order.refresh_from_db()
        assert late.status == PaymentOrderState.OVERDUE
        assert today.status == PaymentOrderState.PENDING
        assert paid.status == PaymentOrderState.PAID
        assert Notification.objects.filter(
            recipient=active_contract.tenant, idempotency_key=f"{late.pk}:overdue"
        ).exists()

    def test_second_run_marks_nothing(self, active_contract):
        PaymentOrderFactory(contract=active_contract, due_date=date(2025, 6, 1))

        mark_overdue_payment_orders()
        result = mark_overdue_payment_orders()

        assert result == {"marked_count": 0}
        assert Notification.objects.count() == 1


@freeze_time("2025-06-15")
class TestPregenerateUpcomingCharges:
    def test_queues_uncharged_orders_within_horizon(self, active_contract):
        soon = PaymentOrderFactory(contract=active_contract, due_date=date(2025, 7, 1))
        charged = PaymentOrderFactory(contract=active_contract, due_date=date(2025, 7, 2))
        ChargeFactory(payment_order=charged)
        PaymentOrderFactory(contract=active_contract, due_date=date(2025, 8, 1))
        PaymentOrderFactory(contract=active_contract, due_date=date(2025, 6, 1))

        with patch("payments.tasks.issue_charge_for_order") as task:
            result = pregenerate_upcoming_charges()

        assert result == {"queued_count": 1}
        task.delay.assert_called_once_with(str(soon.pk))

    def test_skips_inactive_contracts(self, active_contract):
        PaymentOrderFactory(contract=active_contract, due_date=date(2025, 7, 1))
        active_contract.status = ContractState.CANCELLED
        active_contract.save()

        with patch("payments.tasks.issue_charge_for_order") as task:
            result = pregenerate_upcoming_charges()

        assert result == {"queued_count": 0}
        task.delay.assert_not_called()


@freeze_time("2025-06-15")
class TestSendPaymentReminders:
    def test_reminds_orders_due_in_three_days(self, active_contract):
        due = PaymentOrderFactory(contract=active_contract, due_date=date(2025, 6, 18))
        ChargeFactory(payment_order=due, invoice_url="https://gateway.test/i/pay_x")
        PaymentOrderFactory(contract=active_contract, due_date=date(2025, 6, 19))

        result = send_payment_reminders()

        assert result == {"sent_count": 1}
        notification = Notification.objects.get(recipient=active_contract.tenant)
        assert notification.action_link == "https://gateway.test/i/pay_x"
        assert notification.idempotency_key == f"{due.pk}:reminder:2025-06-18"

    def test_falls_back_to_contract_link(self, active_contract):
        PaymentOrderFactory(contract=active_contract, due_date=date(2025, 6, 18))

        send_payment_reminders()

        notification = Notification.objects.get(recipient=active_contract.tenant)
        assert notification.action_link == f"https://app.test/contracts/{active_contract.pk}"


class TestIssueChargeForOrder:
    def test_issues_charge(self, patched_gateway, pending_order):
        result = issue_charge_for_order(str(pending_order.pk))

        assert result["status"] == "issued"
        assert Charge.objects.filter(payment_order=pending_order).exists()

    def test_existing_charge(self, patched_gateway, charged_order):
        result = issue_charge_for_order(str(charged_order.pk))

        assert result["status"] == "already_exists"
        patched_gateway.create_charge.assert_not_called()

    def test_precondition_failure_is_skipped(self, patched_gateway, pending_order):
        pending_order.due_date = timezone.localdate() - timedelta(days=1)
        pending_order.save()

        result = issue_charge_for_order(str(pending_order.pk))

        assert result["status"] == "skipped"
        assert result["error_code"] == "INVALID_STATE_TRANSITION"

    def test_missing_platform_wallet_is_skipped(self, patched_gateway, pending_order, settings):
        settings.PLATFORM_WALLET_ID = ""

        result = issue_charge_for_order(str(pending_order.pk))

        assert result["status"] == "skipped"
        assert result["error_code"] == "PLATFORM_WALLET_NOT_CONFIGURED"
        patched_gateway.create_charge.assert_not_called()

    def test_transient_gateway_error_propagates(self, patched_gateway, pending_order):
        patched_gateway.create_charge.side_effect = GatewayUnavailableError("down", status_code=503)

        with pytest.raises(GatewayUnavailableError):
            issue_charge_for_order(str(pending_order.pk))

        assert not Charge.objects.filter(payment_order=pending_order).exists()


class TestInitiatePayoutForOrder:
    def test_requests_payout(self, patched_gateway, paid_order):
        result = initiate_payout_for_order(str(paid_order.pk))

        assert result["status"] == "payout_requested"
        transfer = Transfer.objects.get(payment_order=paid_order)
        assert result["transfer_id"] == str(transfer.id)

    def test_skip_reason_is_reported(self, patched_gateway, pending_order):
        result = initiate_payout_for_order(str(pending_order.pk))

        assert result == {
            "status": "skipped",
            "payment_order_id": str(pending_order.pk),
            "reason": "ALREADY_APPLIED",
        }

    def test_unknown_order(self, db, patched_gateway):
        result = initiate_payout_for_order("00000000-0000-0000-0000-000000000000")

        assert result["status"] == "not_found"


class TestDispatchPendingPayouts:
    def test_queues_paid_orders_without_transfer(self, active_contract):
        waiting = PaymentOrderFactory(
            contract=active_contract, installment_number=1, due_date=date(2025, 1, 5), paid=True
        )
        PaymentOrderFactory(
            contract=active_contract,
            installment_number=2,
            due_date=date(2025, 2, 5),
            paid=True,
            needs_review=True,
            review_reason="Payout rejected by the gateway: Invalid PIX key",
        )
        failed_payout = PaymentOrderFactory(
            contract=active_contract, installment_number=3, due_date=date(2025, 3, 5), paid=True
        )
        TransferFactory(payment_order=failed_payout, status=TransferState.FAILED)
        PaymentOrderFactory(contract=active_contract, installment_number=4, due_date=date(2025, 4, 5))
        TransferFactory(
            payment_order=PaymentOrderFactory(
                contract=active_contract,
                installment_number=5,
                due_date=date(2025, 5, 5),
                paid=True,
                status=PaymentOrderState.PAYOUT_PENDING,
            )
        )

        with patch("payments.tasks.initiate_payout_for_order") as task:
            result = dispatch_pending_payouts()

        assert result == {"queued_count": 1}
        task.delay.assert_called_once_with(str(waiting.pk))

    def test_recovers_payout_whose_enqueue_was_lost(self, patched_gateway, paid_order):
        # The PAID write committed but its on-commit enqueue never reached the broker
        assert not Transfer.objects.filter(payment_order=paid_order).exists()

        with patch(
            "payments.tasks.initiate_payout_for_order.delay",
            side_effect=lambda order_id: initiate_payout_for_order(order_id),
        ):
            result = dispatch_pending_payouts()

        assert result == {"queued_count": 1}
        paid_order.refresh_from_db()
        assert paid_order.status == PaymentOrderState.PAYOUT_PENDING
        assert Transfer.objects.filter(payment_order=paid_order).exists()

    def test_nothing_to_queue(self, db):
        with patch("payments.tasks.initiate_payout_for_order") as task:
            assert dispatch_pending_payouts() == {"queued_count": 0}

        task.delay.assert_not_called()
