"""
Factory Boy factories for payment test data.

Usage:
    from payments.tests.factories import (
        ChargeFactory,
        PayeeSubAccountFactory,
        PaymentOrderFactory,
        TransferFactory,
        WebhookEventFactory,
    )

    # A pending installment of an active contract, due in 10 days
    order = PaymentOrderFactory()

    # A paid installment
    order = PaymentOrderFactory(paid=True)

    # A landlord account that can receive charges and payouts
    account = PayeeSubAccountFactory(landlord=order.contract.landlord)
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import factory
from django.utils import timezone

from authentication.tests.factories import LandlordFactory
from contracts.tests.factories import ContractFactory
from payments.models import Charge, PayeeSubAccount, PaymentOrder, Transfer, WebhookEvent
from payments.state_machines import (
    AccountApprovalStatus,
    BillingType,
    PaymentOrderState,
    PixKeyType,
    TransferKind,
    TransferState,
    WebhookEventStatus,
    WebhookSource,
)


class PaymentOrderFactory(factory.django.DjangoModelFactory):
    """
    Factory for PaymentOrder model.

    Creates a PENDING installment of an ACTIVE contract, due ten days
    from today, for the contract's monthly amount.
    """

    class Meta:
        model = PaymentOrder

    contract = factory.SubFactory(ContractFactory, active=True)
    installment_number = factory.Sequence(lambda n: n + 1)
    due_date = factory.LazyFunction(lambda: timezone.localdate() + timedelta(days=10))
    amount_due = Decimal("1500.00")
    status = PaymentOrderState.PENDING

    class Params:
        paid = factory.Trait(
            status=PaymentOrderState.PAID,
            amount_paid=Decimal("1500.00"),
            net_value=Decimal("1480.00"),
            paid_at=factory.LazyFunction(timezone.now),
        )
        overdue = factory.Trait(
            status=PaymentOrderState.OVERDUE,
            due_date=factory.LazyFunction(lambda: timezone.localdate() - timedelta(days=3)),
        )


class ChargeFactory(factory.django.DjangoModelFactory):
    """Factory for Charge model (bank slip by default)."""

    class Meta:
        model = Charge

    payment_order = factory.SubFactory(PaymentOrderFactory)
    external_charge_id = factory.Sequence(lambda n: f"pay_{n:012d}")
    billing_type = BillingType.BANK_SLIP
    value = factory.SelfAttribute("payment_order.amount_due")
    due_date = factory.SelfAttribute("payment_order.due_date")
    platform_fee_percent = Decimal("5.00")
    invoice_url = factory.LazyAttribute(
        lambda o: f"https://gateway.test/i/{o.external_charge_id}"
    )
    external_status = "PENDING"


class TransferFactory(factory.django.DjangoModelFactory):
    """
    Factory for Transfer model; the order defaults to PAYOUT_PENDING.

    Traits:
        withdrawal: Manual withdrawal with no installment
    """

    class Meta:
        model = Transfer

    payment_order = factory.SubFactory(
        PaymentOrderFactory,
        paid=True,
        status=PaymentOrderState.PAYOUT_PENDING,
    )
    landlord = factory.SelfAttribute("payment_order.contract.landlord")
    external_transfer_id = factory.LazyFunction(lambda: f"tra_{uuid.uuid4().hex[:12]}")
    status = TransferState.PENDING
    value = Decimal("1405.00")

    class Params:
        withdrawal = factory.Trait(
            kind=TransferKind.WITHDRAWAL,
            payment_order=None,
            landlord=factory.SubFactory(LandlordFactory),
            value=Decimal("150.00"),
        )


class PayeeSubAccountFactory(factory.django.DjangoModelFactory):
    """
    Factory for PayeeSubAccount model.

    Defaults to a fully provisioned account (API key, wallet and PIX key)
    with general approval granted.
    """

    class Meta:
        model = PayeeSubAccount
        django_get_or_create = ("landlord",)

    landlord = factory.SubFactory(LandlordFactory)
    external_account_id = factory.Sequence(lambda n: f"acc_{n:08d}")
    api_key = factory.Sequence(lambda n: f"$aact_sub_{n:08d}")
    external_wallet_id = factory.Sequence(lambda n: f"wallet_{n:08d}")
    webhook_token = factory.Sequence(lambda n: f"sub-webhook-token-{n}")
    pix_key = factory.Sequence(lambda n: f"landlord{n}@example.com")
    pix_key_type = PixKeyType.EMAIL
    platform_fee_percent = Decimal("5.00")
    status_general = AccountApprovalStatus.APPROVED

    class Params:
        unprovisioned = factory.Trait(
            external_account_id=None,
            api_key="",
            external_wallet_id="",
            webhook_token="",
            pix_key="",
            pix_key_type="",
            status_general=AccountApprovalStatus.PENDING,
        )


class WebhookEventFactory(factory.django.DjangoModelFactory):
    """
    Factory for WebhookEvent model.

    Creates a pending PAYMENT_RECEIVED delivery from the payment gateway.
    """

    class Meta:
        model = WebhookEvent

    source = WebhookSource.PAYMENT_GATEWAY
    delivery_id = factory.LazyFunction(lambda: f"evt_{uuid.uuid4().hex}")
    event_type = "PAYMENT_RECEIVED"
    payload = factory.LazyAttribute(
        lambda o: {"id": o.delivery_id, "event": o.event_type, "payment": {}}
    )
    status = WebhookEventStatus.PENDING
    retry_count = 0
