"""
PaymentOrder and Charge models for rent collection.

PaymentOrder is one monthly installment of a rental contract. The full
set of orders is created once, when the contract becomes active. Charge
is the request sent to the payment gateway asking the tenant to pay an
order (bank slip or PIX).

Usage:
    from payments.models import Charge, PaymentOrder
    from payments.ledger import LedgerStore

    order = PaymentOrder.objects.get(id=order_id)

    # Guarded transition: UPDATE ... WHERE id = ? AND status = 'pending'
    applied = LedgerStore.transition(order, order.mark_overdue)
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel, VersionedModel

from payments.state_machines import BillingType, PaymentOrderState


class PaymentOrder(UUIDPrimaryKeyMixin, VersionedModel):
    """
    One monthly installment owed by the tenant of a contract.

    The transition methods declare the legal state graph. They are
    applied with a single conditional write by payments.ledger.LedgerStore,
    which keeps concurrent webhook deliveries from applying the same
    transition twice.

    State Flow:
        PENDING -> OVERDUE -> PAID -> PAYOUT_PENDING -> RECEIVED
        PENDING -> PAID
        PAYOUT_PENDING -> PAID (transfer failed, reverted)
        PENDING/OVERDUE -> CANCELLED
        OVERDUE -> PENDING (payment restored)
        PAID -> PENDING (payment deleted before any transfer)

    Fields:
        contract: Contract this installment belongs to
        installment_number: 1-based position in the contract schedule
        due_date: When the tenant must pay
        amount_due: rent + condo fee + iptu, frozen at creation
        amount_paid: Gross amount the tenant paid (set when PAID)
        net_value: Amount after the gateway's own processing fee
        paid_at: When the gateway confirmed the payment
        status: Current FSM state
        needs_review: Flag for manual reconciliation
        review_reason: Why the order was flagged
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    contract = models.ForeignKey(
        "contracts.Contract",
        on_delete=models.PROTECT,
        related_name="payment_orders",
        help_text="Contract this installment belongs to",
    )

    installment_number = models.PositiveSmallIntegerField(
        help_text="1-based installment position in the contract schedule",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    due_date = models.DateField(
        db_index=True,
        help_text="Date the tenant must pay this installment",
    )

    amount_due = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
        help_text="rent + condo fee + iptu, frozen when the order is created",
    )

    amount_paid = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Gross amount paid by the tenant",
    )

    net_value = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount credited after the gateway's processing fee",
    )

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the gateway confirmed the payment",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentOrderState.PENDING,
        choices=PaymentOrderState.choices,
        db_index=True,
        help_text="Current state of the payment order (managed by FSM)",
    )

    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the order was cancelled with its contract",
    )

    # ==========================================================================
    # Manual Reconciliation
    # ==========================================================================

    needs_review = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Flagged for manual reconciliation by an operator",
    )

    review_reason = models.TextField(
        blank=True,
        default="",
        help_text="Why the order was flagged for review",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["contract", "due_date"]
        verbose_name = "Payment Order"
        verbose_name_plural = "Payment Orders"
        indexes = [
            models.Index(fields=["status", "due_date"], name="payorder_status_due_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["contract", "due_date"],
                name="payment_order_one_per_contract_month",
            ),
            models.UniqueConstraint(
                fields=["contract", "installment_number"],
                name="payment_order_unique_installment",
            ),
            models.CheckConstraint(
                condition=models.Q(amount_due__gt=0),
                name="payment_order_amount_due_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"PaymentOrder({self.id}, {self.status}, {self.amount_due} due {self.due_date})"

    @property
    def landlord(self):
        return self.contract.landlord

    @property
    def tenant(self):
        return self.contract.tenant

    @property
    def has_charge(self) -> bool:
        return Charge.objects.filter(payment_order_id=self.pk).exists()

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentOrderState.PENDING,
        target=PaymentOrderState.OVERDUE,
    )
    def mark_overdue(self):
        """Due date passed without payment."""

    @transition(
        field=status,
        source=[PaymentOrderState.PENDING, PaymentOrderState.OVERDUE],
        target=PaymentOrderState.PAID,
    )
    def mark_paid(self):
        """Gateway reported the payment received or confirmed."""

    @transition(
        field=status,
        source=PaymentOrderState.PAID,
        target=PaymentOrderState.PAYOUT_PENDING,
    )
    def mark_payout_pending(self):
        """A transfer to the landlord was accepted by the gateway."""

    @transition(
        field=status,
        source=PaymentOrderState.PAYOUT_PENDING,
        target=PaymentOrderState.RECEIVED,
    )
    def mark_received(self):
        """The landlord's transfer completed."""

    @transition(
        field=status,
        source=PaymentOrderState.PAYOUT_PENDING,
        target=PaymentOrderState.PAID,
    )
    def revert_to_paid(self):
        """The transfer failed or was cancelled; funds are still collected."""

    @transition(
        field=status,
        source=[PaymentOrderState.PENDING, PaymentOrderState.OVERDUE],
        target=PaymentOrderState.CANCELLED,
    )
    def cancel(self):
        """The contract was cancelled before this installment was paid."""

    @transition(
        field=status,
        source=PaymentOrderState.OVERDUE,
        target=PaymentOrderState.PENDING,
    )
    def restore(self):
        """The gateway restored a charge that had gone overdue."""

    @transition(
        field=status,
        source=PaymentOrderState.PAID,
        target=PaymentOrderState.PENDING,
    )
    def reopen(self):
        """The gateway deleted the payment before any transfer was made."""


class Charge(UUIDPrimaryKeyMixin, BaseModel):
    """
    A gateway charge billing the tenant for one PaymentOrder.

    At most one Charge exists per PaymentOrder; issuing a second one is a
    conflict, never an upsert. The row is immutable after creation except
    for derived display fields refreshed from gateway events.

    Fields:
        payment_order: Order being billed (one-to-one)
        external_charge_id: Gateway charge id (pay_xxx)
        billing_type: Bank slip or PIX
        value: Charged amount
        due_date: Due date sent to the gateway
        platform_fee_percent: Split percentage retained by the platform
        invoice_url / bank_slip_url / our_number: Display fields
        external_status: Last status reported by the gateway
        cancel_requested_at: When cancellation was requested at the gateway
    """

    payment_order = models.OneToOneField(
        PaymentOrder,
        on_delete=models.CASCADE,
        related_name="charge",
        help_text="Payment order this charge bills",
    )

    external_charge_id = models.CharField(
        max_length=64,
        unique=True,
        help_text="Gateway charge id (pay_xxx)",
    )

    billing_type = models.CharField(
        max_length=10,
        choices=BillingType.choices,
        help_text="Bank slip or PIX",
    )

    value = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Amount charged to the tenant",
    )

    due_date = models.DateField(
        help_text="Due date registered at the gateway",
    )

    platform_fee_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        help_text="Split percentage retained by the platform",
    )

    # ==========================================================================
    # Derived Display Fields
    # ==========================================================================

    invoice_url = models.URLField(max_length=500, blank=True, default="")
    bank_slip_url = models.URLField(max_length=500, blank=True, default="")
    our_number = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Bank slip 'nosso numero'",
    )
    external_status = models.CharField(
        max_length=40,
        blank=True,
        default="",
        help_text="Last status reported by the gateway",
    )

    cancel_requested_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When cancellation was requested at the gateway",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Charge"
        verbose_name_plural = "Charges"

    def __str__(self) -> str:
        return f"Charge({self.external_charge_id}, {self.billing_type}, {self.value})"

    @property
    def urls(self) -> dict[str, str]:
        return {
            "invoice_url": self.invoice_url,
            "bank_slip_url": self.bank_slip_url,
        }
