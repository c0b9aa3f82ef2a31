"""
Transfer model for payouts to landlords.

A Transfer records a payout request the gateway accepted: funds moving
from a gateway balance to the landlord's PIX key. Two kinds exist:

- INSTALLMENT_PAYOUT: collected, fee-adjusted rent of one PaymentOrder.
  Created only after the order reached PAID; at most one per order.
- WITHDRAWAL: a manual withdrawal of the landlord's available balance,
  not tied to any order.

Both are settled by the same TRANSFER_* webhooks.

Usage:
    from payments.models import Transfer

    transfer = Transfer.objects.get(external_transfer_id="tra_123")
    LedgerStore.transition(transfer, transfer.mark_done, effective_date=date)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import VersionedModel

from payments.state_machines import TransferKind, TransferState


class Transfer(UUIDPrimaryKeyMixin, VersionedModel):
    """
    Payout of one installment, or a manual withdrawal, to the landlord.

    State Flow:
        PENDING -> DONE
        PENDING -> FAILED
        PENDING -> CANCELLED

    Fields:
        kind: Installment payout or manual withdrawal
        landlord: Landlord receiving the funds
        payment_order: Installment being paid out (one-to-one; empty for
            withdrawals)
        external_transfer_id: Gateway transfer id
        status: Current FSM state
        value: Amount sent
        effective_date: Date the gateway settled the transfer
        fail_reason: Gateway-provided reason on failure
    """

    kind = models.CharField(
        max_length=20,
        choices=TransferKind.choices,
        default=TransferKind.INSTALLMENT_PAYOUT,
        db_index=True,
        help_text="Installment payout or manual withdrawal",
    )

    landlord = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="transfers",
        null=True,
        blank=True,
        help_text="Landlord receiving the funds",
    )

    payment_order = models.OneToOneField(
        "payments.PaymentOrder",
        on_delete=models.PROTECT,
        related_name="transfer",
        null=True,
        blank=True,
        help_text="Installment this transfer pays out (empty for withdrawals)",
    )

    external_transfer_id = models.CharField(
        max_length=64,
        unique=True,
        help_text="Gateway transfer id",
    )

    status = FSMField(
        default=TransferState.PENDING,
        choices=TransferState.choices,
        db_index=True,
        help_text="Current state of the transfer (managed by FSM)",
    )

    value = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Amount transferred to the landlord",
    )

    effective_date = models.DateField(
        null=True,
        blank=True,
        help_text="Date the gateway settled the transfer",
    )

    fail_reason = models.TextField(
        blank=True,
        default="",
        help_text="Reason reported by the gateway for a failed transfer",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Transfer"
        verbose_name_plural = "Transfers"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(value__gt=0),
                name="transfer_value_positive",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(kind=TransferKind.INSTALLMENT_PAYOUT, payment_order__isnull=False)
                    | models.Q(kind=TransferKind.WITHDRAWAL, payment_order__isnull=True)
                ),
                name="transfer_kind_matches_order",
            ),
        ]

    def __str__(self) -> str:
        return f"Transfer({self.external_transfer_id}, {self.status}, {self.value})"

    @property
    def is_withdrawal(self) -> bool:
        return self.kind == TransferKind.WITHDRAWAL

    @property
    def is_terminal(self) -> bool:
        return self.status != TransferState.PENDING

    @transition(field=status, source=TransferState.PENDING, target=TransferState.DONE)
    def mark_done(self):
        """Gateway settled the transfer."""

    @transition(field=status, source=TransferState.PENDING, target=TransferState.FAILED)
    def mark_failed(self):
        """Gateway reported the transfer failed."""

    @transition(field=status, source=TransferState.PENDING, target=TransferState.CANCELLED)
    def mark_cancelled(self):
        """Gateway reported the transfer cancelled."""
