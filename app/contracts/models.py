"""
Contract models.

Contract is the rental agreement between a landlord and a tenant. Its
status advances forward only (documents, review, signatures, active,
finished), except CANCELLED which is reachable from every non-terminal
state. ContractArtifact tracks generated derivative documents so stale
ones can be expired.

Usage:
    from contracts.models import Contract, ContractState
    from payments.ledger import LedgerStore

    contract = Contract.objects.get(envelope_id=document_key)
    LedgerStore.transition(contract, contract.activate, activated_at=timezone.now())
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django_fsm import FSMField, transition

from core.helpers import add_months
from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel, VersionedModel


class ContractState(models.TextChoices):
    """
    States for the Contract lifecycle.

    State Flow:
        pending_docs → under_review → awaiting_signatures → active → finished
        under_review → pending_docs (documents rejected)
        any non-terminal → cancelled

    Terminal states: CANCELLED, FINISHED
    """

    PENDING_DOCS = "pending_docs", "Pending Documents"
    UNDER_REVIEW = "under_review", "Under Review"
    AWAITING_SIGNATURES = "awaiting_signatures", "Awaiting Signatures"
    ACTIVE = "active", "Active"
    CANCELLED = "cancelled", "Cancelled"
    FINISHED = "finished", "Finished"

    @classmethod
    def terminal_states(cls) -> list[str]:
        return [cls.CANCELLED, cls.FINISHED]


class ArtifactKind(models.TextChoices):
    """Kinds of generated contract documents."""

    CONTRACT_PDF = "contract_pdf", "Contract PDF"
    SIGNED_CONTRACT_PDF = "signed_contract_pdf", "Signed Contract PDF"


CANCELLABLE_STATES = [
    ContractState.PENDING_DOCS,
    ContractState.UNDER_REVIEW,
    ContractState.AWAITING_SIGNATURES,
    ContractState.ACTIVE,
]


class Contract(UUIDPrimaryKeyMixin, VersionedModel):
    """
    Rental agreement between a landlord and a tenant for one property.

    Fields:
        landlord / tenant: Parties of the agreement
        property_id / property_label: Listing reference and display name
        start_date: First day of the lease
        duration_in_months: Lease length, at least one month
        end_date: start_date + duration_in_months (computed on save)
        rent_amount / condo_fee / iptu_fee: Monthly amounts
        status: Current FSM state
        envelope_id: E-signature document key
        activated_at / cancelled_at / finished_at: Lifecycle timestamps
    """

    # ==========================================================================
    # Parties & Property
    # ==========================================================================

    landlord = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="landlord_contracts",
        help_text="Property owner receiving the rent",
    )

    tenant = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="tenant_contracts",
        help_text="Tenant paying the rent",
    )

    property_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Listing id of the rented property",
    )

    property_label = models.CharField(
        max_length=255,
        help_text="Property title shown in notifications",
    )

    # ==========================================================================
    # Term
    # ==========================================================================

    start_date = models.DateField(
        help_text="First day of the lease",
    )

    duration_in_months = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Lease length in months",
    )

    end_date = models.DateField(
        editable=False,
        help_text="Last day of the lease, computed from start date and duration",
    )

    # ==========================================================================
    # Monthly Amounts
    # ==========================================================================

    rent_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
        help_text="Monthly rent; must be positive",
    )

    condo_fee = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0"))],
        help_text="Monthly condominium fee",
    )

    iptu_fee = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0"))],
        help_text="Monthly share of the IPTU property tax",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=ContractState.PENDING_DOCS,
        choices=ContractState.choices,
        db_index=True,
        help_text="Current state of the contract (managed by FSM)",
    )

    envelope_id = models.CharField(
        max_length=128,
        unique=True,
        null=True,
        blank=True,
        help_text="E-signature document key",
    )

    activated_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    finished_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Contract"
        verbose_name_plural = "Contracts"
        indexes = [
            models.Index(fields=["status", "end_date"], name="contract_status_end_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(duration_in_months__gte=1),
                name="contract_duration_at_least_one_month",
            ),
            models.CheckConstraint(
                condition=models.Q(rent_amount__gt=0),
                name="contract_rent_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(condo_fee__gte=0) & models.Q(iptu_fee__gte=0),
                name="contract_fees_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Contract({self.id}, {self.property_label}, {self.status})"

    def save(self, *args, **kwargs):
        self.end_date = add_months(self.start_date, self.duration_in_months)
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and {"start_date", "duration_in_months"} & set(update_fields):
            kwargs["update_fields"] = {*update_fields, "end_date"}
        super().save(*args, **kwargs)

    @property
    def monthly_amount(self) -> Decimal:
        """rent + condo fee + iptu."""
        return self.rent_amount + self.condo_fee + self.iptu_fee

    @property
    def is_terminal(self) -> bool:
        return self.status in ContractState.terminal_states()

    def is_party(self, user) -> bool:
        return user.pk in (self.landlord_id, self.tenant_id)

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=ContractState.PENDING_DOCS,
        target=ContractState.UNDER_REVIEW,
    )
    def submit_for_review(self):
        """Tenant documents were submitted."""

    @transition(
        field=status,
        source=ContractState.UNDER_REVIEW,
        target=ContractState.AWAITING_SIGNATURES,
    )
    def approve(self):
        """Documents approved; contract sent for signatures."""

    @transition(
        field=status,
        source=ContractState.UNDER_REVIEW,
        target=ContractState.PENDING_DOCS,
    )
    def reject(self):
        """Documents rejected; tenant must resubmit."""

    @transition(
        field=status,
        source=ContractState.AWAITING_SIGNATURES,
        target=ContractState.ACTIVE,
    )
    def activate(self):
        """All parties signed."""

    @transition(
        field=status,
        source=[ContractState.UNDER_REVIEW, ContractState.AWAITING_SIGNATURES],
        target=ContractState.ACTIVE,
    )
    def force_activate(self):
        """Landlord or administrator activated without waiting for signatures."""

    @transition(
        field=status,
        source=CANCELLABLE_STATES,
        target=ContractState.CANCELLED,
    )
    def cancel(self):
        """Contract cancelled before its natural end."""

    @transition(
        field=status,
        source=ContractState.ACTIVE,
        target=ContractState.FINISHED,
    )
    def finish(self):
        """Lease term ended with every installment settled."""


class ContractArtifact(UUIDPrimaryKeyMixin, BaseModel):
    """
    A generated document derived from a contract (e.g. the contract PDF).

    The file itself lives in external storage under ``storage_key``; this
    row lets the scheduler find and expire stale artifacts.
    """

    contract = models.ForeignKey(
        Contract,
        on_delete=models.CASCADE,
        related_name="artifacts",
    )

    kind = models.CharField(
        max_length=30,
        choices=ArtifactKind.choices,
        default=ArtifactKind.CONTRACT_PDF,
    )

    storage_key = models.CharField(
        max_length=500,
        help_text="Object key of the document in external storage",
    )

    expires_at = models.DateTimeField(
        db_index=True,
        help_text="When the artifact becomes stale and is deleted",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Contract Artifact"
        verbose_name_plural = "Contract Artifacts"

    def __str__(self) -> str:
        return f"ContractArtifact({self.kind}, {self.storage_key})"
