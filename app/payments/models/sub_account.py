"""
PayeeSubAccount model for landlords' gateway accounts.

A landlord must have a provisioned sub-account (API key and wallet id)
at the payment gateway before a charge can split revenue to them, and a
registered PIX key before a transfer can pay them out.

Usage:
    from payments.models import PayeeSubAccount

    account, _ = PayeeSubAccount.objects.get_or_create(landlord=landlord)

    if account.can_receive_charges:
        # Charges may reference this landlord
        pass

    # Update after an account-status webhook (snapshot, not a delta)
    account.apply_status_snapshot({"general": "APPROVED", ...})
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import VersionedModel

from payments.state_machines import AccountApprovalStatus, PixKeyType

# Gateway accountStatus keys mapped to model fields.
STATUS_SNAPSHOT_FIELDS = {
    "general": "status_general",
    "documentation": "status_documentation",
    "commercialInfo": "status_commercial_info",
    "bankAccountInfo": "status_bank_account_info",
}


class PayeeSubAccount(UUIDPrimaryKeyMixin, VersionedModel):
    """
    A landlord's identity and credentials at the payment gateway.

    Created lazily the first time a landlord needs one; credentials are
    filled when the gateway account is provisioned, and the approval
    status fields are overwritten by account-status webhooks.

    Fields:
        landlord: OneToOne link to the landlord user
        external_account_id: Gateway account id
        api_key: Sub-account API key used for its charges and transfers
        external_wallet_id: Wallet receiving the split of each charge
        webhook_token: Token the gateway echoes on this account's webhooks
        pix_key / pix_key_type: Payout destination
        platform_fee_percent: Platform commission for this landlord
        status_*: Approval snapshots reported by the gateway

    Properties:
        can_receive_charges: True when API key and wallet id are set
        can_receive_payouts: True when API key and PIX key are set
    """

    landlord = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payee_sub_account",
        help_text="Landlord owning this gateway account",
    )

    # ==========================================================================
    # Gateway Credentials
    # ==========================================================================

    external_account_id = models.CharField(
        max_length=64,
        unique=True,
        null=True,
        blank=True,
        help_text="Gateway account id",
    )

    api_key = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Sub-account API key",
    )

    external_wallet_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Gateway wallet id",
    )

    webhook_token = models.CharField(
        max_length=255,
        blank=True,
        default="",
        db_index=True,
        help_text="Token the gateway sends with this account's webhooks",
    )

    # ==========================================================================
    # Payout Destination & Commission
    # ==========================================================================

    pix_key = models.CharField(
        max_length=140,
        blank=True,
        default="",
        help_text="PIX key receiving payouts",
    )

    pix_key_type = models.CharField(
        max_length=10,
        choices=PixKeyType.choices,
        blank=True,
        default="",
        help_text="Type of the PIX key",
    )

    platform_fee_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("5.00"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
        help_text="Platform commission percentage applied to this landlord",
    )

    # ==========================================================================
    # Approval Status Snapshots
    # ==========================================================================

    status_general = models.CharField(
        max_length=20,
        choices=AccountApprovalStatus.choices,
        default=AccountApprovalStatus.PENDING,
    )
    status_documentation = models.CharField(
        max_length=20,
        choices=AccountApprovalStatus.choices,
        default=AccountApprovalStatus.PENDING,
    )
    status_commercial_info = models.CharField(
        max_length=20,
        choices=AccountApprovalStatus.choices,
        default=AccountApprovalStatus.PENDING,
    )
    status_bank_account_info = models.CharField(
        max_length=20,
        choices=AccountApprovalStatus.choices,
        default=AccountApprovalStatus.PENDING,
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payee Sub-account"
        verbose_name_plural = "Payee Sub-accounts"

    def __str__(self) -> str:
        return f"PayeeSubAccount({self.external_account_id or 'unprovisioned'}, landlord={self.landlord_id})"

    @property
    def can_receive_charges(self) -> bool:
        return bool(self.api_key and self.external_wallet_id)

    @property
    def can_receive_payouts(self) -> bool:
        return bool(self.api_key and self.pix_key)

    def apply_status_snapshot(self, snapshot: dict) -> dict[str, str]:
        """
        Overwrite approval status fields from a gateway snapshot.

        Unknown or missing keys leave the field unchanged. Saves only
        when something changed.

        Returns:
            Mapping of changed field name to its new value
        """
        changed: dict[str, str] = {}
        for key, field_name in STATUS_SNAPSHOT_FIELDS.items():
            value = snapshot.get(key)
            if value in AccountApprovalStatus.values and getattr(self, field_name) != value:
                setattr(self, field_name, value)
                changed[field_name] = value

        if changed:
            self.save(update_fields=[*changed, "updated_at"])
        return changed
