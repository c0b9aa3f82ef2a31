"""
Sub-account bookkeeping for landlords.

Usage:
    from payments.services import SubAccountService

    account = SubAccountService.ensure_for_landlord(contract.landlord)
    SubAccountService.apply_account_status(snapshot)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import NotFoundError, ValidationError
from core.services import BaseService, ServiceResult

from payments.config import PaymentsConfig
from payments.models import PayeeSubAccount
from payments.state_machines import AccountApprovalStatus

if TYPE_CHECKING:
    from authentication.models import User


class SubAccountService(BaseService):
    """
    Lazily creates sub-accounts and applies gateway status snapshots.

    All methods are class-level - no instance state is maintained.
    """

    @classmethod
    def ensure_for_landlord(cls, landlord: User) -> PayeeSubAccount:
        """Return the landlord's sub-account, creating an empty one if needed."""
        account, created = PayeeSubAccount.objects.get_or_create(
            landlord=landlord,
            defaults={"platform_fee_percent": PaymentsConfig.from_settings().platform_fee_percent},
        )
        if created:
            cls.get_logger().info(
                "Payee sub-account created",
                extra={"landlord_id": str(landlord.pk), "sub_account_id": str(account.id)},
            )
        return account

    @classmethod
    def apply_account_status(cls, snapshot: dict) -> ServiceResult:
        """
        Overwrite a sub-account's approval statuses from a gateway snapshot.

        Args:
            snapshot: The webhook's ``accountStatus`` object (id, general,
                documentation, commercialInfo, bankAccountInfo)

        Returns:
            ServiceResult with ``changed`` fields and ``general_decided``
            set to APPROVED/REJECTED when the general status just moved
            to one of them, else None

        Raises:
            ValidationError: Snapshot has no account id
            NotFoundError: No sub-account with that id
        """
        account_id = snapshot.get("id")
        if not account_id:
            raise ValidationError("Account status snapshot has no id", error_code="MISSING_ACCOUNT_ID")

        account = (
            PayeeSubAccount.objects.select_related("landlord")
            .filter(external_account_id=account_id)
            .first()
        )
        if account is None:
            raise NotFoundError(
                "Sub-account not found",
                error_code="SUB_ACCOUNT_NOT_FOUND",
                details={"external_account_id": account_id},
            )

        changed = account.apply_status_snapshot(snapshot)
        general = changed.get("status_general")
        decided = general if general in (AccountApprovalStatus.APPROVED, AccountApprovalStatus.REJECTED) else None

        cls.get_logger().info(
            "Sub-account status updated",
            extra={"external_account_id": account_id, "changed": sorted(changed)},
        )
        return ServiceResult.ok(
            {"sub_account": account, "changed": changed, "general_decided": decided}
        )
