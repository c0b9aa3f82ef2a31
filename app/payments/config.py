"""
Payment configuration read from Django settings.

PaymentsConfig is an immutable snapshot of the settings the charge and
payout services need. Services receive it through their constructor,
which keeps them testable without overriding global settings.

Usage:
    from payments.config import PaymentsConfig

    config = PaymentsConfig.from_settings()
    issuer = ChargeIssuer(gateway=AsaasAdapter, config=config)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings


@dataclass(frozen=True)
class PaymentsConfig:
    """
    Settings snapshot for the payment services.

    Attributes:
        platform_wallet_id: Wallet receiving the platform's split of each charge
        platform_fee_percent: Default commission when a sub-account sets none
        minimum_withdrawal_amount: Smallest manual withdrawal accepted
        late_fee_percent: Fine applied to late payments
        monthly_interest_percent: Interest per month on late payments
        registration_cancellation_days: Days after due date the gateway
            cancels an unpaid bank slip registration
        charge_horizon_days: How far ahead the scheduler issues charges
        reminder_days_ahead: Days before due date a reminder is sent
        frontend_url: Base URL for notification action links
    """

    platform_wallet_id: str
    platform_fee_percent: Decimal = Decimal("5.00")
    minimum_withdrawal_amount: Decimal = Decimal("20.00")
    late_fee_percent: Decimal = Decimal("2")
    monthly_interest_percent: Decimal = Decimal("1")
    registration_cancellation_days: int = 60
    charge_horizon_days: int = 30
    reminder_days_ahead: int = 3
    frontend_url: str = ""

    @classmethod
    def from_settings(cls) -> PaymentsConfig:
        return cls(
            platform_wallet_id=settings.PLATFORM_WALLET_ID,
            platform_fee_percent=Decimal(str(settings.PLATFORM_FEE_PERCENT)),
            minimum_withdrawal_amount=Decimal(str(settings.MINIMUM_WITHDRAWAL_AMOUNT)),
            charge_horizon_days=getattr(settings, "CHARGE_PREGENERATION_DAYS", 30),
            reminder_days_ahead=settings.PAYMENT_REMINDER_DAYS_AHEAD,
            frontend_url=settings.FRONTEND_URL.rstrip("/"),
        )

    def action_link(self, path: str) -> str:
        """Build an absolute frontend link for a notification."""
        return f"{self.frontend_url}/{path.lstrip('/')}"
