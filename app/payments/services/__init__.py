"""
Payment services for coordinating payment operations.

This module provides:
- ChargeIssuer: Bills a tenant for one installment
- PayoutOrchestrator: Pays collected rent out to the landlord
- WithdrawalService: Manual balance withdrawals
- SubAccountService: Landlord sub-account bookkeeping

Usage:
    from notifications.services import NotificationService
    from payments.adapters import AsaasAdapter
    from payments.config import PaymentsConfig
    from payments.services import ChargeIssuer, PayoutOrchestrator

    config = PaymentsConfig.from_settings()

    # Bill the tenant
    charge = ChargeIssuer(AsaasAdapter, config).issue_charge(order.id, BillingType.PIX)

    # Pay the landlord once the order is PAID
    result = PayoutOrchestrator(AsaasAdapter, config, NotificationService).initiate_payout(order)
"""

from payments.services.charge_issuer import ChargeIssuer
from payments.services.payout_orchestrator import PayoutOrchestrator, calculate_payout
from payments.services.sub_account_service import SubAccountService
from payments.services.withdrawal_service import WithdrawalService

__all__ = [
    "ChargeIssuer",
    "PayoutOrchestrator",
    "SubAccountService",
    "WithdrawalService",
    "calculate_payout",
]
