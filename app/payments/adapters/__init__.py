"""
Payment adapters for external services.

All payment gateway API calls should go through these adapters to ensure
consistent error handling, timeouts and observability.

Usage:
    from payments.adapters import AsaasAdapter, CreatePayoutParams

    result = AsaasAdapter.create_payout(
        sub_account.api_key,
        CreatePayoutParams(
            value=Decimal("1405.00"),
            pix_key=sub_account.pix_key,
            pix_key_type=sub_account.pix_key_type,
        ),
    )
"""

from payments.adapters.asaas_adapter import (
    AsaasAdapter,
    BalanceResult,
    ChargeResult,
    CreateChargeParams,
    CreatePayoutParams,
    PayoutResult,
    backoff_delay,
    is_retryable_gateway_error,
    with_retries,
)

__all__ = [
    "AsaasAdapter",
    "BalanceResult",
    "ChargeResult",
    "CreateChargeParams",
    "CreatePayoutParams",
    "PayoutResult",
    "backoff_delay",
    "is_retryable_gateway_error",
    "with_retries",
]
