"""
Asaas REST API adapter for payment gateway operations.

This module provides the AsaasAdapter class which encapsulates all
payment gateway HTTP calls. All gateway calls should go through this
adapter to ensure consistent error handling, timeouts and observability.

Features:
- Bounded timeout on every request
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Per-call API key, so sub-account operations use the landlord's key

Configuration (via settings):
- PAYMENT_GATEWAY_BASE_URL: API base URL (e.g. https://api.asaas.com/v3)
- PAYMENT_GATEWAY_API_KEY: Platform API key
- PAYMENT_GATEWAY_TIMEOUT_SECONDS: Request timeout (default: 10)
- PAYMENT_GATEWAY_MAX_RETRIES: Attempts used by with_retries (default: 3)

Usage:
    from payments.adapters import AsaasAdapter, CreateChargeParams

    result = AsaasAdapter.create_charge(
        sub_account.api_key,
        CreateChargeParams(
            customer_id=tenant.payment_customer_id,
            billing_type=BillingType.PIX,
            due_date=order.due_date,
            value=order.amount_due,
            external_reference=str(order.id),
            split_wallet_id=config.platform_wallet_id,
            split_percent=Decimal("5.00"),
        ),
    )
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import httpx
from django.conf import settings

from payments.exceptions import (
    GatewayError,
    GatewayRateLimitError,
    GatewayRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import TypeVar

    T = TypeVar("T")


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreateChargeParams:
    """
    Parameters for creating a gateway charge.

    Attributes:
        customer_id: Gateway customer id of the tenant
        billing_type: "BOLETO" or "PIX"
        due_date: Due date of the charge
        value: Amount charged, in BRL
        external_reference: Our PaymentOrder id
        split_wallet_id: Wallet receiving the platform's share
        split_percent: Platform share, in percent of the charge
        description: Text shown to the payer
        fine_percent: Fine applied after the due date
        interest_percent: Interest per month after the due date
        cancel_registration_after_days: Days after due date the gateway
            drops an unpaid bank slip registration
    """

    customer_id: str
    billing_type: str
    due_date: date
    value: Decimal
    external_reference: str
    split_wallet_id: str
    split_percent: Decimal
    description: str = ""
    fine_percent: Decimal = Decimal("2")
    interest_percent: Decimal = Decimal("1")
    cancel_registration_after_days: int = 60

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if self.value <= 0:
            raise ValueError("value must be positive")
        if not self.customer_id:
            raise ValueError("customer_id is required")
        if not self.split_wallet_id:
            raise ValueError("split_wallet_id is required")

    def to_payload(self) -> dict[str, Any]:
        return {
            "customer": self.customer_id,
            "billingType": self.billing_type,
            "dueDate": self.due_date.isoformat(),
            "value": float(self.value),
            "description": self.description,
            "externalReference": self.external_reference,
            "daysAfterDueDateToRegistrationCancellation": self.cancel_registration_after_days,
            "fine": {"value": float(self.fine_percent), "type": "PERCENTAGE"},
            "interest": {"value": float(self.interest_percent)},
            "split": [
                {
                    "walletId": self.split_wallet_id,
                    "percentualValue": float(self.split_percent),
                }
            ],
        }


@dataclass
class CreatePayoutParams:
    """
    Parameters for a PIX transfer out of a sub-account.

    Attributes:
        value: Amount to send, in BRL
        pix_key: Destination PIX key
        pix_key_type: CPF, CNPJ, EMAIL, PHONE or EVP
        description: Text shown on the landlord's statement
    """

    value: Decimal
    pix_key: str
    pix_key_type: str
    description: str = ""

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if self.value <= 0:
            raise ValueError("value must be positive")
        if not self.pix_key:
            raise ValueError("pix_key is required")

    def to_payload(self) -> dict[str, Any]:
        return {
            "operationType": "PIX",
            "value": float(self.value),
            "pixAddressKey": self.pix_key,
            "pixAddressKeyType": self.pix_key_type,
            "description": self.description,
        }


@dataclass
class ChargeResult:
    """
    Result from gateway charge creation.

    Attributes:
        id: Gateway charge id (pay_xxx)
        status: Gateway status (PENDING, RECEIVED, ...)
        invoice_url: Hosted invoice page
        bank_slip_url: Bank slip PDF (empty for PIX)
        our_number: Bank slip "nosso numero" (empty for PIX)
        raw_response: Full gateway response (for debugging)
    """

    id: str
    status: str
    invoice_url: str = ""
    bank_slip_url: str = ""
    our_number: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class PayoutResult:
    """
    Result from gateway transfer creation.

    Attributes:
        id: Gateway transfer id
        status: Gateway transfer status
        value: Amount accepted by the gateway
        raw_response: Full gateway response
    """

    id: str
    status: str
    value: Decimal
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class BalanceResult:
    """Available balance of a gateway account."""

    value: Decimal


# =============================================================================
# Retry Logic Helpers
# =============================================================================


def is_retryable_gateway_error(error: Exception) -> bool:
    """
    Check if a gateway error is retryable.

    Args:
        error: The exception to check

    Returns:
        True if the error is a transient gateway error that can be retried
    """
    if isinstance(error, GatewayError):
        return getattr(error, "is_retryable", False)
    return False


def backoff_delay(attempt: int, base: float = 1.0, max_delay: float = 60.0) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Jitter prevents thundering herd when multiple workers retry simultaneously.

    Args:
        attempt: Current attempt number (0-indexed)
        base: Base delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)

    Returns:
        Delay in seconds with jitter (0-25% of calculated delay)

    Example:
        # Attempt 0: 1.0 - 1.25 seconds
        # Attempt 1: 2.0 - 2.5 seconds
        # Attempt 2: 4.0 - 5.0 seconds
        delay = backoff_delay(attempt=2)
    """
    delay = min(base * (2**attempt), max_delay)
    jitter = delay * random.uniform(0, 0.25)
    return delay + jitter


def with_retries(
    fn: Callable[[], T],
    attempts: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``fn`` retrying retryable gateway errors with exponential backoff.

    Permanent errors and the last retryable error propagate unchanged.

    Example:
        balance = with_retries(lambda: AsaasAdapter.get_balance(api_key))
    """
    if attempts is None:
        attempts = getattr(settings, "PAYMENT_GATEWAY_MAX_RETRIES", 3)

    for attempt in range(attempts):
        try:
            return fn()
        except GatewayError as e:
            if not e.is_retryable or attempt == attempts - 1:
                raise
            delay = backoff_delay(attempt)
            logging.getLogger(__name__).warning(
                "Retrying gateway call after transient error",
                extra={
                    "attempt": attempt + 1,
                    "delay_seconds": round(delay, 2),
                    "error_code": e.error_code,
                },
            )
            sleep(delay)
    raise ValueError("attempts must be at least 1")


# =============================================================================
# Asaas Adapter
# =============================================================================


class AsaasAdapter:
    """
    Adapter for payment gateway operations.

    All methods are class-level - no instance state is maintained.
    Thread-safe for use from Celery workers.

    Callers pass the API key of the account the operation runs on:
    the landlord's sub-account key for charges, transfers and balance
    reads. Charge creation is never retried here; retry policy belongs
    to the caller, which re-checks the ledger before trying again.
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @staticmethod
    def _base_url() -> str:
        return settings.PAYMENT_GATEWAY_BASE_URL.rstrip("/")

    @staticmethod
    def _timeout() -> float:
        return float(getattr(settings, "PAYMENT_GATEWAY_TIMEOUT_SECONDS", 10))

    # =========================================================================
    # Core Operations
    # =========================================================================

    @classmethod
    def create_charge(cls, api_key: str, params: CreateChargeParams) -> ChargeResult:
        """
        Create a charge with a platform split.

        Args:
            api_key: Landlord sub-account API key
            params: Charge parameters

        Returns:
            ChargeResult with gateway id and display fields

        Raises:
            GatewayRequestError: Invalid parameters or rejected charge
            GatewayUnavailableError: Gateway unavailable
            GatewayTimeoutError: Request timed out
        """
        data = cls._request(
            "POST",
            "/payments",
            api_key,
            payload=params.to_payload(),
            log_context={
                "operation": "create_charge",
                "external_reference": params.external_reference,
                "billing_type": params.billing_type,
                "value": str(params.value),
            },
        )
        return ChargeResult(
            id=data["id"],
            status=data.get("status", ""),
            invoice_url=data.get("invoiceUrl") or "",
            bank_slip_url=data.get("bankSlipUrl") or "",
            our_number=data.get("nossoNumero") or "",
            raw_response=data,
        )

    @classmethod
    def cancel_charge(cls, api_key: str, charge_id: str) -> None:
        """
        Cancel (delete) a charge at the gateway.

        Raises:
            GatewayRequestError: Charge unknown or no longer cancellable
            GatewayUnavailableError: Gateway unavailable
        """
        cls._request(
            "DELETE",
            f"/payments/{charge_id}",
            api_key,
            log_context={"operation": "cancel_charge", "charge_id": charge_id},
        )

    @classmethod
    def create_payout(cls, api_key: str, params: CreatePayoutParams) -> PayoutResult:
        """
        Send a PIX transfer from a sub-account.

        Args:
            api_key: Landlord sub-account API key
            params: Transfer parameters

        Returns:
            PayoutResult with gateway transfer id

        Raises:
            GatewayRequestError: Invalid key, insufficient balance, ...
            GatewayUnavailableError: Gateway unavailable
            GatewayTimeoutError: Request timed out
        """
        data = cls._request(
            "POST",
            "/transfers",
            api_key,
            payload=params.to_payload(),
            log_context={
                "operation": "create_payout",
                "value": str(params.value),
                "pix_key_type": params.pix_key_type,
            },
        )
        return PayoutResult(
            id=data["id"],
            status=data.get("status", ""),
            value=Decimal(str(data.get("value", params.value))),
            raw_response=data,
        )

    @classmethod
    def get_balance(cls, api_key: str) -> BalanceResult:
        """Read the available balance of an account."""
        data = cls._request(
            "GET",
            "/finance/balance",
            api_key,
            log_context={"operation": "get_balance"},
        )
        return BalanceResult(value=Decimal(str(data.get("balance", "0"))))

    # =========================================================================
    # HTTP
    # =========================================================================

    @classmethod
    def _request(
        cls,
        method: str,
        path: str,
        api_key: str,
        payload: dict[str, Any] | None = None,
        log_context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        logger = cls.get_logger()
        log_context = {"method": method, "path": path, **(log_context or {})}

        start_time = time.time()
        logger.info("Starting gateway operation", extra=log_context)

        try:
            response = httpx.request(
                method,
                f"{cls._base_url()}{path}",
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "access_token": api_key,
                },
                timeout=cls._timeout(),
            )
        except httpx.HTTPError as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_transport_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        if response.status_code >= 400:
            cls._handle_error_response(response, log_context, duration_ms)

        try:
            data = response.json() if response.content else {}
        except ValueError as e:
            logger.error("Gateway returned a non-JSON body", extra=log_context)
            raise GatewayUnavailableError(
                "Gateway returned an unreadable response",
                status_code=response.status_code,
            ) from e

        logger.info(
            "Gateway operation completed",
            extra={
                **log_context,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return data

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_transport_error(
        cls,
        error: httpx.HTTPError,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate httpx transport failures to domain exceptions.

        Raises:
            GatewayTimeoutError: Request timed out
            GatewayUnavailableError: Connection or protocol failure
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, httpx.TimeoutException):
            logger.warning("Gateway request timed out", extra=log_context)
            raise GatewayTimeoutError(
                "Payment gateway request timed out. Please retry.",
            ) from error

        logger.error("Connection error to payment gateway", extra=log_context, exc_info=True)
        raise GatewayUnavailableError(
            f"Could not reach the payment gateway: {error}",
        ) from error

    @classmethod
    def _handle_error_response(
        cls,
        response: httpx.Response,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate gateway error responses to domain exceptions.

        Raises:
            GatewayRateLimitError: HTTP 429
            GatewayUnavailableError: HTTP 5xx
            GatewayRequestError: Any other 4xx, with the gateway's
                error descriptions
        """
        logger = cls.get_logger()
        status_code = response.status_code
        log_context = {**log_context, "status_code": status_code, "duration_ms": duration_ms}

        if status_code == 429:
            logger.warning("Rate limited by payment gateway", extra=log_context)
            raise GatewayRateLimitError(
                "Payment gateway rate limit exceeded. Please retry.",
                status_code=status_code,
            )

        if status_code >= 500:
            logger.error("Payment gateway server error", extra=log_context)
            raise GatewayUnavailableError(
                "Payment gateway service error. Please retry.",
                status_code=status_code,
            )

        descriptions = cls._error_descriptions(response)
        if status_code in (401, 403):
            logger.critical(
                "Payment gateway authentication failed - check API key",
                extra=log_context,
            )
        else:
            logger.error(
                "Payment gateway rejected request",
                extra={**log_context, "gateway_errors": descriptions},
            )

        raise GatewayRequestError(
            descriptions[0] if descriptions else "Payment gateway rejected the request",
            status_code=status_code,
            gateway_errors=descriptions,
        )

    @staticmethod
    def _error_descriptions(response: httpx.Response) -> list[str]:
        try:
            body = response.json()
        except ValueError:
            return []
        errors = body.get("errors") if isinstance(body, dict) else None
        if not isinstance(errors, list):
            return []
        return [e["description"] for e in errors if isinstance(e, dict) and e.get("description")]
