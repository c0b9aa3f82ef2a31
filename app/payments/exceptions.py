"""
Payment-specific exceptions for payment operations.

This module provides the exceptions raised by the ledger, the charge and
payout services and the gateway client.

Exception Hierarchy:
    GatewayError (ExternalServiceError) - Base for all gateway errors
    ├── GatewayRequestError - Rejected request, 4xx (permanent)
    ├── GatewayRateLimitError - Rate limited, 429 (transient, retry)
    ├── GatewayUnavailableError - 5xx or connection failure (transient, retry)
    └── GatewayTimeoutError - Request timeout (transient, retry)

    ChargeAlreadyExistsError - Second charge for an order (inherits ConflictError)
    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)
    PayoutFailureEscalation - Payout failed, routed to administrators

Usage:
    from payments.exceptions import (
        ChargeAlreadyExistsError,
        GatewayError,
        InvalidStateTransitionError,
    )

    # Invalid state transition
    raise InvalidStateTransitionError(
        "Cannot issue a charge for a 'paid' payment order",
        details={"current_state": "paid", "payment_order_id": str(order.id)},
    )

    # Gateway failure
    try:
        AsaasAdapter.create_charge(api_key, params)
    except GatewayError as e:
        if e.is_retryable:
            raise self.retry(exc=e)
        raise
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError, ExternalServiceError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(ExternalServiceError):
    """
    Base exception for all payment gateway errors.

    Provides common attributes for gateway error handling:
    - status_code: HTTP status returned by the gateway (None if no response)
    - gateway_errors: The gateway's ``errors[].description`` messages
    - is_retryable: Whether the operation can be retried

    Use is_retryable to determine retry behavior:
    - True: Transient error, safe to retry with backoff
    - False: Permanent error, do not retry

    Example:
        try:
            AsaasAdapter.create_payout(api_key, params)
        except GatewayError as e:
            if e.is_retryable:
                schedule_retry(e, backoff=exponential)
            else:
                escalate_to_admins(e)
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        gateway_errors: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        if gateway_errors:
            details["gateway_errors"] = gateway_errors
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code
        self.gateway_errors = gateway_errors or []


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class GatewayRequestError(GatewayError):
    """
    The gateway rejected the request (HTTP 4xx other than 429).

    This is a permanent error - the request itself is invalid and will
    never succeed with the same parameters. The gateway's error
    descriptions are carried in ``gateway_errors``.

    Possible causes:
    - Unknown customer, wallet or charge id
    - Invalid PIX key
    - Insufficient balance for a transfer
    - Invalid or revoked API key
    """

    default_error_code: str = "GATEWAY_REQUEST_REJECTED"
    is_retryable: bool = False


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class GatewayRateLimitError(GatewayError):
    """
    Rate limited by the gateway (HTTP 429).

    Retry Strategy:
    - Use exponential backoff starting at 1 second
    - Bounded number of retries before failing
    """

    default_error_code: str = "GATEWAY_RATE_LIMITED"
    is_retryable: bool = True


class GatewayUnavailableError(GatewayError):
    """
    The gateway is temporarily unavailable.

    This covers:
    - Gateway server errors (5xx)
    - Network connectivity issues
    - DNS resolution and TLS failures
    """

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


class GatewayTimeoutError(GatewayError):
    """
    Gateway call timed out.

    The request was sent but no response was received within the
    configured timeout (PAYMENT_GATEWAY_TIMEOUT_SECONDS).

    IMPORTANT: The operation may have succeeded on the gateway's side.
    Charge creation is only retried by callers that re-check the local
    ledger first, so a retry cannot attach a second Charge to an order.
    """

    default_error_code: str = "GATEWAY_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# Ledger Exceptions
# =============================================================================


class ChargeAlreadyExistsError(ConflictError):
    """
    Raised when a payment order already has a Charge.

    Callers treat this as "already done": the existing charge is the
    one the tenant pays.

    Example:
        if Charge.objects.filter(payment_order=order).exists():
            raise ChargeAlreadyExistsError(
                "Payment order already has a charge",
                details={"payment_order_id": str(order.id)},
            )
    """

    default_error_code: str = "CHARGE_ALREADY_EXISTS"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    Raised by LedgerStore.transition when the requested django-fsm
    transition is not declared from the instance's current state, and by
    services whose preconditions require a particular state.

    Attributes:
        details: Contains current_state, transition name and entity id

    Note:
        This exception inherits from ConflictError (HTTP 409) because
        the current state conflicts with the requested operation.
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


class PayoutFailureEscalation(BaseApplicationError):
    """
    A payout to a landlord failed and needs a human.

    Never retried automatically. The escalation carries the landlord,
    property, amount and failure reason in ``details`` and is delivered
    to every administrator through the notification sink.
    """

    default_error_code: str = "PAYOUT_FAILED"

    def __init__(
        self,
        message: str,
        landlord_id: str,
        property_label: str,
        amount: str,
        reason: str,
        dedupe_key: str,
        details: dict[str, Any] | None = None,
    ):
        details = {
            **(details or {}),
            "landlord_id": landlord_id,
            "property": property_label,
            "amount": amount,
            "reason": reason,
        }
        super().__init__(message, details=details)
        self.dedupe_key = dedupe_key


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Gateway
    "GatewayError",
    "GatewayRequestError",
    "GatewayRateLimitError",
    "GatewayUnavailableError",
    "GatewayTimeoutError",
    # Ledger
    "ChargeAlreadyExistsError",
    "InvalidStateTransitionError",
    "PayoutFailureEscalation",
]
