"""
Base exception classes for application-wide error handling.

Every domain error carries a human-readable message, a machine-readable
error code and optional details, so that views, Celery tasks and webhook
handlers can all decide what to do with a failure without string parsing.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Malformed input or payload
    ├── NotFoundError - Referenced entity cannot be resolved
    ├── PermissionDeniedError - Actor may not perform the operation
    ├── ConflictError - State conflicts (duplicates, lost races)
    ├── AlreadyAppliedError - Operation already reached its target state
    ├── PrerequisiteMissingError - A required setup step is incomplete
    └── ExternalServiceError - Third-party service failures

Handling policy:
    - ValidationError / NotFoundError raised while reconciling an inbound
      event are logged and acknowledged; retrying cannot fix them.
    - AlreadyAppliedError is an expected idempotent no-op, logged at INFO.
    - PrerequisiteMissingError is surfaced to the initiating user or job
      and is not retried until the prerequisite is resolved.
    - ExternalServiceError subclasses declare ``is_retryable``.

Usage:
    from core.exceptions import NotFoundError, PrerequisiteMissingError

    raise NotFoundError(
        "PaymentOrder not found",
        error_code="PAYMENT_ORDER_NOT_FOUND",
        details={"payment_order_id": str(order_id)},
    )

    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (ids, amounts, statuses)
        http_status: Status code used when the error reaches a view
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Contract is already cancelled",
                "error_code": "INVALID_STATE_TRANSITION",
                "details": {"current_status": "cancelled"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for malformed webhook payloads, invalid amounts and bad
    request parameters. Never retried.
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """
    Raised when a referenced resource cannot be resolved.

    Inbound events that reference unknown charges, transfers or
    accounts raise this; the reconciler acknowledges them and leaves
    them for manual reconciliation.
    """

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class PermissionDeniedError(BaseApplicationError):
    """Raised when the acting user may not perform an operation."""

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Duplicate entries (a second charge for the same payment order)
    - Concurrent modification conflicts
    - Invalid state transitions

    Note:
        HTTP 409 Conflict is the appropriate status for these errors.
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409


class AlreadyAppliedError(BaseApplicationError):
    """
    Raised when an operation's target state has already been reached.

    This is the idempotent no-op outcome of replayed events. It is not an
    alerting condition.
    """

    default_error_code: str = "ALREADY_APPLIED"
    http_status: int = 200


class PrerequisiteMissingError(BaseApplicationError):
    """
    Raised when a required setup step has not been completed.

    Example:
        if not sub_account.is_provisioned:
            raise PrerequisiteMissingError(
                "Landlord payment account is not provisioned",
                error_code="SUB_ACCOUNT_NOT_PROVISIONED",
                details={"landlord_id": str(landlord.id)},
            )
    """

    default_error_code: str = "PREREQUISITE_MISSING"
    http_status: int = 422


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Subclasses set ``is_retryable`` so callers can choose between a
    backoff retry and a permanent failure path.

    Note:
        Log the original error for debugging but don't expose
        internal details to clients in production.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status: int = 502
    is_retryable: bool = False
