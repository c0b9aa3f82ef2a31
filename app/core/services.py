"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Pattern Comparison:
    - ServiceResult: Use for expected outcomes a caller branches on
      (webhook handler results, skipped payouts)
    - Exceptions: Use for failures the caller must not ignore
      (precondition violations, gateway errors)

Usage:
    from core.services import BaseService, ServiceResult

    class ChargeIssuer(BaseService):
        def issue_charge(self, payment_order_id, billing_type):
            with self.atomic():
                ...
            self.get_logger().info("Charge issued", extra={...})
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

    from core.exceptions import BaseApplicationError

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures

    Usage:
        result = dispatch_webhook(event)
        if result.success:
            event.mark_processed()
        else:
            event.mark_failed(result.error)
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def ok(cls, data: T | None = None) -> ServiceResult[T]:
        """
        Create a successful result.

        Example:
            return ServiceResult.ok({"payment_order_id": str(order.id)})
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors keep their own error code; any other
        exception falls back to its class name.
        """
        code = error_code or getattr(exc, "error_code", None)
        message = getattr(exc, "message", None) or str(exc)
        return cls(
            success=False,
            error=message,
            error_code=code or exc.__class__.__name__.upper(),
        )

    def to_response(self) -> dict[str, Any]:
        """Convert to API response format."""
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - Exception to result conversion

    Services that need collaborators (gateway client, configuration,
    notification sink) receive them through ``__init__``; stateless
    services keep to classmethods.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Example:
            with cls.atomic():
                LedgerStore.transition(order, order.mark_payout_pending)
                Transfer.objects.create(...)
                # If the insert fails, the status change is rolled back
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: BaseApplicationError | Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Convert exception to ServiceResult with logging.

        Args:
            exc: The caught exception
            context: Additional context for logging
            log_level: Logging level (default ERROR)
        """
        logger = cls.get_logger()
        message = f"{context}: {exc}" if context else str(exc)
        logger.log(log_level, message, exc_info=log_level >= logging.ERROR)
        return ServiceResult.from_exception(exc)
