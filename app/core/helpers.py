"""
Helper functions for common infrastructure operations.

This module provides domain-agnostic utility functions for:
- Calendar month arithmetic
- Money rounding
- Payload hashing and constant-time secret comparison

Usage:
    from core.helpers import add_months, quantize_money

    due_date = add_months(contract.start_date, 1)
    payout = quantize_money(net_value - commission)
"""

from __future__ import annotations

import calendar
import hashlib
import hmac
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

CENTS = Decimal("0.01")


def add_months(start: date, months: int) -> date:
    """
    Add calendar months to a date, clamping the day to the month's end.

    Example:
        add_months(date(2024, 1, 31), 1)  # date(2024, 2, 29)
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def quantize_money(value: Decimal | int | str) -> Decimal:
    """Round a monetary value to cents (half-up)."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def hash_bytes(payload: bytes, algorithm: str = "sha256") -> str:
    """Return the hex digest of raw bytes."""
    return hashlib.new(algorithm, payload).hexdigest()


def secrets_match(expected: str, provided: str | None) -> bool:
    """
    Compare two secrets in constant time.

    An empty expected secret never matches, so an unconfigured
    credential cannot authenticate anything.
    """
    if not expected or not provided:
        return False
    return hmac.compare_digest(expected.encode(), provided.encode())
