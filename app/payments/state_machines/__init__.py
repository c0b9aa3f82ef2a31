"""
State machine enums for payment models.

This module defines the state enums used by payment models with django-fsm.
"""

from payments.state_machines.states import (
    AccountApprovalStatus,
    BillingType,
    PaymentOrderState,
    PixKeyType,
    TransferKind,
    TransferState,
    WebhookEventStatus,
    WebhookSource,
)

__all__ = [
    "AccountApprovalStatus",
    "BillingType",
    "PaymentOrderState",
    "PixKeyType",
    "TransferKind",
    "TransferState",
    "WebhookEventStatus",
    "WebhookSource",
]
