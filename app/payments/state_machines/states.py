"""
State enums for payment models.

This module defines all state enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

PaymentOrder States:
    pending → overdue (due date passed, scheduler)
    pending/overdue → paid (gateway: payment received/confirmed)
    paid → payout_pending (transfer requested)
    payout_pending → received (gateway: transfer done)
    payout_pending → paid (gateway: transfer failed/cancelled, reverted)
    pending/overdue → cancelled (contract cancelled)
    overdue → pending (payment restored)
    paid → pending (payment deleted before any transfer)

Transfer States:
    pending → done
    pending → failed
    pending → cancelled
"""

from django.db import models


class PaymentOrderState(models.TextChoices):
    """
    States for the PaymentOrder model lifecycle.

    Terminal states: RECEIVED, CANCELLED
    "Billed" is not a state: a Charge row attached to a PENDING order
    signals that the tenant has been billed.
    """

    PENDING = "pending", "Pending"
    OVERDUE = "overdue", "Overdue"
    PAID = "paid", "Paid"
    PAYOUT_PENDING = "payout_pending", "Payout Pending"
    RECEIVED = "received", "Received"
    CANCELLED = "cancelled", "Cancelled"

    @classmethod
    def settled_states(cls) -> list[str]:
        """States in which the tenant's payment has already been applied."""
        return [cls.PAID, cls.PAYOUT_PENDING, cls.RECEIVED]

    @classmethod
    def open_states(cls) -> list[str]:
        """States that a contract cancellation moves to CANCELLED."""
        return [cls.PENDING, cls.OVERDUE]


class TransferState(models.TextChoices):
    """
    States for the Transfer (payout) model lifecycle.

    PENDING is the state of every newly requested transfer; the gateway
    reports exactly one terminal status afterwards.
    """

    PENDING = "pending", "Pending"
    DONE = "done", "Done"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


class TransferKind(models.TextChoices):
    """What a Transfer pays out."""

    INSTALLMENT_PAYOUT = "installment_payout", "Installment payout"
    WITHDRAWAL = "withdrawal", "Manual withdrawal"


class BillingType(models.TextChoices):
    """Ways a tenant can pay a charge."""

    BANK_SLIP = "BOLETO", "Bank Slip"
    PIX = "PIX", "PIX"


class PixKeyType(models.TextChoices):
    """Types of PIX keys accepted as a payout destination."""

    CPF = "CPF", "CPF"
    CNPJ = "CNPJ", "CNPJ"
    EMAIL = "EMAIL", "E-mail"
    PHONE = "PHONE", "Phone"
    EVP = "EVP", "Random Key"


class AccountApprovalStatus(models.TextChoices):
    """
    Approval status snapshots reported by the gateway for a sub-account.

    The gateway reports one of these for each of the general,
    documentation, commercial info and bank account checks.
    """

    PENDING = "PENDING", "Pending"
    AWAITING_APPROVAL = "AWAITING_APPROVAL", "Awaiting Approval"
    APPROVED = "APPROVED", "Approved"
    REJECTED = "REJECTED", "Rejected"


class WebhookSource(models.TextChoices):
    """External systems that deliver webhooks."""

    PAYMENT_GATEWAY = "payment_gateway", "Payment Gateway"
    ESIGNATURE = "esignature", "E-signature Provider"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


__all__ = [
    "AccountApprovalStatus",
    "BillingType",
    "PaymentOrderState",
    "PixKeyType",
    "TransferState",
    "WebhookEventStatus",
    "WebhookSource",
]
