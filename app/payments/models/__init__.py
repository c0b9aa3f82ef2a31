"""
Payment domain models.

This module contains all payment-related models:
- PaymentOrder: Monthly installment of a rental contract
- Charge: Gateway charge billing the tenant for a PaymentOrder
- Transfer: Payout of a paid installment to the landlord
- PayeeSubAccount: Landlord's account and credentials at the gateway
- WebhookEvent: Durable record of inbound webhook deliveries
"""

from payments.models.payment_order import Charge, PaymentOrder
from payments.models.sub_account import PayeeSubAccount
from payments.models.transfer import Transfer
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "Charge",
    "PayeeSubAccount",
    "PaymentOrder",
    "Transfer",
    "WebhookEvent",
]
