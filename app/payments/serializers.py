"""
DRF serializers for payments app.

This module provides serializers for:
- Charge issuance requests and charge display
- Manual withdrawal requests and results

Related files:
    - models: PaymentOrder, Charge
    - views.py: Payment API views

Usage:
    serializer = IssueChargeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from payments.models import Charge
from payments.state_machines import BillingType


class IssueChargeSerializer(serializers.Serializer):
    """Request body for issuing an installment's charge."""

    billing_type = serializers.ChoiceField(
        choices=BillingType.choices,
        default=BillingType.BANK_SLIP,
    )


class ChargeSerializer(serializers.ModelSerializer):
    """
    Charge serializer for API responses.

    Exposes the payment links shown to the tenant.
    """

    payment_order_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Charge
        fields = [
            "id",
            "payment_order_id",
            "external_charge_id",
            "billing_type",
            "value",
            "due_date",
            "invoice_url",
            "bank_slip_url",
            "our_number",
            "external_status",
            "created_at",
        ]
        read_only_fields = fields


class WithdrawalRequestSerializer(serializers.Serializer):
    """Request body for a manual withdrawal; omit amount to withdraw everything."""

    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.01"),
        required=False,
        allow_null=True,
    )


class WithdrawalResultSerializer(serializers.Serializer):
    """Gateway acknowledgement of a withdrawal."""

    id = serializers.CharField()
    status = serializers.CharField()
    value = serializers.DecimalField(max_digits=12, decimal_places=2)
