"""
DRF serializers for contracts app.

Usage:
    serializer = ContractSerializer(contract)
    data = serializer.data
"""

from __future__ import annotations

from rest_framework import serializers

from contracts.models import Contract
from payments.models import PaymentOrder


class PaymentOrderSerializer(serializers.ModelSerializer):
    """Installment summary shown with an activated contract."""

    class Meta:
        model = PaymentOrder
        fields = ["id", "installment_number", "due_date", "amount_due", "status"]
        read_only_fields = fields


class ContractSerializer(serializers.ModelSerializer):
    """Contract serializer for API responses."""

    class Meta:
        model = Contract
        fields = [
            "id",
            "status",
            "property_id",
            "property_label",
            "start_date",
            "end_date",
            "duration_in_months",
            "rent_amount",
            "condo_fee",
            "iptu_fee",
            "activated_at",
            "cancelled_at",
            "finished_at",
        ]
        read_only_fields = fields


class CancellationResultSerializer(serializers.Serializer):
    """Cancelled contract plus what happened to its installments and charges."""

    contract = ContractSerializer()
    cancelled_order_ids = serializers.ListField(child=serializers.CharField())
    cancelled_charge_ids = serializers.ListField(child=serializers.CharField())
    failed_charge_ids = serializers.ListField(child=serializers.CharField())
