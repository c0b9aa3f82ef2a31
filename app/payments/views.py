"""
DRF views for payments app.

This module provides API views for:
- Issuing the charge for an installment
- Manual withdrawals of a landlord's balance

Related files:
    - services: ChargeIssuer, WithdrawalService
    - serializers.py: Request/response serializers
    - urls.py: URL routing

Endpoints:
    POST /api/v1/payments/orders/{id}/charge/ - Issue the installment's charge
    POST /api/v1/payments/withdrawals/ - Withdraw available balance

Security:
    - All endpoints require authentication
    - Charges can be issued by the contract's landlord or tenant, or an admin
    - Withdrawals always act on the requesting landlord's own account
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError

from payments.adapters import AsaasAdapter
from payments.config import PaymentsConfig
from payments.models import PaymentOrder
from payments.serializers import (
    ChargeSerializer,
    IssueChargeSerializer,
    WithdrawalRequestSerializer,
    WithdrawalResultSerializer,
)
from payments.services import ChargeIssuer, WithdrawalService

logger = logging.getLogger(__name__)


def error_response(error: BaseApplicationError) -> Response:
    """Render a domain error with its HTTP status."""
    return Response(error.to_dict(), status=error.http_status)


class IssueChargeView(APIView):
    """
    Issue the gateway charge for one installment.

    POST /api/v1/payments/orders/{payment_order_id}/charge/

    Request body:
        {"billing_type": "BOLETO" | "PIX"}

    Response:
        201 Created: Charge issued
        403 Forbidden: Not a party to the contract
        404 Not Found: Installment doesn't exist
        409 Conflict: Installment not billable or already billed
        422 Unprocessable: Landlord account or tenant customer missing
        502 Bad Gateway: Gateway rejected or failed the request
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="issue_charge",
        summary="Issue installment charge",
        request=IssueChargeSerializer,
        responses={
            201: OpenApiResponse(response=ChargeSerializer, description="Charge issued"),
            403: OpenApiResponse(description="Not a party to the contract"),
            404: OpenApiResponse(description="Payment order not found"),
            409: OpenApiResponse(description="Not billable or already billed"),
            422: OpenApiResponse(description="Prerequisite missing"),
            502: OpenApiResponse(description="Gateway error"),
        },
        tags=["Payments"],
    )
    def post(self, request, payment_order_id):
        serializer = IssueChargeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = PaymentOrder.objects.select_related("contract").filter(pk=payment_order_id).first()
        if order is None:
            return Response({"error": "Payment order not found"}, status=status.HTTP_404_NOT_FOUND)

        if not (order.contract.is_party(request.user) or request.user.is_admin):
            return Response(
                {"error": "You are not a party to this contract"},
                status=status.HTTP_403_FORBIDDEN,
            )

        issuer = ChargeIssuer(gateway=AsaasAdapter, config=PaymentsConfig.from_settings())
        try:
            charge = issuer.issue_charge(order.pk, serializer.validated_data["billing_type"])
        except BaseApplicationError as e:
            return error_response(e)

        return Response(ChargeSerializer(charge).data, status=status.HTTP_201_CREATED)


class WithdrawalView(APIView):
    """
    Withdraw the landlord's available balance to their PIX key.

    POST /api/v1/payments/withdrawals/

    Request body:
        {"amount": "150.00"}  (optional, defaults to the whole balance)

    Response:
        201 Created: Withdrawal requested
        400 Bad Request: Below minimum or above balance
        422 Unprocessable: Payout account not ready
        502 Bad Gateway: Gateway error
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="request_withdrawal",
        summary="Request manual withdrawal",
        request=WithdrawalRequestSerializer,
        responses={
            201: OpenApiResponse(response=WithdrawalResultSerializer, description="Requested"),
            400: OpenApiResponse(description="Invalid amount"),
            422: OpenApiResponse(description="Payout account not ready"),
            502: OpenApiResponse(description="Gateway error"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = WithdrawalRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        service = WithdrawalService(gateway=AsaasAdapter, config=PaymentsConfig.from_settings())
        try:
            result = service.request_withdrawal(
                request.user,
                amount=serializer.validated_data.get("amount"),
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(
            WithdrawalResultSerializer(
                {"id": result.id, "status": result.status, "value": result.value}
            ).data,
            status=status.HTTP_201_CREATED,
        )
