"""
DRF views for contracts app.

Endpoints:
    POST /api/v1/contracts/{id}/force-activate/ - Activate without signatures
    POST /api/v1/contracts/{id}/cancel/ - Cancel contract and unpaid installments

Security:
    - All endpoints require authentication
    - Only the contract's landlord or an admin may act (checked by the service)
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError

from contracts.models import Contract
from contracts.serializers import (
    CancellationResultSerializer,
    ContractSerializer,
    PaymentOrderSerializer,
)
from contracts.services import ContractLifecycleService


def _get_contract(contract_id) -> Contract | None:
    return Contract.objects.select_related("landlord", "tenant").filter(pk=contract_id).first()


class ForceActivateContractView(APIView):
    """
    Activate a contract without waiting for the e-signature callback.

    POST /api/v1/contracts/{contract_id}/force-activate/

    Response:
        200 OK: Contract active, installments listed
        403 Forbidden: Not the landlord or an admin
        404 Not Found: Contract doesn't exist
        409 Conflict: Contract cannot be activated from its status
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="force_activate_contract",
        summary="Force-activate contract",
        request=None,
        responses={
            200: OpenApiResponse(description="Contract active with its installments"),
            403: OpenApiResponse(description="Not allowed"),
            404: OpenApiResponse(description="Contract not found"),
            409: OpenApiResponse(description="Invalid state"),
        },
        tags=["Contracts"],
    )
    def post(self, request, contract_id):
        contract = _get_contract(contract_id)
        if contract is None:
            return Response({"error": "Contract not found"}, status=status.HTTP_404_NOT_FOUND)

        try:
            orders = ContractLifecycleService.force_activate(contract, actor=request.user)
        except BaseApplicationError as e:
            return Response(e.to_dict(), status=e.http_status)

        return Response(
            {
                "contract": ContractSerializer(contract).data,
                "payment_orders": PaymentOrderSerializer(orders, many=True).data,
            }
        )


class CancelContractView(APIView):
    """
    Cancel a contract.

    POST /api/v1/contracts/{contract_id}/cancel/

    Response:
        200 OK: Contract cancelled
        403 Forbidden: Not the landlord or an admin
        404 Not Found: Contract doesn't exist
        409 Conflict: Contract already cancelled or finished
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="cancel_contract",
        summary="Cancel contract",
        request=None,
        responses={
            200: OpenApiResponse(response=CancellationResultSerializer, description="Cancelled"),
            403: OpenApiResponse(description="Not allowed"),
            404: OpenApiResponse(description="Contract not found"),
            409: OpenApiResponse(description="Invalid state"),
        },
        tags=["Contracts"],
    )
    def post(self, request, contract_id):
        contract = _get_contract(contract_id)
        if contract is None:
            return Response({"error": "Contract not found"}, status=status.HTTP_404_NOT_FOUND)

        try:
            result = ContractLifecycleService.cancel(contract, actor=request.user)
        except BaseApplicationError as e:
            return Response(e.to_dict(), status=e.http_status)

        return Response(CancellationResultSerializer(result).data)
