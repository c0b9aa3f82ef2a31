"""
Tests for payments API views.

Test Classes:
    TestIssueChargeView: POST /api/v1/payments/orders/{id}/charge/
    TestWithdrawalView: POST /api/v1/payments/withdrawals/
"""

import uuid
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from authentication.tests.factories import TenantFactory
from payments.exceptions import GatewayUnavailableError
from payments.models import Charge


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def patched_gateway(gateway):
    with patch("payments.views.AsaasAdapter", gateway):
        yield gateway


class TestIssueChargeView:
    def _url(self, order_id):
        return reverse("payments:issue_charge", kwargs={"payment_order_id": order_id})

    def test_requires_authentication(self, api_client, pending_order):
        response = api_client.post(self._url(pending_order.pk))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_tenant_issues_pix_charge(self, api_client, patched_gateway, pending_order):
        api_client.force_authenticate(user=pending_order.contract.tenant)

        response = api_client.post(self._url(pending_order.pk), {"billing_type": "PIX"}, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["external_charge_id"] == "pay_000000000001"
        assert response.data["billing_type"] == "PIX"
        assert response.data["invoice_url"] == "https://gateway.test/i/pay_000000000001"
        assert Charge.objects.filter(payment_order=pending_order).exists()

    def test_defaults_to_bank_slip(self, api_client, patched_gateway, pending_order):
        api_client.force_authenticate(user=pending_order.contract.landlord)

        response = api_client.post(self._url(pending_order.pk))

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["billing_type"] == "BOLETO"

    def test_outsider_forbidden(self, api_client, patched_gateway, pending_order):
        api_client.force_authenticate(user=TenantFactory())

        response = api_client.post(self._url(pending_order.pk))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        patched_gateway.create_charge.assert_not_called()

    def test_unknown_order(self, api_client, patched_gateway, pending_order):
        api_client.force_authenticate(user=pending_order.contract.tenant)

        response = api_client.post(self._url(uuid.uuid4()))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_already_charged_conflict(self, api_client, patched_gateway, charged_order):
        api_client.force_authenticate(user=charged_order.contract.tenant)

        response = api_client.post(self._url(charged_order.pk))

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "CHARGE_ALREADY_EXISTS"

    def test_gateway_failure_is_bad_gateway(self, api_client, patched_gateway, pending_order):
        patched_gateway.create_charge.side_effect = GatewayUnavailableError("down", status_code=503)
        api_client.force_authenticate(user=pending_order.contract.tenant)

        response = api_client.post(self._url(pending_order.pk))

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert not Charge.objects.filter(payment_order=pending_order).exists()

    def test_invalid_billing_type(self, api_client, patched_gateway, pending_order):
        api_client.force_authenticate(user=pending_order.contract.tenant)

        response = api_client.post(
            self._url(pending_order.pk), {"billing_type": "CREDIT_CARD"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestWithdrawalView:
    url = "/api/v1/payments/withdrawals/"

    def test_withdraws_amount(self, api_client, patched_gateway, sub_account):
        api_client.force_authenticate(user=sub_account.landlord)

        response = api_client.post(self.url, {"amount": "150.00"}, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["id"] == "tra_000000000001"
        assert patched_gateway.create_payout.call_args.args[1].value == Decimal("150.00")

    def test_below_minimum(self, api_client, patched_gateway, sub_account):
        api_client.force_authenticate(user=sub_account.landlord)

        response = api_client.post(self.url, {"amount": "10.00"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "BELOW_MINIMUM_WITHDRAWAL"

    def test_account_not_ready(self, db, api_client, patched_gateway):
        api_client.force_authenticate(user=TenantFactory())

        response = api_client.post(self.url, {}, format="json")

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.data["error_code"] == "SUB_ACCOUNT_NOT_READY"
