"""
URL configuration for the payments app.

Routes:
    - POST /orders/{id}/charge/ - Issue an installment's charge
    - POST /withdrawals/ - Manual withdrawal
    - POST /webhooks/payment-gateway/ - Payment gateway webhook endpoint

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.
"""

from django.urls import path

from payments.views import IssueChargeView, WithdrawalView
from payments.webhooks.views import payment_gateway_webhook

app_name = "payments"

urlpatterns = [
    path("orders/<uuid:payment_order_id>/charge/", IssueChargeView.as_view(), name="issue_charge"),
    path("withdrawals/", WithdrawalView.as_view(), name="withdrawals"),
    # Webhook endpoints
    path(
        "webhooks/payment-gateway/",
        payment_gateway_webhook,
        name="payment_gateway_webhook",
    ),
]
