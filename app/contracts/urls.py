"""
URL configuration for the contracts app.

Routes:
    - POST /{id}/force-activate/ - Force-activate a contract
    - POST /{id}/cancel/ - Cancel a contract
    - POST /webhooks/esignature/ - E-signature provider webhook endpoint

All routes are prefixed with /api/v1/contracts/ when included in the main URLconf.
"""

from django.urls import path

from contracts.views import CancelContractView, ForceActivateContractView
from payments.webhooks.views import esignature_webhook

app_name = "contracts"

urlpatterns = [
    path(
        "<uuid:contract_id>/force-activate/",
        ForceActivateContractView.as_view(),
        name="force_activate",
    ),
    path("<uuid:contract_id>/cancel/", CancelContractView.as_view(), name="cancel"),
    # Webhook endpoints
    path("webhooks/esignature/", esignature_webhook, name="esignature_webhook"),
]
