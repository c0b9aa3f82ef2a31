"""
Payments app configuration.

This app provides the payment reconciliation engine:
- Ledger entities (PaymentOrder, Charge, Transfer, PayeeSubAccount)
- Asaas gateway integration
- Webhook reconciliation
- Scheduled collection jobs
"""

from django.apps import AppConfig


class PaymentsAppConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self):
        # Populate the webhook handler registry
        from payments.webhooks import handlers  # noqa: F401
