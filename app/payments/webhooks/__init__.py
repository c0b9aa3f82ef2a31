"""
Webhook handling for payment gateway and e-signature events.

This module provides views and handlers for processing inbound webhooks.
Webhooks are authenticated, stored idempotently, and processed
asynchronously via Celery tasks.

Usage:
    # In urls.py
    from payments.webhooks.views import payment_gateway_webhook

    urlpatterns = [
        path("webhooks/payment-gateway/", payment_gateway_webhook, name="payment_gateway_webhook"),
    ]
"""
