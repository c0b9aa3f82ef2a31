"""
Webhook endpoint views for the payment gateway and the e-signature provider.

Both views:
1. Authenticate the sender (shared token or HMAC signature)
2. Parse the JSON body
3. Create/retrieve the WebhookEvent record (idempotent on delivery id)
4. Queue the event for async processing after commit
5. Return 200 immediately

Usage:
    # In urls.py
    from payments.webhooks.views import payment_gateway_webhook

    urlpatterns = [
        path("webhooks/payment-gateway/", payment_gateway_webhook, name="payment_gateway_webhook"),
    ]
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging

from django.conf import settings
from django.db import transaction
from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.helpers import hash_bytes, secrets_match

from payments.models import PayeeSubAccount, WebhookEvent
from payments.state_machines import WebhookEventStatus, WebhookSource

logger = logging.getLogger(__name__)

GATEWAY_TOKEN_HEADER = "asaas-access-token"
ESIGNATURE_SIGNATURE_HEADER = "Content-Hmac"


# =============================================================================
# Authentication
# =============================================================================


def gateway_token_is_valid(token: str | None) -> bool:
    """
    Accept the platform webhook token or any sub-account's webhook token.

    Comparisons are constant-time.
    """
    if not token:
        return False
    if secrets_match(settings.PAYMENT_GATEWAY_WEBHOOK_TOKEN, token):
        return True
    candidate = (
        PayeeSubAccount.objects.filter(webhook_token=token)
        .values_list("webhook_token", flat=True)
        .first()
    )
    return secrets_match(candidate or "", token)


def esignature_signature_is_valid(body: bytes, header: str | None) -> bool:
    """Check ``Content-Hmac: sha256=<hex>`` against HMAC-SHA256 of the raw body."""
    secret = settings.ESIGNATURE_WEBHOOK_SECRET
    if not secret:
        logger.error("ESIGNATURE_WEBHOOK_SECRET is not configured, rejecting webhook")
        return False
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return secrets_match(f"sha256={digest}", header)


# =============================================================================
# Queueing
# =============================================================================


def _parse_json(body: bytes) -> dict | None:
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


def _accept(source: str, delivery_id: str, event_type: str, payload: dict) -> HttpResponse:
    """Store the delivery and queue it unless it was already processed."""
    context = {"source": source, "delivery_id": delivery_id, "event_type": event_type}
    logger.info(f"Received webhook: {event_type}", extra=context)

    webhook_event, created = WebhookEvent.objects.get_or_create(
        delivery_id=delivery_id,
        defaults={
            "source": source,
            "event_type": event_type,
            "payload": payload,
            "status": WebhookEventStatus.PENDING,
        },
    )

    if not created:
        if webhook_event.status == WebhookEventStatus.PROCESSED:
            logger.info("Webhook already processed, returning success", extra=context)
            return HttpResponse("Already processed", status=200)

        logger.info(
            f"Webhook already exists with status: {webhook_event.status}",
            extra=context,
        )

    from payments.tasks import process_webhook_event

    event_id = str(webhook_event.id)
    # A broker failure is logged; retry_failed_webhooks re-queues stale PENDING events
    transaction.on_commit(lambda: process_webhook_event.delay(event_id), robust=True)
    logger.info("Webhook queued for processing", extra={**context, "webhook_event_id": event_id})
    return HttpResponse("Accepted", status=200)


# =============================================================================
# Views
# =============================================================================


@csrf_exempt
@require_POST
def payment_gateway_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and queue payment gateway events.

    The gateway sends ``asaas-access-token`` with either the platform
    token or the token configured for the landlord's sub-account.

    Returns:
        HttpResponse with status:
        - 200: Event accepted (new or duplicate)
        - 400: Malformed payload
        - 401: Missing or unknown token
    """
    if not gateway_token_is_valid(request.headers.get(GATEWAY_TOKEN_HEADER)):
        logger.warning("Payment gateway webhook rejected: invalid access token")
        return HttpResponse("Unauthorized", status=401)

    payload = _parse_json(request.body)
    if payload is None or not payload.get("event"):
        logger.warning("Payment gateway webhook with malformed payload")
        return HttpResponse("Invalid payload", status=400)

    delivery_id = payload.get("id") or hash_bytes(request.body)
    return _accept(WebhookSource.PAYMENT_GATEWAY, str(delivery_id), payload["event"], payload)


@csrf_exempt
@require_POST
def esignature_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and queue e-signature events.

    The provider sends no delivery id, so the SHA-256 of the raw body
    identifies a delivery; resends of the same body are deduplicated.

    Returns:
        HttpResponse with status:
        - 200: Event accepted (new or duplicate)
        - 400: Malformed payload
        - 401: Missing or invalid signature
    """
    if not esignature_signature_is_valid(
        request.body, request.headers.get(ESIGNATURE_SIGNATURE_HEADER)
    ):
        logger.warning("E-signature webhook rejected: invalid signature")
        return HttpResponse("Unauthorized", status=401)

    payload = _parse_json(request.body)
    event = payload.get("event") if payload else None
    name = event.get("name") if isinstance(event, dict) else None
    if not name:
        logger.warning("E-signature webhook with malformed payload")
        return HttpResponse("Invalid payload", status=400)

    return _accept(
        WebhookSource.ESIGNATURE,
        hash_bytes(request.body),
        f"esignature.{name}",
        payload,
    )
