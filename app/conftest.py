"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import django
import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

    from django.conf import settings

    from config.celery import app as celery_app

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # Use fast password hasher for tests (PBKDF2 is too slow with 870K iterations)
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    # Test client speaks plain HTTP
    settings.SECURE_SSL_REDIRECT = False

    # Local-memory cache instead of Redis
    settings.CACHES = {
        "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}
    }

    # Never talk to a broker; tests patch .delay where they assert on enqueueing
    # (the app reads CELERY_-namespaced settings, which take precedence)
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True
    celery_app.conf.task_always_eager = True
    celery_app.conf.task_eager_propagates = True

    settings.PLATFORM_WALLET_ID = "wallet_platform"
    settings.PAYMENT_GATEWAY_BASE_URL = "https://gateway.test/api/v3"
    settings.PAYMENT_GATEWAY_WEBHOOK_TOKEN = "platform-webhook-token"
    settings.ESIGNATURE_WEBHOOK_SECRET = "esignature-secret"
    settings.FRONTEND_URL = "https://app.test"


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_views.py, test_services.py, test_tasks.py, etc. → integration
    - test_models.py, test_serializers.py, test_adapters.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_webhooks.py",
        "test_handlers.py",
        "test_charge_issuer.py",
        "test_payout_orchestrator.py",
        "test_withdrawal_service.py",
        "test_store.py",
        "test_scheduler.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_serializers.py",
        "test_managers.py",
        "test_adapters.py",
        "test_asaas_adapter.py",
        "test_helpers.py",
        "test_exceptions.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)
