"""
Celery configuration for the Django application.

Celery runs everything that must not block a request or a webhook
response:
- Webhook processing (payments.tasks.process_webhook_event)
- Charge issuance and payouts with gateway retries
- Daily jobs fired by celery-beat through payments.tasks.run_daily_job
  (overdue marking, charge pregeneration, reminders, contract upkeep)

Redis is both the message broker and result backend. Beat schedules are
stored in the database (django-celery-beat) and seeded by the
payments migrations.

Usage:
    from payments.tasks import issue_charge_for_order

    issue_charge_for_order.delay(str(order.id))

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Create Celery application instance
app = Celery("config")

# Load configuration from Django settings
# All Celery settings should be prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks from all registered Django apps
app.autodiscover_tasks()
