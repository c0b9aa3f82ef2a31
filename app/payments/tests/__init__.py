"""
Tests for the payments app.

Modules:
- test_models.py: PaymentOrder, Transfer, PayeeSubAccount and WebhookEvent
- test_tasks.py: charge issuance, payout and daily sweep tasks
- test_scheduler.py: periodic task registration and the daily job trigger
- test_views.py: charge issuance and withdrawal endpoints

Service, ledger, adapter and webhook tests live beside their packages.

Usage:
    pytest payments/
"""
