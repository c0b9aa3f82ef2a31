"""
Payment admin configuration.

Registers payment domain models with the Django admin. Status changes
are made through the services and webhook handlers, never through the
admin, so status fields are read-only here.
"""

from django.contrib import admin

from payments.models import Charge, PayeeSubAccount, PaymentOrder, Transfer, WebhookEvent


class ChargeInline(admin.StackedInline):
    model = Charge
    extra = 0
    can_delete = False
    readonly_fields = [
        "external_charge_id",
        "billing_type",
        "value",
        "due_date",
        "platform_fee_percent",
        "invoice_url",
        "bank_slip_url",
        "our_number",
        "external_status",
        "cancel_requested_at",
    ]


class TransferInline(admin.StackedInline):
    model = Transfer
    extra = 0
    can_delete = False
    readonly_fields = [
        "external_transfer_id",
        "landlord",
        "status",
        "value",
        "effective_date",
        "fail_reason",
    ]


@admin.register(PaymentOrder)
class PaymentOrderAdmin(admin.ModelAdmin):
    """
    Admin configuration for PaymentOrder.

    Provides visibility into installments and their states. Orders
    flagged ``needs_review`` are the manual reconciliation queue.
    """

    list_display = [
        "id",
        "contract",
        "installment_number",
        "due_date",
        "amount_due",
        "amount_paid",
        "status",
        "needs_review",
    ]
    list_filter = ["status", "needs_review", "due_date"]
    search_fields = ["id", "contract__id", "contract__property_label", "charge__external_charge_id"]
    raw_id_fields = ["contract"]
    readonly_fields = [
        "id",
        "contract",
        "installment_number",
        "due_date",
        "amount_due",
        "amount_paid",
        "net_value",
        "paid_at",
        "status",
        "cancelled_at",
        "version",
        "created_at",
        "updated_at",
    ]
    inlines = [ChargeInline, TransferInline]
    ordering = ["contract", "installment_number"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "contract", "installment_number", "due_date", "status"),
            },
        ),
        (
            "Amounts",
            {
                "fields": ("amount_due", "amount_paid", "net_value", "paid_at", "cancelled_at"),
            },
        ),
        (
            "Manual Review",
            {
                "fields": ("needs_review", "review_reason"),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("version", "created_at", "updated_at"),
                "classes": ("collapse",),
            },
        ),
    )


@admin.register(Transfer)
class TransferAdmin(admin.ModelAdmin):
    """Admin configuration for Transfer (installment payouts and withdrawals)."""

    list_display = [
        "id",
        "kind",
        "landlord",
        "payment_order",
        "external_transfer_id",
        "value",
        "status",
        "created_at",
    ]
    list_filter = ["kind", "status", "created_at"]
    search_fields = ["id", "external_transfer_id", "payment_order__id", "landlord__email"]
    raw_id_fields = ["payment_order", "landlord"]
    readonly_fields = [
        "id",
        "kind",
        "landlord",
        "payment_order",
        "external_transfer_id",
        "status",
        "value",
        "effective_date",
        "fail_reason",
        "version",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]


@admin.register(PayeeSubAccount)
class PayeeSubAccountAdmin(admin.ModelAdmin):
    """
    Admin configuration for PayeeSubAccount.

    Credentials are entered here when a landlord's gateway account is
    provisioned; approval statuses come from webhooks.
    """

    list_display = [
        "id",
        "landlord",
        "external_account_id",
        "status_general",
        "platform_fee_percent",
        "created_at",
    ]
    list_filter = ["status_general", "status_documentation", "status_bank_account_info"]
    search_fields = ["id", "external_account_id", "landlord__email"]
    raw_id_fields = ["landlord"]
    readonly_fields = [
        "id",
        "status_general",
        "status_documentation",
        "status_commercial_info",
        "status_bank_account_info",
        "version",
        "created_at",
        "updated_at",
    ]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "landlord", "external_account_id", "platform_fee_percent"),
            },
        ),
        (
            "Credentials",
            {
                "fields": ("api_key", "external_wallet_id", "webhook_token"),
                "classes": ("collapse",),
            },
        ),
        (
            "Payout Destination",
            {
                "fields": ("pix_key", "pix_key_type"),
            },
        ),
        (
            "Approval Status",
            {
                "fields": (
                    "status_general",
                    "status_documentation",
                    "status_commercial_info",
                    "status_bank_account_info",
                ),
            },
        ),
    )


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing status.
    Webhook events are immutable once received.
    """

    list_display = [
        "id",
        "source",
        "delivery_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["source", "status", "event_type", "created_at"]
    search_fields = ["id", "delivery_id", "event_type"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "source",
        "delivery_id",
        "event_type",
        "payload",
        "processed_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "source", "delivery_id", "event_type", "status"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "retry_count"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )
