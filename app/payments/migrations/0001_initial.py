import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


def _timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def _version():
    return (
        "version",
        models.PositiveIntegerField(
            default=1,
            help_text="Version for optimistic locking - incremented on each write",
        ),
    )


def _uuid_pk():
    return (
        "id",
        models.UUIDField(
            default=uuid.uuid4,
            editable=False,
            help_text="Unique identifier for this record",
            primary_key=True,
            serialize=False,
        ),
    )


APPROVAL_CHOICES = [
    ("PENDING", "Pending"),
    ("AWAITING_APPROVAL", "Awaiting Approval"),
    ("APPROVED", "Approved"),
    ("REJECTED", "Rejected"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("contracts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentOrder",
            fields=[
                *_timestamps(),
                _version(),
                _uuid_pk(),
                (
                    "installment_number",
                    models.PositiveSmallIntegerField(
                        help_text="1-based installment position in the contract schedule"
                    ),
                ),
                (
                    "due_date",
                    models.DateField(
                        db_index=True,
                        help_text="Date the tenant must pay this installment",
                    ),
                ),
                (
                    "amount_due",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="rent + condo fee + iptu, frozen when the order is created",
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.01"))],
                    ),
                ),
                (
                    "amount_paid",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Gross amount paid by the tenant",
                        max_digits=12,
                        null=True,
                    ),
                ),
                (
                    "net_value",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Amount credited after the gateway's processing fee",
                        max_digits=12,
                        null=True,
                    ),
                ),
                (
                    "paid_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the gateway confirmed the payment",
                        null=True,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("overdue", "Overdue"),
                            ("paid", "Paid"),
                            ("payout_pending", "Payout Pending"),
                            ("received", "Received"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the payment order (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "cancelled_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the order was cancelled with its contract",
                        null=True,
                    ),
                ),
                (
                    "needs_review",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Flagged for manual reconciliation by an operator",
                    ),
                ),
                (
                    "review_reason",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Why the order was flagged for review",
                    ),
                ),
                (
                    "contract",
                    models.ForeignKey(
                        help_text="Contract this installment belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_orders",
                        to="contracts.contract",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Order",
                "verbose_name_plural": "Payment Orders",
                "ordering": ["contract", "due_date"],
                "indexes": [
                    models.Index(fields=["status", "due_date"], name="payorder_status_due_idx")
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("contract", "due_date"),
                        name="payment_order_one_per_contract_month",
                    ),
                    models.UniqueConstraint(
                        fields=("contract", "installment_number"),
                        name="payment_order_unique_installment",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("amount_due__gt", 0)),
                        name="payment_order_amount_due_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Charge",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                (
                    "external_charge_id",
                    models.CharField(
                        help_text="Gateway charge id (pay_xxx)",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "billing_type",
                    models.CharField(
                        choices=[("BOLETO", "Bank Slip"), ("PIX", "PIX")],
                        help_text="Bank slip or PIX",
                        max_length=10,
                    ),
                ),
                (
                    "value",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Amount charged to the tenant",
                        max_digits=12,
                    ),
                ),
                ("due_date", models.DateField(help_text="Due date registered at the gateway")),
                (
                    "platform_fee_percent",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Split percentage retained by the platform",
                        max_digits=5,
                    ),
                ),
                ("invoice_url", models.URLField(blank=True, default="", max_length=500)),
                ("bank_slip_url", models.URLField(blank=True, default="", max_length=500)),
                (
                    "our_number",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Bank slip 'nosso numero'",
                        max_length=64,
                    ),
                ),
                (
                    "external_status",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Last status reported by the gateway",
                        max_length=40,
                    ),
                ),
                (
                    "cancel_requested_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When cancellation was requested at the gateway",
                        null=True,
                    ),
                ),
                (
                    "payment_order",
                    models.OneToOneField(
                        help_text="Payment order this charge bills",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="charge",
                        to="payments.paymentorder",
                    ),
                ),
            ],
            options={
                "verbose_name": "Charge",
                "verbose_name_plural": "Charges",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Transfer",
            fields=[
                *_timestamps(),
                _version(),
                _uuid_pk(),
                (
                    "external_transfer_id",
                    models.CharField(
                        help_text="Gateway transfer id",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("done", "Done"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the transfer (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "value",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Amount transferred to the landlord",
                        max_digits=12,
                    ),
                ),
                (
                    "effective_date",
                    models.DateField(
                        blank=True,
                        help_text="Date the gateway settled the transfer",
                        null=True,
                    ),
                ),
                (
                    "fail_reason",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Reason reported by the gateway for a failed transfer",
                    ),
                ),
                (
                    "payment_order",
                    models.OneToOneField(
                        help_text="Installment this transfer pays out",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transfer",
                        to="payments.paymentorder",
                    ),
                ),
            ],
            options={
                "verbose_name": "Transfer",
                "verbose_name_plural": "Transfers",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("value__gt", 0)),
                        name="transfer_value_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PayeeSubAccount",
            fields=[
                *_timestamps(),
                _version(),
                _uuid_pk(),
                (
                    "external_account_id",
                    models.CharField(
                        blank=True,
                        help_text="Gateway account id",
                        max_length=64,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "api_key",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Sub-account API key",
                        max_length=255,
                    ),
                ),
                (
                    "external_wallet_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Gateway wallet id",
                        max_length=64,
                    ),
                ),
                (
                    "webhook_token",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Token the gateway sends with this account's webhooks",
                        max_length=255,
                    ),
                ),
                (
                    "pix_key",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="PIX key receiving payouts",
                        max_length=140,
                    ),
                ),
                (
                    "pix_key_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("CPF", "CPF"),
                            ("CNPJ", "CNPJ"),
                            ("EMAIL", "E-mail"),
                            ("PHONE", "Phone"),
                            ("EVP", "Random Key"),
                        ],
                        default="",
                        help_text="Type of the PIX key",
                        max_length=10,
                    ),
                ),
                (
                    "platform_fee_percent",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("5.00"),
                        help_text="Platform commission percentage applied to this landlord",
                        max_digits=5,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0")),
                            django.core.validators.MaxValueValidator(Decimal("100")),
                        ],
                    ),
                ),
                (
                    "status_general",
                    models.CharField(choices=APPROVAL_CHOICES, default="PENDING", max_length=20),
                ),
                (
                    "status_documentation",
                    models.CharField(choices=APPROVAL_CHOICES, default="PENDING", max_length=20),
                ),
                (
                    "status_commercial_info",
                    models.CharField(choices=APPROVAL_CHOICES, default="PENDING", max_length=20),
                ),
                (
                    "status_bank_account_info",
                    models.CharField(choices=APPROVAL_CHOICES, default="PENDING", max_length=20),
                ),
                (
                    "landlord",
                    models.OneToOneField(
                        help_text="Landlord owning this gateway account",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payee_sub_account",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payee Sub-account",
                "verbose_name_plural": "Payee Sub-accounts",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                (
                    "source",
                    models.CharField(
                        choices=[
                            ("payment_gateway", "Payment Gateway"),
                            ("esignature", "E-signature Provider"),
                        ],
                        db_index=True,
                        help_text="External system that delivered the event",
                        max_length=20,
                    ),
                ),
                (
                    "delivery_id",
                    models.CharField(
                        help_text="Sender event id or payload hash - unique for redelivery detection",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Event type used for handler dispatch (e.g. 'PAYMENT_RECEIVED')",
                        max_length=100,
                    ),
                ),
                ("payload", models.JSONField(help_text="Full webhook payload (JSON)")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When event was successfully processed",
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        help_text="Error message if processing failed",
                        null=True,
                    ),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Number of processing attempts",
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
                    models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
                ],
            },
        ),
    ]
