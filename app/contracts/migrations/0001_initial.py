import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Contract",
            fields=[
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
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each write",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "property_id",
                    models.CharField(
                        db_index=True,
                        help_text="Listing id of the rented property",
                        max_length=64,
                    ),
                ),
                (
                    "property_label",
                    models.CharField(help_text="Property title shown in notifications", max_length=255),
                ),
                ("start_date", models.DateField(help_text="First day of the lease")),
                (
                    "duration_in_months",
                    models.PositiveSmallIntegerField(
                        help_text="Lease length in months",
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                (
                    "end_date",
                    models.DateField(
                        editable=False,
                        help_text="Last day of the lease, computed from start date and duration",
                    ),
                ),
                (
                    "rent_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Monthly rent",
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                    ),
                ),
                (
                    "condo_fee",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Monthly condominium fee",
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                    ),
                ),
                (
                    "iptu_fee",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Monthly share of the IPTU property tax",
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending_docs", "Pending Documents"),
                            ("under_review", "Under Review"),
                            ("awaiting_signatures", "Awaiting Signatures"),
                            ("active", "Active"),
                            ("cancelled", "Cancelled"),
                            ("finished", "Finished"),
                        ],
                        db_index=True,
                        default="pending_docs",
                        help_text="Current state of the contract (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "envelope_id",
                    models.CharField(
                        blank=True,
                        help_text="E-signature document key",
                        max_length=128,
                        null=True,
                        unique=True,
                    ),
                ),
                ("activated_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("finished_at", models.DateTimeField(blank=True, null=True)),
                (
                    "landlord",
                    models.ForeignKey(
                        help_text="Property owner receiving the rent",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="landlord_contracts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        help_text="Tenant paying the rent",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="tenant_contracts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Contract",
                "verbose_name_plural": "Contracts",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "end_date"], name="contract_status_end_idx")
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("duration_in_months__gte", 1)),
                        name="contract_duration_at_least_one_month",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("rent_amount__gte", 0),
                            ("condo_fee__gte", 0),
                            ("iptu_fee__gte", 0),
                        ),
                        name="contract_amounts_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ContractArtifact",
            fields=[
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
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("contract_pdf", "Contract PDF"),
                            ("signed_contract_pdf", "Signed Contract PDF"),
                        ],
                        default="contract_pdf",
                        max_length=30,
                    ),
                ),
                (
                    "storage_key",
                    models.CharField(
                        help_text="Object key of the document in external storage",
                        max_length=500,
                    ),
                ),
                (
                    "expires_at",
                    models.DateTimeField(
                        db_index=True,
                        help_text="When the artifact becomes stale and is deleted",
                    ),
                ),
                (
                    "contract",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="artifacts",
                        to="contracts.contract",
                    ),
                ),
            ],
            options={
                "verbose_name": "Contract Artifact",
                "verbose_name_plural": "Contract Artifacts",
                "ordering": ["-created_at"],
            },
        ),
    ]
