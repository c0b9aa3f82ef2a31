"""
Record manual withdrawals as Transfers.

Transfers gain a kind and the receiving landlord; the installment link
becomes optional because withdrawals are not tied to a PaymentOrder.
"""

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0002_daily_job_schedules"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.AddField(
            model_name="transfer",
            name="kind",
            field=models.CharField(
                choices=[
                    ("installment_payout", "Installment payout"),
                    ("withdrawal", "Manual withdrawal"),
                ],
                db_index=True,
                default="installment_payout",
                help_text="Installment payout or manual withdrawal",
                max_length=20,
            ),
        ),
        migrations.AddField(
            model_name="transfer",
            name="landlord",
            field=models.ForeignKey(
                blank=True,
                help_text="Landlord receiving the funds",
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="transfers",
                to=settings.AUTH_USER_MODEL,
            ),
        ),
        migrations.AlterField(
            model_name="transfer",
            name="payment_order",
            field=models.OneToOneField(
                blank=True,
                help_text="Installment this transfer pays out (empty for withdrawals)",
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="transfer",
                to="payments.paymentorder",
            ),
        ),
        migrations.AddConstraint(
            model_name="transfer",
            constraint=models.CheckConstraint(
                condition=models.Q(
                    models.Q(("kind", "installment_payout"), ("payment_order__isnull", False)),
                    models.Q(("kind", "withdrawal"), ("payment_order__isnull", True)),
                    _connector="OR",
                ),
                name="transfer_kind_matches_order",
            ),
        ),
    ]
