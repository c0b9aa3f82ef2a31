"""
Require a positive rent.

A contract with zero rent and no fees would activate into installments
that cannot be charged, so rent must now be greater than zero.
"""

from decimal import Decimal

import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("contracts", "0001_initial"),
    ]

    operations = [
        migrations.RemoveConstraint(
            model_name="contract",
            name="contract_amounts_non_negative",
        ),
        migrations.AlterField(
            model_name="contract",
            name="rent_amount",
            field=models.DecimalField(
                decimal_places=2,
                help_text="Monthly rent; must be positive",
                max_digits=12,
                validators=[django.core.validators.MinValueValidator(Decimal("0.01"))],
            ),
        ),
        migrations.AddConstraint(
            model_name="contract",
            constraint=models.CheckConstraint(
                condition=models.Q(("rent_amount__gt", 0)),
                name="contract_rent_positive",
            ),
        ),
        migrations.AddConstraint(
            model_name="contract",
            constraint=models.CheckConstraint(
                condition=models.Q(("condo_fee__gte", 0), ("iptu_fee__gte", 0)),
                name="contract_fees_non_negative",
            ),
        ),
    ]
