"""
Set the receiving landlord on existing installment payouts.

Every Transfer created before withdrawals were recorded pays out an
installment, so its landlord is the contract's landlord.
"""

from django.db import migrations


def backfill_landlords(apps, schema_editor):
    Transfer = apps.get_model("payments", "Transfer")
    transfers = Transfer.objects.select_related("payment_order__contract").filter(
        landlord__isnull=True,
        payment_order__isnull=False,
    )
    for transfer in transfers:
        transfer.landlord_id = transfer.payment_order.contract.landlord_id
        transfer.save(update_fields=["landlord"])


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0003_transfer_withdrawals"),
    ]

    operations = [
        migrations.RunPython(backfill_landlords, migrations.RunPython.noop),
    ]
