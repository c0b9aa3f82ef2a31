"""
Schedule the daily payout sweep.

The sweep re-queues payouts for PAID installments whose payout job was
never enqueued (for example the broker was unreachable when the payment
webhook committed).
"""

import json

from django.db import migrations

JOB_NAME = "dispatch_payouts"
TASK_NAME = f"Daily job: {JOB_NAME}"


def create_periodic_task(apps, schema_editor):
    CrontabSchedule = apps.get_model("django_celery_beat", "CrontabSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = CrontabSchedule.objects.get_or_create(
        minute="0",
        hour="7",
        day_of_week="*",
        day_of_month="*",
        month_of_year="*",
    )
    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "payments.tasks.run_daily_job",
            "crontab": schedule,
            "args": json.dumps([JOB_NAME]),
            "enabled": True,
            "description": "Queue payouts for paid installments that have no transfer.",
        },
    )


def remove_periodic_task(apps, schema_editor):
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0004_backfill_transfer_landlords"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
