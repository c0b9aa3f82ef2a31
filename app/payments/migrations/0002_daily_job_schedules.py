"""
Add celery-beat schedules for the daily jobs and webhook maintenance.

Daily jobs go through payments.tasks.run_daily_job so that the beat
entry only carries a job name; the job-name to task mapping lives in
payments.scheduler. Webhook retries and stuck-event cleanup run on
short intervals.
"""

import json

from django.db import migrations

DAILY_JOBS = [
    ("expire_artifacts", "3", "Delete expired contract documents."),
    ("finish_contracts", "4", "Finish active contracts past their end date."),
    ("mark_overdue", "5", "Move past-due pending installments to OVERDUE."),
    ("pregenerate_charges", "6", "Issue charges for installments due soon."),
    ("payment_reminders", "8", "Remind tenants of upcoming due dates."),
    ("cleanup_old_webhooks", "2", "Delete processed webhook events older than 90 days."),
]

INTERVAL_TASKS = [
    (
        "Retry Failed Webhooks",
        "payments.tasks.retry_failed_webhooks",
        5,
        "Re-queue failed webhook events and pending events whose enqueue was lost.",
    ),
    (
        "Cleanup Stuck Webhooks",
        "payments.tasks.cleanup_stuck_webhooks",
        15,
        "Reset webhook events stuck in PROCESSING back to FAILED.",
    ),
]


def _daily_task_name(job_name):
    return f"Daily job: {job_name}"


def create_periodic_tasks(apps, schema_editor):
    """Create the periodic tasks for daily jobs and webhook maintenance."""
    CrontabSchedule = apps.get_model("django_celery_beat", "CrontabSchedule")
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for job_name, hour, description in DAILY_JOBS:
        schedule, _ = CrontabSchedule.objects.get_or_create(
            minute="0",
            hour=hour,
            day_of_week="*",
            day_of_month="*",
            month_of_year="*",
        )
        PeriodicTask.objects.get_or_create(
            name=_daily_task_name(job_name),
            defaults={
                "task": "payments.tasks.run_daily_job",
                "crontab": schedule,
                "args": json.dumps([job_name]),
                "enabled": True,
                "description": description,
            },
        )

    for name, task, minutes, description in INTERVAL_TASKS:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=minutes,
            period="minutes",
        )
        PeriodicTask.objects.get_or_create(
            name=name,
            defaults={
                "task": task,
                "interval": schedule,
                "enabled": True,
                "description": description,
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    names = [_daily_task_name(job_name) for job_name, _, _ in DAILY_JOBS]
    names += [name for name, _, _, _ in INTERVAL_TASKS]
    PeriodicTask.objects.filter(name__in=names).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
