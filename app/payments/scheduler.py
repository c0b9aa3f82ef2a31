"""
Named daily jobs run by celery-beat.

Beat rows (created by a data migration) call ``payments.tasks.run_daily_job``
with a job name; SchedulerTrigger resolves the name and enqueues the task.
Jobs assume a single beat instance.

Usage:
    from payments.scheduler import SchedulerTrigger

    SchedulerTrigger.run_daily("mark_overdue")
"""

from __future__ import annotations

import logging

from django.utils.module_loading import import_string

from core.exceptions import ValidationError

logger = logging.getLogger(__name__)


# Job name -> dotted path of the Celery task it enqueues
DAILY_JOBS: dict[str, str] = {
    "mark_overdue": "payments.tasks.mark_overdue_payment_orders",
    "pregenerate_charges": "payments.tasks.pregenerate_upcoming_charges",
    "payment_reminders": "payments.tasks.send_payment_reminders",
    "dispatch_payouts": "payments.tasks.dispatch_pending_payouts",
    "expire_artifacts": "contracts.tasks.expire_contract_artifacts",
    "finish_contracts": "contracts.tasks.finish_expired_contracts",
    "cleanup_old_webhooks": "payments.tasks.cleanup_old_webhooks",
}


class SchedulerTrigger:
    """Enqueues named daily jobs."""

    @classmethod
    def run_daily(cls, job_name: str) -> str:
        """
        Enqueue the task registered under ``job_name``.

        Returns:
            The Celery task id

        Raises:
            ValidationError: Unknown job name
        """
        task_path = DAILY_JOBS.get(job_name)
        if task_path is None:
            raise ValidationError(
                f"Unknown daily job: {job_name}",
                error_code="UNKNOWN_JOB",
                details={"job_name": job_name, "known_jobs": sorted(DAILY_JOBS)},
            )

        async_result = import_string(task_path).delay()
        logger.info(
            f"Daily job enqueued: {job_name}",
            extra={"job_name": job_name, "task_id": async_result.id},
        )
        return async_result.id
