"""
Celery tasks for contract housekeeping.

Tasks:
    expire_contract_artifacts: Delete generated documents past their expiry
    finish_expired_contracts: Finish ACTIVE contracts whose term ended

Both are daily jobs enqueued through payments.scheduler.SchedulerTrigger.
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.db.models import Exists, OuterRef
from django.utils import timezone

from contracts.models import Contract, ContractArtifact, ContractState
from contracts.services import ContractLifecycleService
from payments.exceptions import InvalidStateTransitionError
from payments.models import PaymentOrder
from payments.state_machines import PaymentOrderState

logger = logging.getLogger(__name__)


@shared_task
def expire_contract_artifacts() -> dict:
    """Delete contract artifacts whose ``expires_at`` has passed."""
    deleted_count, _ = ContractArtifact.objects.filter(expires_at__lt=timezone.now()).delete()
    if deleted_count:
        logger.info(
            f"Deleted {deleted_count} expired contract artifacts",
            extra={"deleted_count": deleted_count},
        )
    return {"deleted_count": deleted_count}


@shared_task
def finish_expired_contracts() -> dict:
    """
    Finish ACTIVE contracts past their end date with no open installments.

    A contract still holding PENDING or OVERDUE installments stays ACTIVE
    so it keeps being billed and reminded.
    """
    open_orders = PaymentOrder.objects.filter(
        contract=OuterRef("pk"),
        status__in=PaymentOrderState.open_states(),
    )
    contracts = Contract.objects.filter(
        status=ContractState.ACTIVE,
        end_date__lt=timezone.localdate(),
    ).exclude(Exists(open_orders))

    finished = 0
    for contract in contracts:
        try:
            ContractLifecycleService.finish(contract)
        except InvalidStateTransitionError as e:
            logger.info(
                "Contract not finished",
                extra={"contract_id": str(contract.pk), "reason": e.message},
            )
            continue
        finished += 1

    logger.info(f"Finished {finished} contracts", extra={"finished_count": finished})
    return {"finished_count": finished}
