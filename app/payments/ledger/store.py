"""
Conditional (state-guarded) writes for ledger entities.

Every mutation of a PaymentOrder, Transfer, Contract or PayeeSubAccount
status is a single UPDATE scoped to one row and guarded by the expected
prior status:

    UPDATE payments_paymentorder
       SET status = 'paid', version = version + 1, updated_at = now(), ...
     WHERE id = ? AND status IN ('pending', 'overdue')

Exactly one of any number of concurrent writers observes one affected
row; every other writer observes zero and treats the transition as
already applied. No read-modify-write, no lock held across calls.

Usage:
    from payments.ledger import LedgerStore

    order = PaymentOrder.objects.get(id=order_id)

    if LedgerStore.transition(order, order.mark_paid, amount_paid=value):
        # This writer won; enqueue side effects after commit
        transaction.on_commit(lambda: initiate_payout_for_order.delay(str(order.id)))
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db.models import F
from django.utils import timezone

from payments.exceptions import InvalidStateTransitionError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from typing import Any

    from django.db import models

logger = logging.getLogger(__name__)


def _transition_meta(transition_method: Callable):
    """Return the django-fsm metadata attached by ``@transition``."""
    meta = getattr(transition_method, "_django_fsm", None)
    if meta is None:
        raise TypeError(f"{transition_method!r} is not a django-fsm transition")
    return meta


def _field_name(meta) -> str:
    return meta.field if isinstance(meta.field, str) else meta.field.name


class LedgerStore:
    """
    Conditional writes for versioned ledger entities.

    All methods are class-level - no instance state is maintained.

    Methods return True when this caller's write was applied and False
    when the row was no longer in an expected state (another writer got
    there first). Losing a race is an expected outcome, not an error.
    """

    @classmethod
    def transition(
        cls,
        instance: models.Model,
        transition_method: Callable,
        **fields: Any,
    ) -> bool:
        """
        Apply a declared django-fsm transition as a guarded UPDATE.

        The legal source/target pair is read from the ``@transition``
        declaration; the transition method itself is never called, so the
        in-memory instance is only changed when the write is applied.

        Args:
            instance: Model instance whose current status is the guard
            transition_method: Bound ``@transition`` method (e.g. order.mark_paid)
            **fields: Additional columns written in the same UPDATE

        Returns:
            True if exactly one row was written (instance refreshed),
            False if the row had already left ``instance``'s status

        Raises:
            InvalidStateTransitionError: Transition not declared from the
                instance's current status
        """
        meta = _transition_meta(transition_method)
        name = transition_method.__name__
        field_name = _field_name(meta)
        current = getattr(instance, field_name)

        if not meta.has_transition(current):
            raise InvalidStateTransitionError(
                f"Cannot {name} {instance.__class__.__name__} from '{current}' state",
                details={
                    "pk": str(instance.pk),
                    "current_state": str(current),
                    "transition": name,
                },
            )

        target = meta.get_transition(current).target
        applied = cls._conditional_update(
            instance.__class__,
            instance.pk,
            field_name,
            [current],
            {field_name: target, **fields},
        )

        if applied:
            instance.refresh_from_db()
        else:
            logger.info(
                "Guarded transition not applied, row already moved",
                extra={
                    "model": instance.__class__.__name__,
                    "pk": str(instance.pk),
                    "expected_state": str(current),
                    "transition": name,
                },
            )
        return applied

    @classmethod
    def guarded_update(
        cls,
        model: type[models.Model],
        pk: Any,
        expected_statuses: Iterable[str],
        status_field: str = "status",
        **fields: Any,
    ) -> bool:
        """
        Write ``fields`` only while the row is in one of ``expected_statuses``.

        For callers that know the acceptable prior statuses but do not
        hold a fresh instance (scheduler sweeps, cancellation cascades).

        Example:
            LedgerStore.guarded_update(
                PaymentOrder,
                order_id,
                [PaymentOrderState.PENDING],
                status=PaymentOrderState.OVERDUE,
            )
        """
        return cls._conditional_update(model, pk, status_field, list(expected_statuses), fields)

    @classmethod
    def touch(cls, instance: models.Model, **fields: Any) -> None:
        """
        Status-unchanged write that still bumps ``version``.

        Used to mark an entity as modified by a related write (e.g. a
        PaymentOrder when its Charge is created).
        """
        instance.__class__._default_manager.filter(pk=instance.pk).update(
            version=F("version") + 1,
            updated_at=timezone.now(),
            **fields,
        )
        instance.refresh_from_db()

    # =========================================================================
    # Internal
    # =========================================================================

    @staticmethod
    def _conditional_update(
        model: type[models.Model],
        pk: Any,
        status_field: str,
        expected_statuses: list[str],
        fields: dict[str, Any],
    ) -> bool:
        rows = model._default_manager.filter(
            pk=pk,
            **{f"{status_field}__in": expected_statuses},
        ).update(
            version=F("version") + 1,
            updated_at=timezone.now(),
            **fields,
        )
        return rows == 1
