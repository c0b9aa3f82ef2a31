"""
Ledger Store - conditional writes for payment and contract entities.

Public API:
    LedgerStore.transition - apply a django-fsm transition as a guarded UPDATE
    LedgerStore.guarded_update - guarded UPDATE by expected prior statuses
    LedgerStore.touch - status-unchanged write that bumps ``version``

Usage:
    from payments.ledger import LedgerStore

    applied = LedgerStore.transition(transfer, transfer.mark_done, effective_date=today)
"""

from payments.ledger.store import LedgerStore

__all__ = ["LedgerStore"]
