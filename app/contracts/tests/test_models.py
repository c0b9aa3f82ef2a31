"""
Unit tests for contract models.

Test Classes:
    TestContractSchedule: end date and monthly amount derivation
    TestContractTransitions: declared django-fsm transitions
"""

from datetime import date
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError

from contracts.models import ContractState
from contracts.tests.factories import ContractFactory
from payments.exceptions import InvalidStateTransitionError
from payments.ledger import LedgerStore


class TestContractSchedule:
    def test_end_date_is_start_plus_duration(self, db):
        contract = ContractFactory(start_date=date(2025, 1, 31), duration_in_months=1)

        assert contract.end_date == date(2025, 2, 28)

    def test_end_date_follows_duration_change(self, db):
        contract = ContractFactory(start_date=date(2025, 1, 1), duration_in_months=12)

        contract.duration_in_months = 6
        contract.save(update_fields=["duration_in_months"])
        contract.refresh_from_db()

        assert contract.end_date == date(2025, 7, 1)

    def test_monthly_amount_sums_rent_and_fees(self, db):
        contract = ContractFactory(
            rent_amount=Decimal("1000.00"),
            condo_fee=Decimal("350.50"),
            iptu_fee=Decimal("49.50"),
        )

        assert contract.monthly_amount == Decimal("1400.00")

    def test_duration_must_be_positive(self, db):
        with pytest.raises(IntegrityError):
            ContractFactory(duration_in_months=0)

    def test_rent_must_be_positive(self, db):
        with pytest.raises(IntegrityError):
            ContractFactory(rent_amount=Decimal("0.00"))

    def test_zero_rent_fails_validation(self, db):
        contract = ContractFactory.build(rent_amount=Decimal("0.00"))

        with pytest.raises(DjangoValidationError) as exc_info:
            contract.full_clean()

        assert "rent_amount" in exc_info.value.message_dict

    def test_fees_may_be_zero(self, db):
        contract = ContractFactory(condo_fee=Decimal("0.00"), iptu_fee=Decimal("0.00"))

        assert contract.monthly_amount == contract.rent_amount

    def test_is_party(self, db):
        contract = ContractFactory()

        assert contract.is_party(contract.landlord)
        assert contract.is_party(contract.tenant)
        assert not contract.is_party(ContractFactory().landlord)


class TestContractTransitions:
    def test_cancel_allowed_from_every_non_terminal_state(self, db):
        for state in [
            ContractState.PENDING_DOCS,
            ContractState.UNDER_REVIEW,
            ContractState.AWAITING_SIGNATURES,
            ContractState.ACTIVE,
        ]:
            contract = ContractFactory(status=state)

            assert LedgerStore.transition(contract, contract.cancel)
            assert contract.status == ContractState.CANCELLED

    @pytest.mark.parametrize("state", [ContractState.CANCELLED, ContractState.FINISHED])
    def test_terminal_states_cannot_be_cancelled(self, db, state):
        contract = ContractFactory(status=state)

        with pytest.raises(InvalidStateTransitionError):
            LedgerStore.transition(contract, contract.cancel)

    def test_activate_requires_awaiting_signatures(self, db):
        contract = ContractFactory(status=ContractState.UNDER_REVIEW)

        with pytest.raises(InvalidStateTransitionError):
            LedgerStore.transition(contract, contract.activate)

    def test_force_activate_accepts_under_review(self, db):
        contract = ContractFactory(status=ContractState.UNDER_REVIEW)

        assert LedgerStore.transition(contract, contract.force_activate)
        assert contract.status == ContractState.ACTIVE

    def test_transition_bumps_version(self, db):
        contract = ContractFactory()
        version = contract.version

        LedgerStore.transition(contract, contract.submit_for_review)

        assert contract.version == version + 1
