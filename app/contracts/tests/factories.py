"""
Factory Boy factories for contract models.

Usage:
    from contracts.tests.factories import ContractFactory

    contract = ContractFactory()  # PENDING_DOCS, 12 months, 1500.00/month
    contract = ContractFactory(status=ContractState.AWAITING_SIGNATURES)
"""

from datetime import date, timedelta
from decimal import Decimal

import factory
from django.utils import timezone

from authentication.tests.factories import LandlordFactory, TenantFactory
from contracts.models import ArtifactKind, Contract, ContractArtifact, ContractState


class ContractFactory(factory.django.DjangoModelFactory):
    """
    Factory for Contract model.

    Defaults to rent 1000 + condo 300 + iptu 200 = 1500.00 per month,
    starting on the first of a month so due dates never clamp.
    """

    class Meta:
        model = Contract

    landlord = factory.SubFactory(LandlordFactory)
    tenant = factory.SubFactory(TenantFactory)
    property_id = factory.Sequence(lambda n: f"prop_{n:05d}")
    property_label = factory.Sequence(lambda n: f"Apartment {n}")
    start_date = date(2025, 1, 1)
    duration_in_months = 12
    rent_amount = Decimal("1000.00")
    condo_fee = Decimal("300.00")
    iptu_fee = Decimal("200.00")
    status = ContractState.PENDING_DOCS
    envelope_id = None

    class Params:
        awaiting_signatures = factory.Trait(
            status=ContractState.AWAITING_SIGNATURES,
            envelope_id=factory.Sequence(lambda n: f"doc-key-{n}"),
        )
        active = factory.Trait(
            status=ContractState.ACTIVE,
            activated_at=factory.LazyFunction(timezone.now),
        )


class ContractArtifactFactory(factory.django.DjangoModelFactory):
    """Factory for ContractArtifact; expires a week from now by default."""

    class Meta:
        model = ContractArtifact

    contract = factory.SubFactory(ContractFactory)
    kind = ArtifactKind.CONTRACT_PDF
    storage_key = factory.Sequence(lambda n: f"contracts/test/contract-{n}.pdf")
    expires_at = factory.LazyFunction(lambda: timezone.now() + timedelta(days=7))
