"""
Protocol definitions for collaborators of the domain services.

This module defines Protocol classes that specify the interfaces the
contract and payment services depend on, rather than their concrete
implementations.

Protocols define contracts that services must fulfill, enabling:
- Duck typing with static type checking
- Dependency inversion (depend on abstractions, not concretions)
- Easy mocking in tests

Available Protocols:
    PaymentGateway: Charge, payout and balance operations
    NotificationSink: Persisted, deduplicated user notifications
    DocumentCollaborator: Contract document generation and e-signature envelopes

Usage:
    from core.protocols import PaymentGateway

    class ChargeIssuer(BaseService):
        def __init__(self, gateway: PaymentGateway, config: PaymentsConfig):
            self.gateway = gateway

    # AsaasAdapter is a valid PaymentGateway even without explicit
    # inheritance (duck typing); tests pass a MagicMock instead.
    issuer = ChargeIssuer(gateway=AsaasAdapter, config=config)

Note:
    - Protocols are primarily for type checking
    - @runtime_checkable allows isinstance() checks
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from typing import Any


@runtime_checkable
class PaymentGateway(Protocol):
    """
    Protocol for the external payment gateway.

    Implemented by payments.adapters.AsaasAdapter. Every operation takes
    the API key of the account it runs on.
    """

    def create_charge(self, api_key: str, params: Any) -> Any:
        """Create a charge; returns a ChargeResult."""
        ...

    def cancel_charge(self, api_key: str, charge_id: str) -> None:
        """Cancel a charge at the gateway."""
        ...

    def create_payout(self, api_key: str, params: Any) -> Any:
        """Send a PIX transfer; returns a PayoutResult."""
        ...

    def get_balance(self, api_key: str) -> Any:
        """Read the account balance; returns a BalanceResult."""
        ...


@runtime_checkable
class NotificationSink(Protocol):
    """
    Protocol for user notifications.

    Implemented by notifications.services.NotificationService. A repeated
    call with the same idempotency key must not notify twice.

    Example:
        sink.notify(
            user_id=landlord.id,
            title="Payment received",
            message="Rent for Apartment 12 was paid.",
            action_link="https://app.example.com/contracts/123",
            idempotency_key=f"{order.id}:paid",
        )
    """

    def notify(
        self,
        user_id: Any,
        title: str,
        message: str,
        action_link: str = "",
        idempotency_key: str | None = None,
    ) -> Any:
        """Persist a notification and queue its delivery."""
        ...

    def escalate_to_admins(
        self,
        title: str,
        message: str,
        idempotency_key: str,
        details: dict[str, Any] | None = None,
    ) -> Any:
        """Notify every administrator."""
        ...


@runtime_checkable
class DocumentCollaborator(Protocol):
    """
    Protocol for contract document generation and e-signature envelopes.

    Rendering and envelope mechanics live outside this system; the
    default implementation in contracts.collaborators records artifacts
    and logs envelope removals.
    """

    def generate_contract_artifact(self, contract_id: Any) -> Any:
        """Generate the contract document; returns a ContractArtifact."""
        ...

    def delete_envelope(self, envelope_id: str) -> None:
        """Delete the signature envelope of a cancelled contract."""
        ...
